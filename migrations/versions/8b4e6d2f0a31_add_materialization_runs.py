"""Add materialization_runs table

Revision ID: 8b4e6d2f0a31
Revises: 3f1c2a9d7e10
Create Date: 2024-12-14 09:30:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '8b4e6d2f0a31'
down_revision = '3f1c2a9d7e10'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('materialization_runs',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('run_type', sa.String(length=20), nullable=False, server_default='manual'),
        sa.Column('schedule_id', sa.Integer(), nullable=True),
        sa.Column('range_start', sa.DateTime(), nullable=False),
        sa.Column('range_end', sa.DateTime(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='running'),
        sa.Column('created_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('skipped_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('failed_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('started_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_materialization_runs_started', 'materialization_runs', ['started_at'], unique=False)


def downgrade():
    op.drop_index('idx_materialization_runs_started', table_name='materialization_runs')
    op.drop_table('materialization_runs')
