"""Create users, schedules, recurring_assignments and bookings tables

Revision ID: 3f1c2a9d7e10
Revises:
Create Date: 2024-11-30 18:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3f1c2a9d7e10'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('users',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('role', sa.String(length=20), nullable=False, server_default='owl'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('phone')
    )

    op.create_table('schedules',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('cron_expr', sa.String(length=100), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=False, server_default='120'),
        sa.Column('timezone', sa.String(length=64), nullable=False, server_default='UTC'),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('positions_available', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('duration_minutes > 0', name='ck_schedules_duration_positive'),
        sa.CheckConstraint('positions_available >= 1', name='ck_schedules_positions_positive'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_schedules_name', 'schedules', ['name'], unique=False)

    op.create_table('recurring_assignments',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('schedule_id', sa.Integer(), nullable=False),
        sa.Column('day_of_week', sa.Integer(), nullable=False),
        sa.Column('time_slot', sa.String(length=11), nullable=False),
        sa.Column('buddy_name', sa.String(length=100), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('day_of_week >= 0 AND day_of_week <= 6', name='ck_recurring_assignments_dow'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['schedule_id'], ['schedules.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'schedule_id', 'day_of_week', 'time_slot',
                            name='uq_recurring_assignments_user_slot')
    )
    op.create_index('idx_recurring_assignments_pattern', 'recurring_assignments',
                    ['schedule_id', 'day_of_week', 'time_slot'], unique=False)

    op.create_table('bookings',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('schedule_id', sa.Integer(), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('shift_start', sa.DateTime(), nullable=False),
        sa.Column('shift_end', sa.DateTime(), nullable=False),
        sa.Column('position_index', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('buddy_name', sa.String(length=100), nullable=True),
        sa.Column('is_recurring_reservation', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('recurring_assignment_id', sa.Integer(), nullable=True),
        sa.Column('checked_in_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['schedule_id'], ['schedules.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['recurring_assignment_id'], ['recurring_assignments.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('schedule_id', 'shift_start', 'position_index',
                            name='uq_bookings_schedule_start_position')
    )
    op.create_index('idx_bookings_shift_start', 'bookings', ['shift_start'], unique=False)
    op.create_index('idx_bookings_user_start', 'bookings', ['user_id', 'shift_start'], unique=False)


def downgrade():
    op.drop_index('idx_bookings_user_start', table_name='bookings')
    op.drop_index('idx_bookings_shift_start', table_name='bookings')
    op.drop_table('bookings')

    op.drop_index('idx_recurring_assignments_pattern', table_name='recurring_assignments')
    op.drop_table('recurring_assignments')

    op.drop_index('idx_schedules_name', table_name='schedules')
    op.drop_table('schedules')

    op.drop_table('users')
