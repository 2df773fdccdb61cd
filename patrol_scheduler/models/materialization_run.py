"""
Materialization run history - one row per Materialize call
"""
from datetime import datetime


def create_materialization_run_model(db):
    """Factory function to create MaterializationRun model with db instance"""

    class MaterializationRun(db.Model):
        """
        Audit record of a materialization pass

        Attributes:
            run_type: 'manual' (API/CLI) or 'automatic' (background job)
            schedule_id: Scope of the run, None for all schedules
            range_start / range_end: Requested [from, to) window, naive UTC
            status: running, completed or failed
            created_count / skipped_count / failed_count: Summary counts
        """
        __tablename__ = 'materialization_runs'

        id = db.Column(db.Integer, primary_key=True, autoincrement=True)
        run_type = db.Column(db.String(20), nullable=False, default='manual')
        schedule_id = db.Column(db.Integer, nullable=True)
        range_start = db.Column(db.DateTime, nullable=False)
        range_end = db.Column(db.DateTime, nullable=False)
        status = db.Column(db.String(20), nullable=False, default='running')
        created_count = db.Column(db.Integer, nullable=False, default=0)
        skipped_count = db.Column(db.Integer, nullable=False, default=0)
        failed_count = db.Column(db.Integer, nullable=False, default=0)
        error_message = db.Column(db.Text, nullable=True)
        started_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
        completed_at = db.Column(db.DateTime, nullable=True)

        __table_args__ = (
            db.Index('idx_materialization_runs_started', 'started_at'),
        )

        VALID_STATUSES = ['running', 'completed', 'failed']

        def to_dict(self):
            """Convert run to dictionary for JSON"""
            return {
                'id': self.id,
                'run_type': self.run_type,
                'schedule_id': self.schedule_id,
                'range_start': self.range_start.isoformat() if self.range_start else None,
                'range_end': self.range_end.isoformat() if self.range_end else None,
                'status': self.status,
                'created_count': self.created_count,
                'skipped_count': self.skipped_count,
                'failed_count': self.failed_count,
                'error_message': self.error_message,
                'started_at': self.started_at.isoformat() if self.started_at else None,
                'completed_at': self.completed_at.isoformat() if self.completed_at else None
            }

        def __repr__(self):
            return f'<MaterializationRun {self.id}: {self.status}>'

    return MaterializationRun
