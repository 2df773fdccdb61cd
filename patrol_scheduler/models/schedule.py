"""
Schedule model - recurring patrol shift definitions
"""
from datetime import datetime


def create_schedule_model(db):
    """Factory function to create Schedule model with db instance"""

    class Schedule(db.Model):
        """
        Schedule model representing a recurring patrol shift pattern

        A schedule owns the recurrence rule that defines every concrete
        occurrence for it. Occurrences are derived on demand and never stored.

        Attributes:
            id: Unique identifier
            name: Display name (e.g. "Weekend Evening Patrol")
            cron_expr: 5-field cron expression (minute hour dom month dow)
            duration_minutes: Length of each occurrence in minutes
            timezone: IANA timezone the cron expression is evaluated in
            start_date: Optional first day the schedule is active (inclusive)
            end_date: Optional last day the schedule is active (inclusive)
            positions_available: Volunteers that can be booked per occurrence
        """
        __tablename__ = 'schedules'

        id = db.Column(db.Integer, primary_key=True, autoincrement=True)
        name = db.Column(db.String(100), nullable=False)
        cron_expr = db.Column(db.String(100), nullable=False)
        duration_minutes = db.Column(db.Integer, nullable=False, default=120)
        timezone = db.Column(db.String(64), nullable=False, default='UTC')
        start_date = db.Column(db.Date, nullable=True)
        end_date = db.Column(db.Date, nullable=True)
        positions_available = db.Column(db.Integer, nullable=False, default=1)
        created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
        updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

        __table_args__ = (
            db.CheckConstraint('duration_minutes > 0', name='ck_schedules_duration_positive'),
            db.CheckConstraint('positions_available >= 1', name='ck_schedules_positions_positive'),
            db.Index('idx_schedules_name', 'name'),
        )

        recurring_assignments = db.relationship(
            'RecurringAssignment',
            back_populates='schedule',
            cascade='all, delete-orphan',
            lazy=True
        )

        def is_active_on(self, day):
            """Check whether the validity window includes the given date"""
            if self.start_date and day < self.start_date:
                return False
            if self.end_date and day > self.end_date:
                return False
            return True

        def to_dict(self):
            """Convert schedule to dictionary for JSON serialization"""
            return {
                'id': self.id,
                'name': self.name,
                'cron_expr': self.cron_expr,
                'duration_minutes': self.duration_minutes,
                'timezone': self.timezone,
                'start_date': self.start_date.isoformat() if self.start_date else None,
                'end_date': self.end_date.isoformat() if self.end_date else None,
                'positions_available': self.positions_available,
                'created_at': self.created_at.isoformat() if self.created_at else None,
                'updated_at': self.updated_at.isoformat() if self.updated_at else None
            }

        def __repr__(self):
            return f'<Schedule {self.id}: {self.name} ({self.cron_expr})>'

    return Schedule
