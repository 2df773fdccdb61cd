"""
Recurring assignment model - a volunteer permanently attached to a
day-of-week/time-slot pattern of a schedule
"""
from datetime import datetime


def create_recurring_assignment_model(db):
    """Factory function to create RecurringAssignment model with db instance"""

    class RecurringAssignment(db.Model):
        """
        Recurring assignment template

        The materializer turns matching occurrences into bookings. Deleting a
        template never touches the bookings it produced.

        Attributes:
            id: Unique identifier, also the creation order used for tie-breaks
            user_id: Volunteer that owns the slot
            schedule_id: Schedule whose occurrences are matched
            day_of_week: 0=Sunday ... 6=Saturday (cron numbering)
            time_slot: Local wall-clock window, "HH:MM-HH:MM"
            buddy_name: Free-text co-volunteer, not a system user
            description: Optional notes
            is_active: Inactive templates are ignored by the matcher
        """
        __tablename__ = 'recurring_assignments'

        id = db.Column(db.Integer, primary_key=True, autoincrement=True)
        user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
        schedule_id = db.Column(db.Integer, db.ForeignKey('schedules.id', ondelete='CASCADE'), nullable=False)
        day_of_week = db.Column(db.Integer, nullable=False)
        time_slot = db.Column(db.String(11), nullable=False)
        buddy_name = db.Column(db.String(100), nullable=True)
        description = db.Column(db.Text, nullable=True)
        is_active = db.Column(db.Boolean, nullable=False, default=True)
        created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
        updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

        __table_args__ = (
            db.UniqueConstraint(
                'user_id', 'schedule_id', 'day_of_week', 'time_slot',
                name='uq_recurring_assignments_user_slot'
            ),
            db.CheckConstraint('day_of_week >= 0 AND day_of_week <= 6', name='ck_recurring_assignments_dow'),

            # Index for matcher lookups by pattern
            db.Index('idx_recurring_assignments_pattern', 'schedule_id', 'day_of_week', 'time_slot'),
        )

        user = db.relationship('User', back_populates='recurring_assignments', lazy=True)
        schedule = db.relationship('Schedule', back_populates='recurring_assignments', lazy=True)

        DAY_NAMES = ['Sunday', 'Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday']

        @property
        def day_name(self):
            return self.DAY_NAMES[self.day_of_week]

        @property
        def has_buddy(self):
            return bool(self.buddy_name)

        def to_dict(self):
            """Convert template to dictionary for JSON serialization"""
            return {
                'id': self.id,
                'user_id': self.user_id,
                'user_name': self.user.name if self.user else None,
                'schedule_id': self.schedule_id,
                'schedule_name': self.schedule.name if self.schedule else None,
                'day_of_week': self.day_of_week,
                'day_name': self.day_name,
                'time_slot': self.time_slot,
                'buddy_name': self.buddy_name,
                'description': self.description,
                'is_active': self.is_active,
                'created_at': self.created_at.isoformat() if self.created_at else None,
                'updated_at': self.updated_at.isoformat() if self.updated_at else None
            }

        def __repr__(self):
            return f'<RecurringAssignment {self.id}: user {self.user_id} -> {self.day_name} {self.time_slot}>'

    return RecurringAssignment
