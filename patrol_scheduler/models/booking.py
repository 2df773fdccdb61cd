"""
Booking model - who is assigned to which concrete shift occurrence
"""
from datetime import datetime


def create_booking_model(db):
    """Factory function to create Booking model with db instance"""

    class Booking(db.Model):
        """
        Booking model representing a filled position on one occurrence

        The unique (schedule_id, shift_start, position_index) constraint is the
        only guard against double-booking; materialization and manual booking
        both rely on it instead of application locks.

        Attributes:
            id: Unique identifier
            schedule_id: Schedule the occurrence belongs to (nulled if the
                schedule is deleted after the shift took place)
            user_id: Assigned volunteer
            shift_start: Occurrence start, naive UTC
            shift_end: Occurrence end, naive UTC
            position_index: Position within the occurrence (0-based)
            buddy_name: Free-text co-volunteer
            is_recurring_reservation: Created by the materializer
            recurring_assignment_id: Template that produced it (display only)
            checked_in_at: Attendance timestamp, set by check-in workflows
        """
        __tablename__ = 'bookings'

        id = db.Column(db.Integer, primary_key=True, autoincrement=True)
        schedule_id = db.Column(db.Integer, db.ForeignKey('schedules.id', ondelete='SET NULL'), nullable=True)
        user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
        shift_start = db.Column(db.DateTime, nullable=False)
        shift_end = db.Column(db.DateTime, nullable=False)
        position_index = db.Column(db.Integer, nullable=False, default=0)
        buddy_name = db.Column(db.String(100), nullable=True)
        is_recurring_reservation = db.Column(db.Boolean, nullable=False, default=False)
        recurring_assignment_id = db.Column(
            db.Integer,
            db.ForeignKey('recurring_assignments.id', ondelete='SET NULL'),
            nullable=True
        )
        checked_in_at = db.Column(db.DateTime, nullable=True)
        created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

        __table_args__ = (
            db.UniqueConstraint(
                'schedule_id', 'shift_start', 'position_index',
                name='uq_bookings_schedule_start_position'
            ),

            # Index for range queries
            db.Index('idx_bookings_shift_start', 'shift_start'),

            # Composite index for per-user listings
            db.Index('idx_bookings_user_start', 'user_id', 'shift_start'),
        )

        user = db.relationship('User', lazy=True)
        schedule = db.relationship('Schedule', lazy=True)

        @property
        def occurrence_key(self):
            return (self.schedule_id, self.shift_start)

        def to_dict(self):
            """Convert booking to dictionary for JSON serialization"""
            return {
                'id': self.id,
                'schedule_id': self.schedule_id,
                'schedule_name': self.schedule.name if self.schedule else None,
                'user_id': self.user_id,
                'user_name': self.user.name if self.user else None,
                'shift_start': self.shift_start.isoformat() if self.shift_start else None,
                'shift_end': self.shift_end.isoformat() if self.shift_end else None,
                'position_index': self.position_index,
                'buddy_name': self.buddy_name,
                'is_recurring_reservation': self.is_recurring_reservation,
                'recurring_assignment_id': self.recurring_assignment_id,
                'checked_in_at': self.checked_in_at.isoformat() if self.checked_in_at else None,
                'created_at': self.created_at.isoformat() if self.created_at else None
            }

        def __repr__(self):
            return f'<Booking {self.id}: schedule {self.schedule_id} @ {self.shift_start} -> user {self.user_id}>'

    return Booking
