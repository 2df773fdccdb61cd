"""
Booking Service
Stores concrete shift bookings and guards them against double-booking

The unique (schedule_id, shift_start, position_index) constraint is the
only concurrency guard. Inserts run inside a SAVEPOINT so a lost race
rolls back just that insert and is reported as "already booked".
"""
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple
from flask import current_app
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from patrol_scheduler.error_handlers.exceptions import (
    CascadeBlocked, InvalidRange, ResourceNotFoundException,
    SlotAlreadyBooked, ValidationException
)
from patrol_scheduler.services.recurrence import is_occurrence_start
from patrol_scheduler.utils.timezone import to_naive_utc, utcnow


class BookingService:
    """
    Booking Store

    Handles:
    - Atomic booking inserts for the materializer (try_create_booking)
    - Manual bookings with occurrence and capacity validation
    - Listing, batch lookup by occurrence and cancellation
    - The live-future-booking guard used when deleting schedules or users
    """

    def __init__(self, db_session: Session, models: dict):
        """
        Initialize BookingService

        Args:
            db_session: SQLAlchemy database session
            models: Dictionary of model classes from the model registry
        """
        self.db = db_session
        self.Booking = models['Booking']
        self.Schedule = models['Schedule']
        self.User = models['User']

    def get(self, booking_id: int) -> object:
        booking = self.db.get(self.Booking, booking_id)
        if not booking:
            raise ResourceNotFoundException(f'Booking {booking_id} not found')
        return booking

    def try_create_booking(self, schedule_id: int, user_id: int, shift_start: datetime,
                           shift_end: datetime, position_index: int = 0,
                           buddy_name: Optional[str] = None,
                           is_recurring_reservation: bool = False,
                           recurring_assignment_id: Optional[int] = None) -> Optional[object]:
        """
        Insert a booking unless its position is already taken

        The insert runs in a SAVEPOINT; the outer transaction is left for the
        caller to commit.

        Returns:
            The new Booking, or None if the unique constraint rejected it
        """
        booking = self.Booking(
            schedule_id=schedule_id,
            user_id=user_id,
            shift_start=shift_start,
            shift_end=shift_end,
            position_index=position_index,
            buddy_name=buddy_name,
            is_recurring_reservation=is_recurring_reservation,
            recurring_assignment_id=recurring_assignment_id
        )

        try:
            with self.db.begin_nested():
                self.db.add(booking)
        except IntegrityError:
            current_app.logger.info(
                f"Booking conflict: schedule {schedule_id} @ {shift_start.isoformat()} "
                f"position {position_index} already taken"
            )
            return None

        return booking

    def create_booking(self, schedule_id: int, user_id: int, shift_start: datetime,
                       position_index: Optional[int] = None,
                       buddy_name: Optional[str] = None) -> object:
        """
        Manually book a user onto one occurrence of a schedule

        Args:
            schedule_id: Schedule to book on
            user_id: Volunteer to book
            shift_start: Occurrence start (aware, or naive UTC)
            position_index: Specific position, or None for the first free one
            buddy_name: Optional free-text co-volunteer

        Returns:
            The committed Booking

        Raises:
            ResourceNotFoundException: Unknown schedule or user
            ValidationException: shift_start is not an occurrence, or the
                position is outside the schedule's capacity
            SlotAlreadyBooked: Position taken, occurrence full, or the user
                is already on this occurrence
        """
        schedule = self.db.get(self.Schedule, schedule_id)
        if not schedule:
            raise ResourceNotFoundException(f'Schedule {schedule_id} not found')
        if not self.db.get(self.User, user_id):
            raise ResourceNotFoundException(f'User {user_id} not found')

        shift_start = to_naive_utc(shift_start)
        if not is_occurrence_start(schedule, shift_start):
            raise ValidationException(
                f'Schedule {schedule_id} has no occurrence starting at {shift_start.isoformat()}',
                details={'schedule_id': schedule_id, 'shift_start': shift_start.isoformat()}
            )

        existing = self.db.query(self.Booking).filter_by(
            schedule_id=schedule_id,
            shift_start=shift_start
        ).all()

        if any(b.user_id == user_id for b in existing):
            raise SlotAlreadyBooked(
                f'User {user_id} is already booked on this occurrence',
                details={'schedule_id': schedule_id, 'shift_start': shift_start.isoformat()}
            )

        taken = {b.position_index for b in existing}
        if position_index is None:
            free = [i for i in range(schedule.positions_available) if i not in taken]
            if not free:
                raise SlotAlreadyBooked(
                    'Occurrence is fully booked',
                    details={'schedule_id': schedule_id, 'shift_start': shift_start.isoformat()}
                )
            position_index = free[0]
        elif not 0 <= position_index < schedule.positions_available:
            raise ValidationException(
                f'position_index must be between 0 and {schedule.positions_available - 1}'
            )

        booking = self.try_create_booking(
            schedule_id=schedule_id,
            user_id=user_id,
            shift_start=shift_start,
            shift_end=shift_start + timedelta(minutes=schedule.duration_minutes),
            position_index=position_index,
            buddy_name=buddy_name,
            is_recurring_reservation=False
        )
        if booking is None:
            raise SlotAlreadyBooked(
                'Slot already booked',
                details={
                    'schedule_id': schedule_id,
                    'shift_start': shift_start.isoformat(),
                    'position_index': position_index
                }
            )

        self.db.commit()
        current_app.logger.info(
            f"Manual booking {booking.id}: user {user_id} on schedule {schedule_id} @ {shift_start.isoformat()}"
        )
        return booking

    def cancel(self, booking_id: int) -> dict:
        """
        Cancel (delete) a booking

        Returns:
            Serialized booking as it was before deletion
        """
        booking = self.get(booking_id)
        data = booking.to_dict()
        self.db.delete(booking)
        self.db.commit()
        current_app.logger.info(f"Cancelled booking {booking_id}")
        return data

    def list_bookings(self, range_start: Optional[datetime] = None,
                      range_end: Optional[datetime] = None,
                      user_id: Optional[int] = None,
                      schedule_id: Optional[int] = None,
                      is_recurring: Optional[bool] = None) -> List[object]:
        """
        List bookings whose start lies in [range_start, range_end)

        Returns:
            Bookings ordered by start time, schedule and position
        """
        query = self.db.query(self.Booking)

        if range_start is not None:
            range_start = to_naive_utc(range_start)
            query = query.filter(self.Booking.shift_start >= range_start)
        if range_end is not None:
            range_end = to_naive_utc(range_end)
            query = query.filter(self.Booking.shift_start < range_end)
        if range_start is not None and range_end is not None and range_start >= range_end:
            raise InvalidRange('Range start must be before range end')

        if user_id is not None:
            query = query.filter(self.Booking.user_id == user_id)
        if schedule_id is not None:
            query = query.filter(self.Booking.schedule_id == schedule_id)
        if is_recurring is not None:
            query = query.filter(self.Booking.is_recurring_reservation == is_recurring)

        return query.order_by(
            self.Booking.shift_start,
            self.Booking.schedule_id,
            self.Booking.position_index
        ).all()

    def bookings_for_occurrences(self, schedule_ids: Iterable[int], range_start: datetime,
                                 range_end: datetime) -> Dict[Tuple[int, datetime], List[object]]:
        """
        Batch-load bookings keyed by occurrence (schedule_id, shift_start)
        """
        schedule_ids = list(schedule_ids)
        result = defaultdict(list)
        if not schedule_ids:
            return result

        bookings = self.db.query(self.Booking).filter(
            self.Booking.schedule_id.in_(schedule_ids),
            self.Booking.shift_start >= range_start,
            self.Booking.shift_start < range_end
        ).order_by(self.Booking.position_index).all()

        for booking in bookings:
            result[booking.occurrence_key].append(booking)
        return result

    def live_future_bookings(self, schedule_id: Optional[int] = None,
                             user_id: Optional[int] = None,
                             now: Optional[datetime] = None) -> List[object]:
        """Bookings of a schedule or user whose shift starts at or after now"""
        now = now or utcnow()
        query = self.db.query(self.Booking).filter(self.Booking.shift_start >= now)
        if schedule_id is not None:
            query = query.filter(self.Booking.schedule_id == schedule_id)
        if user_id is not None:
            query = query.filter(self.Booking.user_id == user_id)
        return query.order_by(self.Booking.shift_start).all()

    def release_for_deletion(self, schedule_id: Optional[int] = None,
                             user_id: Optional[int] = None,
                             cascade: bool = False,
                             now: Optional[datetime] = None) -> int:
        """
        Prepare bookings for the deletion of their schedule or user

        Live future bookings block the deletion unless cascade is set, in
        which case they are cancelled. Past bookings are kept as history
        with the reference nulled. Nothing is committed here.

        Returns:
            Number of bookings cancelled

        Raises:
            CascadeBlocked: Live future bookings exist and cascade is False
        """
        now = now or utcnow()
        live = self.live_future_bookings(schedule_id=schedule_id, user_id=user_id, now=now)

        if live and not cascade:
            owner = f'schedule {schedule_id}' if schedule_id is not None else f'user {user_id}'
            raise CascadeBlocked(
                f'{len(live)} live future booking(s) reference {owner}; retry with cascade=true to cancel them',
                details={
                    'blocking_count': len(live),
                    'blocking_bookings': [b.to_dict() for b in live[:50]]
                }
            )

        for booking in live:
            self.db.delete(booking)

        past = self.db.query(self.Booking).filter(self.Booking.shift_start < now)
        if schedule_id is not None:
            past.filter(self.Booking.schedule_id == schedule_id).update(
                {self.Booking.schedule_id: None}, synchronize_session='fetch'
            )
        if user_id is not None:
            past.filter(self.Booking.user_id == user_id).update(
                {self.Booking.user_id: None}, synchronize_session='fetch'
            )

        return len(live)

    def clear_provenance(self, template_ids: Iterable[int]) -> int:
        """Null recurring_assignment_id on bookings produced by the given templates"""
        template_ids = list(template_ids)
        if not template_ids:
            return 0
        return self.db.query(self.Booking).filter(
            self.Booking.recurring_assignment_id.in_(template_ids)
        ).update({self.Booking.recurring_assignment_id: None}, synchronize_session='fetch')
