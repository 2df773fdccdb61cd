"""
Schedule Service
Schedule CRUD, guarded deletion and the occurrence read surface
"""
from datetime import date, datetime
from typing import List, Optional
from flask import current_app
from sqlalchemy.orm import Session

from patrol_scheduler.error_handlers.exceptions import (
    InvalidRecurrenceRule, ResourceNotFoundException, ValidationException
)
from patrol_scheduler.services.booking_service import BookingService
from patrol_scheduler.services.recurrence import CronExpression, expand, schedule_produces_slot
from patrol_scheduler.utils.timezone import is_valid_timezone, to_naive_utc


UPDATABLE_FIELDS = ('name', 'cron_expr', 'duration_minutes', 'timezone',
                    'start_date', 'end_date', 'positions_available')


class ScheduleService:
    """Manages patrol schedules"""

    def __init__(self, db_session: Session, models: dict):
        self.db = db_session
        self.Schedule = models['Schedule']
        self.booking_service = BookingService(db_session, models)

    def get(self, schedule_id: int) -> object:
        schedule = self.db.get(self.Schedule, schedule_id)
        if not schedule:
            raise ResourceNotFoundException(f'Schedule {schedule_id} not found')
        return schedule

    def list(self) -> List[object]:
        return self.db.query(self.Schedule).order_by(self.Schedule.name, self.Schedule.id).all()

    def create(self, name: str, cron_expr: str, duration_minutes: Optional[int] = None,
               timezone: Optional[str] = None, start_date: Optional[date] = None,
               end_date: Optional[date] = None, positions_available: int = 1) -> object:
        """
        Create a schedule

        Duration and timezone fall back to DEFAULT_SHIFT_DURATION_MINUTES and
        DEFAULT_TIMEZONE.

        Raises:
            InvalidRecurrenceRule: cron_expr does not parse
            ValidationException: Any other invalid field
        """
        values = {
            'name': name,
            'cron_expr': cron_expr,
            'duration_minutes': duration_minutes
            if duration_minutes is not None
            else current_app.config.get('DEFAULT_SHIFT_DURATION_MINUTES', 120),
            'timezone': timezone or current_app.config.get('DEFAULT_TIMEZONE', 'UTC'),
            'start_date': start_date,
            'end_date': end_date,
            'positions_available': positions_available,
        }
        self._validate(values)

        schedule = self.Schedule(**values)
        self.db.add(schedule)
        self.db.commit()

        current_app.logger.info(f"Created schedule {schedule.id}: {schedule.name} ({schedule.cron_expr})")
        return schedule

    def update(self, schedule_id: int, **changes) -> object:
        """
        Update a schedule

        Existing templates are left alone even if the new rule no longer
        produces their slot; they simply stop matching.
        """
        schedule = self.get(schedule_id)

        unknown = set(changes) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValidationException(f"Unknown fields: {', '.join(sorted(unknown))}")

        values = {field: getattr(schedule, field) for field in UPDATABLE_FIELDS}
        values.update(changes)
        self._validate(values)
        self._check_capacity(schedule, values['positions_available'])

        for field, value in values.items():
            setattr(schedule, field, value)

        stale = [
            t.id for t in schedule.recurring_assignments
            if not schedule_produces_slot(schedule, t.day_of_week, t.time_slot)
        ]
        self.db.commit()

        if stale:
            current_app.logger.warning(
                f"Schedule {schedule_id} no longer produces the slots of templates {stale}"
            )
        current_app.logger.info(f"Updated schedule {schedule_id}")
        return schedule

    def delete(self, schedule_id: int, cascade: bool = False) -> dict:
        """
        Delete a schedule and its templates

        Raises:
            CascadeBlocked: Live future bookings exist and cascade is False

        Returns:
            Counts of deleted templates and cancelled bookings
        """
        schedule = self.get(schedule_id)
        template_ids = [t.id for t in schedule.recurring_assignments]
        template_count = len(template_ids)

        cancelled = self.booking_service.release_for_deletion(schedule_id=schedule_id, cascade=cascade)
        self.booking_service.clear_provenance(template_ids)
        self.db.delete(schedule)
        self.db.commit()

        current_app.logger.info(
            f"Deleted schedule {schedule_id} ({template_count} templates, {cancelled} bookings cancelled)"
        )
        return {
            'deleted_templates': template_count,
            'cancelled_bookings': cancelled
        }

    def list_occurrences(self, schedule_id: int, range_start: datetime, range_end: datetime) -> List[dict]:
        """
        Occurrences of a schedule in [range_start, range_end) with their bookings

        Raises:
            InvalidRange: If range_start >= range_end or the range is too large
        """
        schedule = self.get(schedule_id)
        return self._occurrence_rows(schedule, range_start, range_end)

    def list_open_slots(self, range_start: datetime, range_end: datetime) -> List[dict]:
        """
        Occurrences of every schedule in [range_start, range_end) that still
        have an open position, ordered by start time

        Schedules whose stored rule no longer parses are left out and logged.

        Raises:
            InvalidRange: If range_start >= range_end or the range is too large
        """
        open_slots = []
        for schedule in self.list():
            try:
                rows = self._occurrence_rows(schedule, range_start, range_end)
            except InvalidRecurrenceRule as e:
                current_app.logger.warning(f"Skipping schedule {schedule.id} in open slots: {e.message}")
                continue
            for row in rows:
                if row['open_positions'] > 0:
                    row['schedule_name'] = schedule.name
                    open_slots.append(row)

        open_slots.sort(key=lambda row: (row['start_time'], row['schedule_id']))
        return open_slots

    def _occurrence_rows(self, schedule, range_start: datetime, range_end: datetime) -> List[dict]:
        occurrences = list(expand(
            schedule, range_start, range_end,
            max_occurrences=current_app.config.get('MATERIALIZE_MAX_OCCURRENCES', 5000)
        ))
        if not occurrences:
            return []

        bookings = self.booking_service.bookings_for_occurrences(
            [schedule.id], to_naive_utc(range_start), to_naive_utc(range_end)
        )

        result = []
        for occurrence in occurrences:
            booked = bookings.get(occurrence.key, [])
            taken_positions = {b.position_index for b in booked}
            item = occurrence.to_dict()
            item['positions_available'] = schedule.positions_available
            item['open_positions'] = sum(
                1 for p in range(schedule.positions_available) if p not in taken_positions
            )
            item['bookings'] = [b.to_dict() for b in booked]
            result.append(item)
        return result

    def _check_capacity(self, schedule, positions_available: int) -> None:
        """Refuse to shrink capacity below positions held by future bookings"""
        if positions_available >= schedule.positions_available:
            return
        stranded = [
            b.id for b in self.booking_service.live_future_bookings(schedule_id=schedule.id)
            if b.position_index >= positions_available
        ]
        if stranded:
            raise ValidationException(
                f'positions_available cannot drop to {positions_available} while '
                f'{len(stranded)} future bookings hold higher positions',
                details={'schedule_id': schedule.id, 'booking_ids': stranded}
            )

    def _validate(self, values: dict) -> None:
        name = values.get('name')
        if not name or not str(name).strip():
            raise ValidationException('Schedule name is required')
        values['name'] = str(name).strip()

        CronExpression.parse(values.get('cron_expr'))

        duration = values.get('duration_minutes')
        if not isinstance(duration, int) or isinstance(duration, bool) or duration <= 0:
            raise ValidationException('duration_minutes must be a positive integer')

        if not is_valid_timezone(values.get('timezone')):
            raise ValidationException(f"Unknown timezone '{values.get('timezone')}'")

        positions = values.get('positions_available')
        if not isinstance(positions, int) or isinstance(positions, bool) or positions < 1:
            raise ValidationException('positions_available must be an integer of at least 1')

        start_date, end_date = values.get('start_date'), values.get('end_date')
        if start_date and end_date and start_date > end_date:
            raise ValidationException('start_date must not be after end_date')
