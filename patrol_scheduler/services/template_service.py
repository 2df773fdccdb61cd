"""
Template Service
CRUD for recurring assignment templates
"""
from typing import List, Optional
from flask import current_app
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from patrol_scheduler.error_handlers.exceptions import (
    DuplicateTemplate, ResourceNotFoundException, ValidationException
)
from patrol_scheduler.services.booking_service import BookingService
from patrol_scheduler.services.recurrence import parse_time_slot, schedule_produces_slot


UPDATABLE_FIELDS = ('user_id', 'schedule_id', 'day_of_week', 'time_slot',
                    'buddy_name', 'description', 'is_active')


class TemplateService:
    """
    Template Store

    Validates that the user and schedule exist, that the day and slot are
    something the schedule actually produces, and that no identical
    template exists. Deleting a template leaves its bookings in place.
    """

    def __init__(self, db_session: Session, models: dict):
        self.db = db_session
        self.RecurringAssignment = models['RecurringAssignment']
        self.Schedule = models['Schedule']
        self.User = models['User']
        self.booking_service = BookingService(db_session, models)

    def get(self, template_id: int) -> object:
        template = self.db.get(self.RecurringAssignment, template_id)
        if not template:
            raise ResourceNotFoundException(f'Recurring assignment {template_id} not found')
        return template

    def create(self, user_id: int, schedule_id: int, day_of_week: int, time_slot: str,
               buddy_name: Optional[str] = None, description: Optional[str] = None,
               is_active: bool = True) -> object:
        """
        Create a recurring assignment

        Raises:
            ResourceNotFoundException: Unknown user or schedule
            ValidationException: Bad day_of_week or a slot the schedule never produces
            DuplicateTemplate: Same (user, schedule, day_of_week, time_slot) exists
        """
        self._validate(user_id, schedule_id, day_of_week, time_slot)

        existing = self.find_by_pattern(schedule_id, day_of_week, time_slot, user_id=user_id)
        if existing:
            raise DuplicateTemplate(
                'A recurring assignment already exists for this user and slot',
                details={'existing_id': existing[0].id}
            )

        template = self.RecurringAssignment(
            user_id=user_id,
            schedule_id=schedule_id,
            day_of_week=day_of_week,
            time_slot=time_slot,
            buddy_name=_clean(buddy_name),
            description=_clean(description),
            is_active=is_active
        )
        self.db.add(template)
        self._commit_unique()

        current_app.logger.info(
            f"Created recurring assignment {template.id}: user {user_id} -> "
            f"schedule {schedule_id} {template.day_name} {time_slot}"
        )
        return template

    def update(self, template_id: int, **changes) -> object:
        """
        Update a recurring assignment

        Only fields in UPDATABLE_FIELDS may be changed; the merged result is
        validated like a new template.
        """
        template = self.get(template_id)

        unknown = set(changes) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValidationException(f"Unknown fields: {', '.join(sorted(unknown))}")

        merged = {field: getattr(template, field) for field in UPDATABLE_FIELDS}
        merged.update(changes)

        self._validate(merged['user_id'], merged['schedule_id'], merged['day_of_week'], merged['time_slot'])

        duplicates = [
            t for t in self.find_by_pattern(
                merged['schedule_id'], merged['day_of_week'], merged['time_slot'],
                user_id=merged['user_id']
            )
            if t.id != template.id
        ]
        if duplicates:
            raise DuplicateTemplate(
                'A recurring assignment already exists for this user and slot',
                details={'existing_id': duplicates[0].id}
            )

        for field in ('buddy_name', 'description'):
            merged[field] = _clean(merged[field])
        merged['is_active'] = bool(merged['is_active'])

        for field, value in merged.items():
            setattr(template, field, value)
        self._commit_unique()

        current_app.logger.info(f"Updated recurring assignment {template_id}")
        return template

    def delete(self, template_id: int) -> None:
        """
        Delete a recurring assignment

        Bookings it produced are kept; only their provenance link is cleared.
        """
        template = self.get(template_id)

        self.booking_service.clear_provenance([template_id])

        self.db.delete(template)
        self.db.commit()
        current_app.logger.info(f"Deleted recurring assignment {template_id}")

    def list(self, user_id: Optional[int] = None, schedule_id: Optional[int] = None,
             day_of_week: Optional[int] = None, has_buddy: Optional[bool] = None,
             include_inactive: bool = True) -> List[object]:
        """List templates ordered by id (creation order)"""
        RA = self.RecurringAssignment
        query = self.db.query(RA)

        if user_id is not None:
            query = query.filter(RA.user_id == user_id)
        if schedule_id is not None:
            query = query.filter(RA.schedule_id == schedule_id)
        if day_of_week is not None:
            query = query.filter(RA.day_of_week == day_of_week)
        if has_buddy is True:
            query = query.filter(RA.buddy_name.isnot(None), RA.buddy_name != '')
        elif has_buddy is False:
            query = query.filter((RA.buddy_name.is_(None)) | (RA.buddy_name == ''))
        if not include_inactive:
            query = query.filter(RA.is_active.is_(True))

        return query.order_by(RA.id).all()

    def find_by_pattern(self, schedule_id: int, day_of_week: int, time_slot: str,
                        user_id: Optional[int] = None) -> List[object]:
        """Templates sharing a (schedule, day, slot) pattern, ordered by id"""
        query = self.db.query(self.RecurringAssignment).filter_by(
            schedule_id=schedule_id,
            day_of_week=day_of_week,
            time_slot=time_slot
        )
        if user_id is not None:
            query = query.filter_by(user_id=user_id)
        return query.order_by(self.RecurringAssignment.id).all()

    def _validate(self, user_id, schedule_id, day_of_week, time_slot):
        if not self.db.get(self.User, user_id):
            raise ResourceNotFoundException(f'User {user_id} not found')

        schedule = self.db.get(self.Schedule, schedule_id)
        if not schedule:
            raise ResourceNotFoundException(f'Schedule {schedule_id} not found')

        if not isinstance(day_of_week, int) or isinstance(day_of_week, bool) or not 0 <= day_of_week <= 6:
            raise ValidationException('day_of_week must be an integer between 0 (Sunday) and 6 (Saturday)')

        try:
            parse_time_slot(time_slot)
        except ValueError as e:
            raise ValidationException(str(e))

        if not schedule_produces_slot(schedule, day_of_week, time_slot):
            raise ValidationException(
                f"Schedule {schedule_id} never produces {time_slot} on day {day_of_week}",
                details={'schedule_id': schedule_id, 'day_of_week': day_of_week, 'time_slot': time_slot}
            )

    def _commit_unique(self):
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise DuplicateTemplate(
                'A recurring assignment already exists for this user and slot'
            ) from e


def _clean(value):
    if value is None:
        return None
    value = str(value).strip()
    return value or None
