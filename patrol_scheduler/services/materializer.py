"""
Materializer
Turns recurring assignment templates into concrete bookings for a date range

Pipeline per call:
1. Validate the range and resolve the schedules in scope
2. Expand each schedule's occurrences in [from, to)
3. Match active templates against the occurrences
4. Tie-break per occurrence: lowest template id wins, up to the schedule's
   positions_available
5. Insert one booking per winner; positions already filled are skipped

Every booking insert is individually atomic and committed, so a pass that
stops halfway can simply be re-run.
"""
from datetime import datetime, timedelta
from typing import Dict, List, Optional
from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from patrol_scheduler.error_handlers import materialize_logger
from patrol_scheduler.error_handlers.exceptions import (
    InvalidRange, InvalidRecurrenceRule, ResourceNotFoundException, StorageUnavailable
)
from patrol_scheduler.services.assignment_matcher import group_by_occurrence, match
from patrol_scheduler.services.booking_service import BookingService
from patrol_scheduler.services.materialization_types import (
    FailedItem, FailureReason, MaterializationResult, SkippedMatch, SkipReason
)
from patrol_scheduler.services.recurrence import Occurrence, expand
from patrol_scheduler.utils.timezone import to_naive_utc, utcnow


class Materializer:
    """
    Materialization engine

    Safe under repetition, overlapping ranges and concurrent runs: the
    unique booking constraint decides every race, and losers are reported
    as skips rather than errors.
    """

    def __init__(self, db_session: Session, models: dict, max_occurrences: Optional[int] = None):
        """
        Initialize Materializer

        Args:
            db_session: SQLAlchemy database session
            models: Dictionary of model classes from the model registry
            max_occurrences: Per-schedule occurrence limit for one call;
                defaults to MATERIALIZE_MAX_OCCURRENCES
        """
        self.db = db_session
        self.models = models

        self.Schedule = models['Schedule']
        self.RecurringAssignment = models['RecurringAssignment']
        self.MaterializationRun = models['MaterializationRun']

        self.booking_service = BookingService(db_session, models)

        if max_occurrences is None:
            max_occurrences = current_app.config.get('MATERIALIZE_MAX_OCCURRENCES', 5000)
        self.max_occurrences = max_occurrences

    def materialize(self, range_start: datetime, range_end: datetime,
                    schedule_id: Optional[int] = None,
                    run_type: str = 'manual') -> MaterializationResult:
        """
        Main entry point for materialization

        Args:
            range_start: Inclusive start of the range (aware, or naive UTC)
            range_end: Exclusive end of the range (aware, or naive UTC)
            schedule_id: Restrict to one schedule, or None for all schedules
            run_type: 'manual' or 'automatic'

        Returns:
            MaterializationResult with created bookings, skips and failures

        Raises:
            InvalidRange: If range_start >= range_end or the range is too large
            ResourceNotFoundException: If schedule_id does not exist
            StorageUnavailable: If the bulk reads fail; the call can be retried
        """
        range_start = to_naive_utc(range_start)
        range_end = to_naive_utc(range_end)
        if range_start >= range_end:
            raise InvalidRange(
                'Range start must be before range end',
                details={'from': range_start.isoformat(), 'to': range_end.isoformat()}
            )

        try:
            if schedule_id is not None and not self.db.get(self.Schedule, schedule_id):
                raise ResourceNotFoundException(f'Schedule {schedule_id} not found')

            run = self.MaterializationRun(
                run_type=run_type,
                schedule_id=schedule_id,
                range_start=range_start,
                range_end=range_end,
                started_at=datetime.utcnow(),
                status='running'
            )
            self.db.add(run)
            self.db.commit()
        except OperationalError as e:
            self.db.rollback()
            materialize_logger.run_failed('materialize', e, {'schedule_id': schedule_id})
            raise StorageUnavailable('Storage is temporarily unavailable, retry materialization') from e

        run_id = run.id
        scope = f'schedule {schedule_id}' if schedule_id is not None else 'all schedules'
        materialize_logger.run_started(
            f'{run_type} run {run_id}',
            f'{scope}, {range_start.isoformat()} -> {range_end.isoformat()}'
        )

        result = MaterializationResult(run_id=run_id)

        try:
            self._run(result, range_start, range_end, schedule_id)
        except OperationalError as e:
            self.db.rollback()
            self._mark_run_failed(run_id, e, result)
            raise StorageUnavailable('Storage is temporarily unavailable, retry materialization') from e
        except Exception as e:
            self.db.rollback()
            self._mark_run_failed(run_id, e, result)
            raise

        run = self.db.get(self.MaterializationRun, run_id)
        run.status = 'completed'
        run.created_count = result.created_count
        run.skipped_count = result.skipped_count
        run.failed_count = result.failed_count
        run.completed_at = datetime.utcnow()
        self.db.commit()

        materialize_logger.run_completed(f'{run_type} run {run_id}', result.stats())
        return result

    def materialize_upcoming(self, horizon_days: Optional[int] = None,
                             run_type: str = 'automatic') -> MaterializationResult:
        """Materialize all schedules from now until now + horizon_days"""
        if horizon_days is None:
            horizon_days = current_app.config.get('MATERIALIZE_HORIZON_DAYS', 14)
        now = utcnow()
        return self.materialize(now, now + timedelta(days=horizon_days), run_type=run_type)

    def _run(self, result: MaterializationResult, range_start: datetime,
             range_end: datetime, schedule_id: Optional[int]) -> None:
        schedules = self._load_schedules(schedule_id)
        schedules_by_id = {s.id: s for s in schedules}

        occurrences = self._expand_schedules(result, schedules, range_start, range_end)
        result.occurrences_considered = len(occurrences)
        if not occurrences:
            return

        templates = self._load_active_templates(list(schedules_by_id))
        pairs = match(templates, occurrences)
        result.matches_considered = len(pairs)

        grouped = group_by_occurrence(pairs)
        existing = self.booking_service.bookings_for_occurrences(
            schedules_by_id.keys(), range_start, range_end
        )

        for key in sorted(grouped, key=lambda k: (k[1], k[0])):
            occurrence, candidates = grouped[key]
            self._reconcile_occurrence(
                result,
                occurrence,
                candidates,
                schedules_by_id[occurrence.schedule_id].positions_available,
                existing.get(key, [])
            )

    def _load_schedules(self, schedule_id: Optional[int]) -> List[object]:
        query = self.db.query(self.Schedule)
        if schedule_id is not None:
            query = query.filter(self.Schedule.id == schedule_id)
        return query.order_by(self.Schedule.id).all()

    def _load_active_templates(self, schedule_ids: List[int]) -> List[object]:
        return self.db.query(self.RecurringAssignment).filter(
            self.RecurringAssignment.schedule_id.in_(schedule_ids),
            self.RecurringAssignment.is_active.is_(True)
        ).order_by(self.RecurringAssignment.id).all()

    def _expand_schedules(self, result: MaterializationResult, schedules: List[object],
                          range_start: datetime, range_end: datetime) -> List[Occurrence]:
        occurrences = []
        for schedule in schedules:
            try:
                occurrences.extend(
                    expand(schedule, range_start, range_end, max_occurrences=self.max_occurrences)
                )
            except InvalidRecurrenceRule as e:
                materialize_logger.run_warning(
                    'materialize',
                    f'Skipping schedule {schedule.id}: {e.message}'
                )
                result.failed.append(FailedItem(
                    reason=FailureReason.INVALID_RECURRENCE_RULE,
                    message=e.message,
                    schedule_id=schedule.id
                ))
        return occurrences

    def _reconcile_occurrence(self, result: MaterializationResult, occurrence: Occurrence,
                              candidates: List[object], capacity: int,
                              bookings: List[object]) -> None:
        """
        Apply the tie-break for one occurrence and insert winners' bookings

        Candidates arrive sorted by template id and take the free positions
        in that order. A candidate whose user already holds the occurrence,
        or that finds no free position at all, is already booked; one that
        loses the last free position to a lower template id is claimed.
        """
        taken_positions = {b.position_index for b in bookings}
        booked_users = {b.user_id for b in bookings}
        free_positions = [p for p in range(capacity) if p not in taken_positions]
        had_free_position = bool(free_positions)

        for template in candidates:
            if template.user_id in booked_users:
                self._skip(result, SkipReason.SLOT_ALREADY_BOOKED, occurrence, template)
                continue
            if not free_positions:
                reason = (SkipReason.SLOT_CLAIMED_BY_OTHER_TEMPLATE if had_free_position
                          else SkipReason.SLOT_ALREADY_BOOKED)
                self._skip(result, reason, occurrence, template)
                continue

            position_index = free_positions.pop(0)
            try:
                booking = self.booking_service.try_create_booking(
                    schedule_id=occurrence.schedule_id,
                    user_id=template.user_id,
                    shift_start=occurrence.start_time,
                    shift_end=occurrence.end_time,
                    position_index=position_index,
                    buddy_name=template.buddy_name,
                    is_recurring_reservation=True,
                    recurring_assignment_id=template.id
                )
                if booking is not None:
                    self.db.commit()
            except OperationalError as e:
                self.db.rollback()
                free_positions.insert(0, position_index)
                materialize_logger.run_warning(
                    'materialize',
                    f'Booking insert failed for template {template.id} @ '
                    f'{occurrence.start_time.isoformat()}: {e}'
                )
                result.failed.append(FailedItem(
                    reason=FailureReason.STORAGE_UNAVAILABLE,
                    message=str(e.orig) if e.orig is not None else str(e),
                    schedule_id=occurrence.schedule_id,
                    occurrence=occurrence,
                    template_id=template.id
                ))
                continue

            if booking is None:
                # Lost the race to a concurrent run or manual booking
                self._skip(result, SkipReason.SLOT_ALREADY_BOOKED, occurrence, template)
                continue

            booked_users.add(template.user_id)
            result.created.append(booking)

    @staticmethod
    def _skip(result: MaterializationResult, reason: SkipReason, occurrence: Occurrence,
              template: object) -> None:
        result.skipped.append(SkippedMatch(
            reason=reason,
            occurrence=occurrence,
            template_id=template.id,
            user_id=template.user_id
        ))

    def _mark_run_failed(self, run_id: int, error: Exception, result: MaterializationResult) -> None:
        error_id = materialize_logger.run_failed('materialize', error, {'run_id': run_id})
        try:
            run = self.db.get(self.MaterializationRun, run_id)
            if run is None:
                return
            run.status = 'failed'
            run.error_message = f'[{error_id}] {error}'
            run.created_count = result.created_count
            run.skipped_count = result.skipped_count
            run.failed_count = result.failed_count
            run.completed_at = datetime.utcnow()
            self.db.commit()
        except OperationalError as e:
            self.db.rollback()
            materialize_logger.run_warning('materialize', f'Could not record failure of run {run_id}: {e}')


def summarize(result: MaterializationResult) -> Dict[str, int]:
    """Counts suitable for CLI output and log lines"""
    return {
        'created': result.created_count,
        'skipped': result.skipped_count,
        'failed': result.failed_count,
        SkipReason.SLOT_ALREADY_BOOKED.value: len(result.skipped_by_reason(SkipReason.SLOT_ALREADY_BOOKED)),
        SkipReason.SLOT_CLAIMED_BY_OTHER_TEMPLATE.value: len(
            result.skipped_by_reason(SkipReason.SLOT_CLAIMED_BY_OTHER_TEMPLATE)
        ),
    }
