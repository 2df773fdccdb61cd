"""
Recurrence Expander
Turns a schedule's 5-field cron rule into concrete shift occurrences

Occurrences are computed as local wall-clock times in the schedule's
timezone and normalized to naive UTC instants. Nothing here touches the
database; the functions are deterministic and side-effect free.
"""
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import FrozenSet, Iterator, Optional, Tuple
import re

from dateutil.rrule import DAILY, rrule, rruleset

from patrol_scheduler.error_handlers.exceptions import InvalidRange, InvalidRecurrenceRule
from patrol_scheduler.utils.timezone import (
    get_zone, local_to_utc, to_naive_utc, utc_to_local
)


MONTH_NAMES = {
    'jan': 1, 'feb': 2, 'mar': 3, 'apr': 4, 'may': 5, 'jun': 6,
    'jul': 7, 'aug': 8, 'sep': 9, 'oct': 10, 'nov': 11, 'dec': 12
}

DAY_NAMES = {
    'sun': 0, 'mon': 1, 'tue': 2, 'wed': 3, 'thu': 4, 'fri': 5, 'sat': 6
}

TIME_SLOT_PATTERN = re.compile(r'^([01]\d|2[0-3]):([0-5]\d)-([01]\d|2[0-3]):([0-5]\d)$')


@dataclass(frozen=True)
class _FieldSpec:
    name: str
    low: int
    high: int
    names: Optional[dict] = None


MINUTE_FIELD = _FieldSpec('minute', 0, 59)
HOUR_FIELD = _FieldSpec('hour', 0, 23)
DOM_FIELD = _FieldSpec('day-of-month', 1, 31)
MONTH_FIELD = _FieldSpec('month', 1, 12, MONTH_NAMES)
DOW_FIELD = _FieldSpec('day-of-week', 0, 7, DAY_NAMES)


def cron_weekday(day: date) -> int:
    """Day of week in cron numbering (0=Sunday ... 6=Saturday)"""
    return (day.weekday() + 1) % 7


def _rrule_weekday(cron_day: int) -> int:
    # dateutil counts from Monday
    return (cron_day + 6) % 7


def _parse_value(token: str, spec: _FieldSpec, expr: str) -> int:
    token = token.strip().lower()
    if spec.names and token in spec.names:
        return spec.names[token]
    if not token.isdigit():
        raise InvalidRecurrenceRule(
            f"Invalid {spec.name} value '{token}' in '{expr}'",
            details={'cron_expr': expr, 'field': spec.name}
        )
    value = int(token)
    if value < spec.low or value > spec.high:
        raise InvalidRecurrenceRule(
            f"{spec.name} value {value} out of range {spec.low}-{spec.high} in '{expr}'",
            details={'cron_expr': expr, 'field': spec.name}
        )
    return value


def _parse_field(text: str, spec: _FieldSpec, expr: str) -> FrozenSet[int]:
    """Parse one cron field into the set of values it selects"""
    values = set()

    for part in text.split(','):
        if not part:
            raise InvalidRecurrenceRule(
                f"Empty list element in {spec.name} field of '{expr}'",
                details={'cron_expr': expr, 'field': spec.name}
            )

        step = 1
        has_step = '/' in part
        if has_step:
            part, step_text = part.split('/', 1)
            if not step_text.isdigit() or int(step_text) == 0:
                raise InvalidRecurrenceRule(
                    f"Invalid step '{step_text}' in {spec.name} field of '{expr}'",
                    details={'cron_expr': expr, 'field': spec.name}
                )
            step = int(step_text)

        if part == '*':
            start, end = spec.low, spec.high
        elif '-' in part:
            start_text, end_text = part.split('-', 1)
            start = _parse_value(start_text, spec, expr)
            end = _parse_value(end_text, spec, expr)
            if start > end:
                raise InvalidRecurrenceRule(
                    f"Range {part} is reversed in {spec.name} field of '{expr}'",
                    details={'cron_expr': expr, 'field': spec.name}
                )
        else:
            start = _parse_value(part, spec, expr)
            # "a/n" runs from a to the end of the field
            end = spec.high if has_step else start

        values.update(range(start, end + 1, step))

    if spec is DOW_FIELD and 7 in values:
        values.discard(7)
        values.add(0)

    return frozenset(values)


@dataclass(frozen=True)
class CronExpression:
    """
    Parsed 5-field cron rule (minute hour day-of-month month day-of-week)

    When both day-of-month and day-of-week are restricted (neither starts
    with '*') a date matches if either does, as in classic cron.
    """
    source: str
    minutes: FrozenSet[int]
    hours: FrozenSet[int]
    days_of_month: FrozenSet[int]
    months: FrozenSet[int]
    days_of_week: FrozenSet[int]
    dom_restricted: bool
    dow_restricted: bool

    @classmethod
    def parse(cls, expr: str) -> 'CronExpression':
        """
        Parse a cron expression

        Raises:
            InvalidRecurrenceRule: On a wrong field count or any malformed field
        """
        if not isinstance(expr, str) or not expr.strip():
            raise InvalidRecurrenceRule('Recurrence rule is required', details={'cron_expr': expr})

        fields = expr.split()
        if len(fields) != 5:
            raise InvalidRecurrenceRule(
                f"Expected 5 fields in '{expr}', found {len(fields)}",
                details={'cron_expr': expr}
            )

        minute, hour, dom, month, dow = fields
        return cls(
            source=expr,
            minutes=_parse_field(minute, MINUTE_FIELD, expr),
            hours=_parse_field(hour, HOUR_FIELD, expr),
            days_of_month=_parse_field(dom, DOM_FIELD, expr),
            months=_parse_field(month, MONTH_FIELD, expr),
            days_of_week=_parse_field(dow, DOW_FIELD, expr),
            dom_restricted=not dom.startswith('*'),
            dow_restricted=not dow.startswith('*'),
        )

    def to_rruleset(self, dtstart: datetime, until: datetime) -> rruleset:
        """
        Build the wall-clock start times the rule selects in [dtstart, until]

        Both bounds are naive local times. With day-of-month and day-of-week
        both restricted the two day rules are unioned, otherwise a date has
        to satisfy both.
        """
        common = dict(
            freq=DAILY,
            dtstart=dtstart,
            until=until,
            bymonth=sorted(self.months),
            byhour=sorted(self.hours),
            byminute=sorted(self.minutes),
            bysecond=0,
        )
        weekdays = sorted(_rrule_weekday(d) for d in self.days_of_week)

        ruleset = rruleset()
        if self.dom_restricted and self.dow_restricted:
            ruleset.rrule(rrule(bymonthday=sorted(self.days_of_month), **common))
            ruleset.rrule(rrule(byweekday=weekdays, **common))
        else:
            ruleset.rrule(rrule(bymonthday=sorted(self.days_of_month), byweekday=weekdays, **common))
        return ruleset

    def matches_date(self, day: date) -> bool:
        day_start = datetime.combine(day, time.min)
        day_end = datetime.combine(day, time(23, 59))
        return self.to_rruleset(day_start, day_end).after(day_start, inc=True) is not None

    def can_fall_on_weekday(self, day_of_week: int) -> bool:
        """Whether some date the rule selects falls on day_of_week (0=Sunday)"""
        if self.dow_restricted and day_of_week in self.days_of_week:
            return True
        if self.dow_restricted and not self.dom_restricted:
            return False
        # Day-of-month driven: any dom/month combination can land on any weekday
        # across years unless it never exists (e.g. Feb 30)
        return self._has_valid_calendar_day()

    def _has_valid_calendar_day(self) -> bool:
        for month in self.months:
            for dom in self.days_of_month:
                try:
                    date(2024, month, dom)
                except ValueError:
                    continue
                return True
        return False


@dataclass(frozen=True)
class Occurrence:
    """
    One concrete shift instance of a schedule

    start_time/end_time are naive UTC. Identity is (schedule_id, start_time).
    """
    schedule_id: int
    start_time: datetime
    end_time: datetime
    timezone: str
    duration_minutes: int

    @property
    def key(self) -> Tuple[int, datetime]:
        return (self.schedule_id, self.start_time)

    @property
    def local_start(self) -> datetime:
        return utc_to_local(self.start_time, self.timezone)

    @property
    def day_of_week(self) -> int:
        return cron_weekday(self.local_start.date())

    @property
    def time_slot(self) -> str:
        local_start = self.local_start.replace(tzinfo=None)
        return format_time_slot(local_start.time(), self.duration_minutes)

    def to_dict(self) -> dict:
        return {
            'schedule_id': self.schedule_id,
            'start_time': self.start_time.isoformat(),
            'end_time': self.end_time.isoformat(),
            'local_start': self.local_start.isoformat(),
            'day_of_week': self.day_of_week,
            'time_slot': self.time_slot,
        }


def format_time_slot(start: time, duration_minutes: int) -> str:
    """Render "HH:MM-HH:MM" for a wall-clock start and duration"""
    end = (datetime.combine(date(2000, 1, 1), start) + timedelta(minutes=duration_minutes)).time()
    return f"{start.strftime('%H:%M')}-{end.strftime('%H:%M')}"


def parse_time_slot(time_slot: str) -> Tuple[time, time]:
    """
    Split "HH:MM-HH:MM" into start and end times

    Raises:
        ValueError: If the slot is not in HH:MM-HH:MM form
    """
    match = TIME_SLOT_PATTERN.match(time_slot) if isinstance(time_slot, str) else None
    if not match:
        raise ValueError(f"Invalid time slot '{time_slot}', expected HH:MM-HH:MM")
    sh, sm, eh, em = (int(g) for g in match.groups())
    return time(sh, sm), time(eh, em)


def slot_for(occurrence: Occurrence) -> Tuple[int, str]:
    """Local (day_of_week, time_slot) view of an occurrence"""
    return occurrence.day_of_week, occurrence.time_slot


def _rule_and_zone(schedule):
    rule = CronExpression.parse(schedule.cron_expr)
    try:
        get_zone(schedule.timezone)
    except ValueError as e:
        raise InvalidRecurrenceRule(str(e), details={'timezone': schedule.timezone})
    return rule


def expand(schedule, range_start: datetime, range_end: datetime,
           max_occurrences: Optional[int] = None) -> Iterator[Occurrence]:
    """
    Lazily yield occurrences of a schedule starting in [range_start, range_end)

    Args:
        schedule: Object with id, cron_expr, duration_minutes, timezone,
            start_date and end_date
        range_start: Inclusive lower bound (aware, or naive UTC)
        range_end: Exclusive upper bound (aware, or naive UTC)
        max_occurrences: Raise InvalidRange once more than this many are produced

    Yields:
        Occurrence objects in ascending start order

    Raises:
        InvalidRange: If range_start >= range_end or the limit is exceeded
        InvalidRecurrenceRule: If the rule or timezone is invalid
    """
    range_start = to_naive_utc(range_start)
    range_end = to_naive_utc(range_end)
    if range_start >= range_end:
        raise InvalidRange(
            'Range start must be before range end',
            details={'from': range_start.isoformat(), 'to': range_end.isoformat()}
        )

    rule = _rule_and_zone(schedule)
    return _generate(schedule, rule, range_start, range_end, max_occurrences)


def _generate(schedule, rule, range_start, range_end, max_occurrences):
    tz_name = schedule.timezone
    duration = timedelta(minutes=schedule.duration_minutes)

    # Pad by a day: local dates can straddle the UTC bounds
    first_day = utc_to_local(range_start, tz_name).date() - timedelta(days=1)
    last_day = utc_to_local(range_end, tz_name).date() + timedelta(days=1)
    if schedule.start_date and first_day < schedule.start_date:
        first_day = schedule.start_date
    if schedule.end_date and last_day > schedule.end_date:
        last_day = schedule.end_date

    wall_clock_starts = rule.to_rruleset(
        datetime.combine(first_day, time.min),
        datetime.combine(last_day, time(23, 59))
    )

    produced = 0
    for wall_clock in wall_clock_starts:
        start = local_to_utc(wall_clock, tz_name)
        if start is None:
            # Wall-clock time skipped by a DST transition
            continue
        if not range_start <= start < range_end:
            continue

        produced += 1
        if max_occurrences is not None and produced > max_occurrences:
            raise InvalidRange(
                f'Range produces more than {max_occurrences} occurrences '
                f'for schedule {schedule.id}',
                details={'schedule_id': schedule.id, 'limit': max_occurrences}
            )
        yield Occurrence(
            schedule_id=schedule.id,
            start_time=start,
            end_time=start + duration,
            timezone=tz_name,
            duration_minutes=schedule.duration_minutes,
        )


def schedule_produces_slot(schedule, day_of_week: int, time_slot: str) -> bool:
    """
    Check that a (day_of_week, time_slot) pattern can match an occurrence

    The slot start must be one of the rule's wall-clock times, the end must
    equal start + duration, and the rule must reach that weekday.
    """
    try:
        start, end = parse_time_slot(time_slot)
    except ValueError:
        return False

    rule = CronExpression.parse(schedule.cron_expr)
    if start.hour not in rule.hours or start.minute not in rule.minutes:
        return False
    if format_time_slot(start, schedule.duration_minutes) != time_slot:
        return False
    return rule.can_fall_on_weekday(day_of_week)


def is_occurrence_start(schedule, instant: datetime) -> bool:
    """Whether the schedule produces an occurrence starting exactly at instant"""
    instant = to_naive_utc(instant)
    window_end = instant + timedelta(minutes=1)
    for occurrence in expand(schedule, instant, window_end):
        if occurrence.start_time == instant:
            return True
    return False
