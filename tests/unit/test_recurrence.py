"""
Tests for the recurrence expander.

Covers cron parsing, occurrence expansion (range boundaries, validity window,
timezones and DST) and the slot helpers used by template validation.
"""
import pytest
from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace

from patrol_scheduler.error_handlers.exceptions import InvalidRange, InvalidRecurrenceRule
from patrol_scheduler.services.recurrence import (
    CronExpression, expand, format_time_slot, is_occurrence_start,
    parse_time_slot, schedule_produces_slot, slot_for
)


def make_schedule(**kwargs):
    defaults = {
        'id': 1,
        'cron_expr': '0 18 * * 6,0',
        'duration_minutes': 120,
        'timezone': 'UTC',
        'start_date': None,
        'end_date': None,
        'positions_available': 1,
    }
    defaults.update(kwargs)
    return SimpleNamespace(**defaults)


class TestCronParsing:
    """CronExpression.parse"""

    @pytest.mark.unit
    def test_steps_and_ranges(self):
        rule = CronExpression.parse('*/15 9-17/4 * * 1-5')
        assert rule.minutes == {0, 15, 30, 45}
        assert rule.hours == {9, 13, 17}
        assert rule.days_of_week == {1, 2, 3, 4, 5}
        assert not rule.dom_restricted
        assert rule.dow_restricted

    @pytest.mark.unit
    def test_start_with_step_runs_to_end_of_field(self):
        rule = CronExpression.parse('10/20 0 * * *')
        assert rule.minutes == {10, 30, 50}

    @pytest.mark.unit
    def test_names_are_case_insensitive(self):
        rule = CronExpression.parse('0 18 * JAN,dec Sat,sun')
        assert rule.months == {1, 12}
        assert rule.days_of_week == {0, 6}

    @pytest.mark.unit
    def test_day_seven_is_sunday(self):
        rule = CronExpression.parse('0 18 * * 5-7')
        assert rule.days_of_week == {0, 5, 6}

    @pytest.mark.unit
    @pytest.mark.parametrize('expr', [
        '',
        '0 18 * *',
        '0 18 * * * *',
        '60 * * * *',
        '0 24 * * *',
        '0 0 0 * *',
        '0 0 * 13 *',
        '0 18 * * 8',
        '*/0 * * * *',
        '5-1 * * * *',
        '0 18 * * funday',
        '0,,5 * * * *',
    ])
    def test_invalid_expressions(self, expr):
        with pytest.raises(InvalidRecurrenceRule):
            CronExpression.parse(expr)

    @pytest.mark.unit
    def test_dom_and_dow_combine_with_or_when_both_restricted(self):
        rule = CronExpression.parse('0 12 1 * 1')
        # 2024-12-01 is a Sunday (dom match), 2024-12-02 a Monday (dow match)
        assert rule.matches_date(date(2024, 12, 1))
        assert rule.matches_date(date(2024, 12, 2))
        assert not rule.matches_date(date(2024, 12, 3))

    @pytest.mark.unit
    def test_dom_only_rule_ignores_weekday(self):
        rule = CronExpression.parse('0 12 15 * *')
        assert rule.matches_date(date(2024, 12, 15))
        assert not rule.matches_date(date(2024, 12, 16))

    @pytest.mark.unit
    def test_rruleset_wall_clock_starts(self):
        rule = CronExpression.parse('30 6,18 * * 0')
        starts = list(rule.to_rruleset(datetime(2024, 12, 1), datetime(2024, 12, 8, 23, 59)))

        assert starts == [
            datetime(2024, 12, 1, 6, 30),
            datetime(2024, 12, 1, 18, 30),
            datetime(2024, 12, 8, 6, 30),
            datetime(2024, 12, 8, 18, 30),
        ]

    @pytest.mark.unit
    def test_date_matching_both_day_fields_yields_once(self, december_2024):
        # 2024-12-01 is a Sunday and the first of the month
        schedule = make_schedule(cron_expr='0 12 1 * 0')
        starts = [o.start_time for o in expand(schedule, *december_2024)]

        assert starts == [
            datetime(2024, 12, 1, 12, 0),
            datetime(2024, 12, 8, 12, 0),
            datetime(2024, 12, 15, 12, 0),
            datetime(2024, 12, 22, 12, 0),
            datetime(2024, 12, 29, 12, 0),
        ]


class TestExpand:
    """expand()"""

    @pytest.mark.unit
    def test_weekend_rule_over_december(self, december_2024):
        occurrences = list(expand(make_schedule(), *december_2024))

        # Saturdays 7,14,21,28 and Sundays 1,8,15,22,29
        assert len(occurrences) == 9
        assert occurrences[0].start_time == datetime(2024, 12, 1, 18, 0)
        assert occurrences[-1].start_time == datetime(2024, 12, 29, 18, 0)
        assert [o.start_time for o in occurrences] == sorted(o.start_time for o in occurrences)
        assert all(o.end_time - o.start_time == timedelta(minutes=120) for o in occurrences)

    @pytest.mark.unit
    def test_range_start_inclusive_end_exclusive(self):
        schedule = make_schedule()
        start = datetime(2024, 12, 21, 18, 0)

        included = list(expand(schedule, start, start + timedelta(minutes=1)))
        assert [o.start_time for o in included] == [start]

        excluded = list(expand(schedule, start - timedelta(hours=1), start))
        assert excluded == []

    @pytest.mark.unit
    def test_empty_or_inverted_range_rejected(self):
        schedule = make_schedule()
        moment = datetime(2024, 12, 21)
        with pytest.raises(InvalidRange):
            expand(schedule, moment, moment)
        with pytest.raises(InvalidRange):
            expand(schedule, moment, moment - timedelta(days=1))

    @pytest.mark.unit
    def test_invalid_rule_raises_before_iteration(self, december_2024):
        with pytest.raises(InvalidRecurrenceRule):
            expand(make_schedule(cron_expr='not a rule'), *december_2024)

    @pytest.mark.unit
    def test_unknown_timezone_is_invalid_rule(self, december_2024):
        with pytest.raises(InvalidRecurrenceRule):
            expand(make_schedule(timezone='Mars/Olympus_Mons'), *december_2024)

    @pytest.mark.unit
    def test_validity_window_is_inclusive(self, december_2024):
        schedule = make_schedule(start_date=date(2024, 12, 15), end_date=date(2024, 12, 22))
        starts = [o.start_time.day for o in expand(schedule, *december_2024)]
        assert starts == [15, 21, 22]

    @pytest.mark.unit
    def test_aware_range_bounds_are_normalized(self):
        schedule = make_schedule()
        sast = timezone(timedelta(hours=2))
        occurrences = list(expand(
            schedule,
            datetime(2024, 12, 21, 20, 0, tzinfo=sast),
            datetime(2024, 12, 21, 20, 1, tzinfo=sast)
        ))
        assert [o.start_time for o in occurrences] == [datetime(2024, 12, 21, 18, 0)]

    @pytest.mark.unit
    def test_local_time_converted_to_utc(self):
        schedule = make_schedule(timezone='Africa/Johannesburg')
        occurrences = list(expand(schedule, datetime(2024, 12, 21), datetime(2024, 12, 22)))
        assert len(occurrences) == 1
        assert occurrences[0].start_time == datetime(2024, 12, 21, 16, 0)
        assert slot_for(occurrences[0]) == (6, '18:00-20:00')

    @pytest.mark.unit
    def test_local_weekday_differs_from_utc_weekday(self):
        # Saturday 01:00 in Johannesburg is Friday 23:00 UTC
        schedule = make_schedule(cron_expr='0 1 * * 6', timezone='Africa/Johannesburg')
        occurrences = list(expand(schedule, datetime(2024, 12, 20), datetime(2024, 12, 22)))
        assert len(occurrences) == 1
        assert occurrences[0].start_time == datetime(2024, 12, 20, 23, 0)
        assert occurrences[0].day_of_week == 6

    @pytest.mark.unit
    def test_spring_forward_gap_is_skipped(self):
        schedule = make_schedule(cron_expr='30 2 * * *', timezone='America/New_York')
        occurrences = list(expand(schedule, datetime(2024, 3, 9), datetime(2024, 3, 12)))
        # 2024-03-10 02:30 does not exist in New York
        assert [o.start_time for o in occurrences] == [
            datetime(2024, 3, 9, 7, 30),
            datetime(2024, 3, 11, 6, 30),
        ]

    @pytest.mark.unit
    def test_fall_back_ambiguity_resolves_to_first_instant(self):
        schedule = make_schedule(cron_expr='30 1 * * *', timezone='America/New_York')
        occurrences = list(expand(schedule, datetime(2024, 11, 3), datetime(2024, 11, 4)))
        assert [o.start_time for o in occurrences] == [datetime(2024, 11, 3, 5, 30)]

    @pytest.mark.unit
    def test_expansion_is_deterministic(self, december_2024):
        schedule = make_schedule(cron_expr='0 */6 * * *')
        first = list(expand(schedule, *december_2024))
        second = list(expand(schedule, *december_2024))
        assert first == second

    @pytest.mark.unit
    def test_occurrence_limit(self):
        schedule = make_schedule(cron_expr='*/5 * * * *')
        occurrences = expand(
            schedule, datetime(2024, 12, 1), datetime(2024, 12, 2), max_occurrences=100
        )
        with pytest.raises(InvalidRange):
            list(occurrences)

    @pytest.mark.unit
    def test_impossible_date_yields_nothing(self, december_2024):
        schedule = make_schedule(cron_expr='0 18 30 2 *')
        assert list(expand(schedule, *december_2024)) == []


class TestSlots:
    """Slot helpers"""

    @pytest.mark.unit
    def test_format_time_slot_wraps_midnight(self):
        assert format_time_slot(datetime(2024, 1, 1, 23, 0).time(), 120) == '23:00-01:00'

    @pytest.mark.unit
    def test_parse_time_slot(self):
        start, end = parse_time_slot('18:00-20:00')
        assert (start.hour, start.minute, end.hour, end.minute) == (18, 0, 20, 0)

    @pytest.mark.unit
    @pytest.mark.parametrize('slot', ['18:00', '1800-2000', '24:00-01:00', '18:60-19:00', None, 1800])
    def test_parse_time_slot_rejects_bad_format(self, slot):
        with pytest.raises(ValueError):
            parse_time_slot(slot)

    @pytest.mark.unit
    @pytest.mark.parametrize('day_of_week, time_slot, expected', [
        (6, '18:00-20:00', True),
        (0, '18:00-20:00', True),
        (1, '18:00-20:00', False),
        (6, '19:00-21:00', False),
        (6, '18:00-19:00', False),
        (6, 'evening', False),
    ])
    def test_schedule_produces_slot(self, day_of_week, time_slot, expected):
        assert schedule_produces_slot(make_schedule(), day_of_week, time_slot) is expected

    @pytest.mark.unit
    def test_dom_driven_rule_reaches_every_weekday(self):
        schedule = make_schedule(cron_expr='0 18 1 * *')
        assert all(schedule_produces_slot(schedule, d, '18:00-20:00') for d in range(7))

    @pytest.mark.unit
    def test_is_occurrence_start(self):
        schedule = make_schedule()
        assert is_occurrence_start(schedule, datetime(2024, 12, 21, 18, 0))
        assert not is_occurrence_start(schedule, datetime(2024, 12, 21, 18, 30))
        assert not is_occurrence_start(schedule, datetime(2024, 12, 23, 18, 0))
