"""
Assignment Matcher
Pairs recurring assignment templates with the occurrences they apply to
"""
from collections import defaultdict
from typing import Iterable, List, Tuple

from patrol_scheduler.services.recurrence import Occurrence


def match(templates: Iterable[object], occurrences: Iterable[Occurrence]) -> List[Tuple[object, Occurrence]]:
    """
    Find every (template, occurrence) pair that should become a booking

    A pair matches when the schedule is the same, the occurrence's local
    weekday equals template.day_of_week and its local "HH:MM-HH:MM" slot
    equals template.time_slot exactly. Inactive templates never match.
    Bookings are not consulted.

    Args:
        templates: RecurringAssignment-like objects
        occurrences: Occurrence objects

    Returns:
        List of (template, occurrence) ordered by occurrence start, then template id
    """
    by_pattern = defaultdict(list)
    for template in templates:
        if not template.is_active:
            continue
        by_pattern[(template.schedule_id, template.day_of_week, template.time_slot)].append(template)

    pairs = []
    for occurrence in occurrences:
        candidates = by_pattern.get(
            (occurrence.schedule_id, occurrence.day_of_week, occurrence.time_slot)
        )
        if not candidates:
            continue
        for template in candidates:
            pairs.append((template, occurrence))

    pairs.sort(key=lambda pair: (pair[1].start_time, pair[1].schedule_id, pair[0].id))
    return pairs


def group_by_occurrence(pairs: List[Tuple[object, Occurrence]]):
    """
    Group matched pairs by occurrence key, templates sorted by id

    Returns:
        Dict of occurrence key -> (occurrence, [templates in tie-break order])
    """
    grouped = {}
    for template, occurrence in pairs:
        entry = grouped.setdefault(occurrence.key, (occurrence, []))
        entry[1].append(template)
    for _, candidates in grouped.values():
        candidates.sort(key=lambda t: t.id)
    return grouped
