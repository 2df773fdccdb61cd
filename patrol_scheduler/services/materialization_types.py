"""
Result types for materialization runs
"""
from dataclasses import dataclass, field
from typing import List, Optional
from enum import Enum

from patrol_scheduler.services.recurrence import Occurrence


class SkipReason(str, Enum):
    """Why a matched template did not produce a booking"""
    SLOT_ALREADY_BOOKED = "slot-already-booked"
    SLOT_CLAIMED_BY_OTHER_TEMPLATE = "slot-claimed-by-other-template"


class FailureReason(str, Enum):
    """Why part of a run could not be processed"""
    INVALID_RECURRENCE_RULE = "invalid-recurrence-rule"
    STORAGE_UNAVAILABLE = "storage-unavailable"


@dataclass
class SkippedMatch:
    """A matched (template, occurrence) pair that was not booked"""
    reason: SkipReason
    occurrence: Occurrence
    template_id: int
    user_id: Optional[int] = None

    def to_dict(self):
        return {
            'reason': self.reason.value,
            'occurrence': self.occurrence.to_dict(),
            'template_id': self.template_id,
            'user_id': self.user_id
        }


@dataclass
class FailedItem:
    """A schedule or pair that errored during the run"""
    reason: FailureReason
    message: str
    schedule_id: Optional[int] = None
    occurrence: Optional[Occurrence] = None
    template_id: Optional[int] = None

    def to_dict(self):
        return {
            'reason': self.reason.value,
            'message': self.message,
            'schedule_id': self.schedule_id,
            'occurrence': self.occurrence.to_dict() if self.occurrence else None,
            'template_id': self.template_id
        }


@dataclass
class MaterializationResult:
    """Summary of one materialization call"""
    created: List[object] = field(default_factory=list)
    skipped: List[SkippedMatch] = field(default_factory=list)
    failed: List[FailedItem] = field(default_factory=list)
    run_id: Optional[int] = None
    occurrences_considered: int = 0
    matches_considered: int = 0

    @property
    def created_count(self) -> int:
        return len(self.created)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    def skipped_by_reason(self, reason: SkipReason) -> List[SkippedMatch]:
        return [s for s in self.skipped if s.reason == reason]

    def stats(self) -> dict:
        return {
            'created': self.created_count,
            'skipped': self.skipped_count,
            'failed': self.failed_count,
            'occurrences': self.occurrences_considered,
            'matches': self.matches_considered
        }

    def to_dict(self):
        return {
            'run_id': self.run_id,
            'created': [b.to_dict() for b in self.created],
            'skipped': [s.to_dict() for s in self.skipped],
            'failed': [f.to_dict() for f in self.failed],
            'created_count': self.created_count,
            'skipped_count': self.skipped_count,
            'failed_count': self.failed_count
        }
