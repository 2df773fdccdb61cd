"""
Services package for business logic and background tasks
"""

from .materialization_types import (
    MaterializationResult,
    SkippedMatch,
    SkipReason,
    FailedItem,
    FailureReason
)

from .recurrence import CronExpression, Occurrence, expand
from .assignment_matcher import match
from .booking_service import BookingService
from .template_service import TemplateService
from .schedule_service import ScheduleService
from .user_service import UserService
from .materializer import Materializer

__all__ = [
    # Result types
    'MaterializationResult',
    'SkippedMatch',
    'SkipReason',
    'FailedItem',
    'FailureReason',
    # Recurrence
    'CronExpression',
    'Occurrence',
    'expand',
    'match',
    # Services
    'BookingService',
    'TemplateService',
    'ScheduleService',
    'UserService',
    'Materializer',
]
