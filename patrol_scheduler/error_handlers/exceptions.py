"""
Custom exception hierarchy for type-safe error handling

Provides a structured exception hierarchy that maps to HTTP status codes
and enables consistent error responses across the application.

Usage:
    from patrol_scheduler.error_handlers.exceptions import ValidationException

    def create_schedule(data):
        if not data.get('name'):
            raise ValidationException('Schedule name is required')

Exception Hierarchy:
    AppException (base)
    ├── ValidationException (400)
    │   ├── InvalidRecurrenceRule (400)
    │   └── InvalidRange (400)
    ├── ResourceNotFoundException (404)
    ├── ConflictException (409)
    │   ├── DuplicateTemplate (409)
    │   ├── SlotAlreadyBooked (409)
    │   └── CascadeBlocked (409)
    ├── ConfigurationException (500)
    └── DatabaseException (500)
        └── StorageUnavailable (503)
"""
from typing import Dict, Any, Optional


class AppException(Exception):
    """
    Base exception for all application errors

    All custom exceptions should inherit from this class to enable
    consistent error handling and response formatting.

    Attributes:
        status_code: HTTP status code for the error
        error_type: String identifier for the error type
        message: Human-readable error message
        details: Additional context about the error
    """
    status_code = 500
    error_type = 'ApplicationError'

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize application exception

        Args:
            message: Human-readable error message
            status_code: Optional HTTP status code override
            details: Optional dictionary with additional error context
        """
        super().__init__(message)
        self.message = message
        if status_code:
            self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to JSON-serializable dictionary

        Returns:
            Dictionary suitable for JSON response
        """
        result = {
            'error': self.error_type,
            'message': self.message,
            'status_code': self.status_code
        }

        if self.details:
            result.update(self.details)

        return result

    def __str__(self) -> str:
        return f"{self.error_type}: {self.message}"

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}('{self.message}', status_code={self.status_code})>"


class ValidationException(AppException):
    """
    Validation errors (HTTP 400)

    Raised when request data fails validation checks.

    Example:
        >>> if not 0 <= day_of_week <= 6:
        ...     raise ValidationException('day_of_week must be between 0 and 6')
    """
    status_code = 400
    error_type = 'ValidationError'


class InvalidRecurrenceRule(ValidationException):
    """
    Cron expression cannot be parsed (HTTP 400)

    Raised for a wrong field count, out-of-range values or malformed
    ranges/steps in a schedule's recurrence rule.
    """
    error_type = 'InvalidRecurrenceRule'


class InvalidRange(ValidationException):
    """
    Query range is empty, inverted or too large (HTTP 400)
    """
    error_type = 'InvalidRange'


class ResourceNotFoundException(AppException):
    """
    Resource not found (HTTP 404)

    Example:
        >>> schedule = db.session.get(Schedule, schedule_id)
        >>> if not schedule:
        ...     raise ResourceNotFoundException(f'Schedule {schedule_id} not found')
    """
    status_code = 404
    error_type = 'NotFound'


class ConflictException(AppException):
    """
    Request conflicts with existing state (HTTP 409)
    """
    status_code = 409
    error_type = 'Conflict'


class DuplicateTemplate(ConflictException):
    """
    A recurring assignment already exists for the same
    (user, schedule, day_of_week, time_slot)
    """
    error_type = 'DuplicateTemplate'


class SlotAlreadyBooked(ConflictException):
    """
    The occurrence (or the requested position in it) already has a booking

    Inside a materialization pass this is never raised to the caller;
    it is reported as the skip reason ``slot-already-booked``.
    """
    error_type = 'SlotAlreadyBooked'


class CascadeBlocked(ConflictException):
    """
    Deletion rejected because live future bookings depend on the resource

    Retry with cascade=true to cancel those bookings explicitly.
    """
    error_type = 'CascadeBlocked'


class ConfigurationException(AppException):
    """
    Configuration errors (HTTP 500)

    Example:
        >>> if not config.SECRET_KEY:
        ...     raise ConfigurationException('SECRET_KEY not configured')
    """
    status_code = 500
    error_type = 'ConfigurationError'


class DatabaseException(AppException):
    """
    Database operation errors (HTTP 500)

    Raised when database operations fail.
    """
    status_code = 500
    error_type = 'DatabaseError'


class StorageUnavailable(DatabaseException):
    """
    Transient storage failure (HTTP 503)

    The whole materialization call is idempotent and safe to retry.
    """
    status_code = 503
    error_type = 'StorageUnavailable'
