"""
Unified Error Handling System

Provides centralized, consistent error handling across the entire application.

Usage:
    from patrol_scheduler.error_handlers import handle_errors
    from patrol_scheduler.error_handlers.exceptions import ValidationException

    @api_bp.route('/endpoint')
    @handle_errors
    def my_endpoint():
        if not valid:
            raise ValidationException('Invalid data')
        return jsonify({'success': True})
"""
from .exceptions import (
    AppException,
    ValidationException,
    InvalidRecurrenceRule,
    InvalidRange,
    ResourceNotFoundException,
    ConflictException,
    DuplicateTemplate,
    SlotAlreadyBooked,
    CascadeBlocked,
    ConfigurationException,
    DatabaseException,
    StorageUnavailable,
)
from .decorators import handle_errors
from .logging import setup_logging, register_error_handlers, materialize_logger


__all__ = [
    # Exceptions
    'AppException',
    'ValidationException',
    'InvalidRecurrenceRule',
    'InvalidRange',
    'ResourceNotFoundException',
    'ConflictException',
    'DuplicateTemplate',
    'SlotAlreadyBooked',
    'CascadeBlocked',
    'ConfigurationException',
    'DatabaseException',
    'StorageUnavailable',
    # Decorators
    'handle_errors',
    # Logging
    'setup_logging',
    'register_error_handlers',
    'materialize_logger',
]
