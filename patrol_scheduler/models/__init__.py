"""
Database models for the Patrol Scheduler
Centralizes all SQLAlchemy model imports using factory pattern
"""
from .user import create_user_model
from .schedule import create_schedule_model
from .recurring_assignment import create_recurring_assignment_model
from .booking import create_booking_model
from .materialization_run import create_materialization_run_model


_initialized = {}


def init_models(db):
    """
    Initialize all models with the database instance

    Model classes are declared once per db instance; later calls (e.g. a
    second app created in the same process) reuse them.

    Args:
        db: SQLAlchemy database instance

    Returns:
        dict: Dictionary containing all model classes
    """
    if id(db) in _initialized:
        return _initialized[id(db)]

    User = create_user_model(db)
    Schedule = create_schedule_model(db)
    RecurringAssignment = create_recurring_assignment_model(db)
    Booking = create_booking_model(db)
    MaterializationRun = create_materialization_run_model(db)

    _initialized[id(db)] = {
        'User': User,
        'Schedule': Schedule,
        'RecurringAssignment': RecurringAssignment,
        'Booking': Booking,
        'MaterializationRun': MaterializationRun,
    }
    return _initialized[id(db)]


__all__ = [
    'init_models',
    'create_user_model',
    'create_schedule_model',
    'create_recurring_assignment_model',
    'create_booking_model',
    'create_materialization_run_model',
    # Model registry exports
    'model_registry',
    'get_models',
    'get_db'
]

# Import registry for convenience
from .registry import model_registry, get_models, get_db
