"""
Routes package for the Patrol Scheduler
Centralizes all route blueprints
"""
from .api_schedules import api_schedules_bp
from .api_recurring_assignments import api_recurring_assignments_bp
from .api_bookings import api_bookings_bp
from .api_materialize import api_materialize_bp
from .api_users import api_users_bp
from .health import health_bp

__all__ = [
    'api_schedules_bp',
    'api_recurring_assignments_bp',
    'api_bookings_bp',
    'api_materialize_bp',
    'api_users_bp',
    'health_bp'
]
