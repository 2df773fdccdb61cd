"""
Pytest configuration and fixtures for Patrol Scheduler tests.

This module provides shared fixtures for:
- Flask application with test configuration
- Database setup and teardown
- Model factories for creating test data

Dates are fixed: 2024 for history, 2030 and later for "live future" bookings,
so no clock mocking is needed.
"""
import pytest
from datetime import datetime, timedelta

from patrol_scheduler import create_app
from patrol_scheduler.extensions import db as _db


@pytest.fixture(scope='session')
def app():
    """
    Create application for the tests.

    Uses TestingConfig with in-memory SQLite database.
    Scope is 'session' to reuse the same app across all tests.
    """
    app = create_app('testing')
    app.config.update({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'WTF_CSRF_ENABLED': False,
        'RATELIMIT_ENABLED': False,
        'MATERIALIZE_MAX_OCCURRENCES': 5000,
    })

    return app


@pytest.fixture(scope='function')
def db(app):
    """
    Create database for the tests.

    Creates all tables before each test function and drops them after.
    """
    with app.app_context():
        _db.create_all()
        yield _db
        _db.session.remove()
        _db.drop_all()


@pytest.fixture(scope='function')
def client(app, db):
    """Test client bound to a fresh database"""
    with app.test_client() as client:
        yield client


@pytest.fixture(scope='function')
def models(app, db):
    """All model classes from the model registry"""
    from patrol_scheduler.models import get_models
    return get_models()


# =============================================================================
# Model Factories
# =============================================================================

@pytest.fixture
def user_factory(models, db):
    """
    Factory for creating User instances.

    Usage:
        alice = user_factory(name="Alice")
        admin = user_factory(role="admin")
    """
    counter = [0]

    def _create_user(**kwargs):
        User = models['User']
        counter[0] += 1
        defaults = {
            'name': f'Volunteer {counter[0]}',
            'phone': f'+2782000{counter[0]:04d}',
            'role': 'owl',
        }
        defaults.update(kwargs)
        user = User(**defaults)
        db.session.add(user)
        db.session.commit()
        return user

    return _create_user


@pytest.fixture
def schedule_factory(models, db):
    """
    Factory for creating Schedule instances.

    Defaults to a Saturday/Sunday 18:00 two-hour patrol in UTC.

    Usage:
        schedule = schedule_factory()
        schedule = schedule_factory(cron_expr='0 22 * * *', positions_available=2)
    """
    counter = [0]

    def _create_schedule(**kwargs):
        Schedule = models['Schedule']
        counter[0] += 1
        defaults = {
            'name': f'Patrol {counter[0]}',
            'cron_expr': '0 18 * * 6,0',
            'duration_minutes': 120,
            'timezone': 'UTC',
            'positions_available': 1,
        }
        defaults.update(kwargs)
        schedule = Schedule(**defaults)
        db.session.add(schedule)
        db.session.commit()
        return schedule

    return _create_schedule


@pytest.fixture
def template_factory(models, db, user_factory, schedule_factory):
    """
    Factory for creating RecurringAssignment instances.

    Creates the user and schedule if not provided. Defaults to Saturday
    18:00-20:00, matching the default schedule.
    """
    def _create_template(user=None, schedule=None, **kwargs):
        RecurringAssignment = models['RecurringAssignment']

        if user is None:
            user = user_factory()
        if schedule is None:
            schedule = schedule_factory()

        defaults = {
            'user_id': user.id,
            'schedule_id': schedule.id,
            'day_of_week': 6,
            'time_slot': '18:00-20:00',
            'is_active': True,
        }
        defaults.update(kwargs)
        template = RecurringAssignment(**defaults)
        db.session.add(template)
        db.session.commit()
        return template

    return _create_template


@pytest.fixture
def booking_factory(models, db, user_factory, schedule_factory):
    """
    Factory for creating Booking instances directly (bypassing validation).

    Usage:
        booking = booking_factory(schedule=s, shift_start=datetime(2030, 1, 5, 18))
    """
    def _create_booking(user=None, schedule=None, **kwargs):
        Booking = models['Booking']

        if user is None:
            user = user_factory()
        if schedule is None:
            schedule = schedule_factory()

        shift_start = kwargs.pop('shift_start', datetime(2030, 1, 5, 18, 0))
        defaults = {
            'user_id': user.id,
            'schedule_id': schedule.id,
            'shift_start': shift_start,
            'shift_end': shift_start + timedelta(minutes=schedule.duration_minutes),
            'position_index': 0,
            'is_recurring_reservation': False,
        }
        defaults.update(kwargs)
        booking = Booking(**defaults)
        db.session.add(booking)
        db.session.commit()
        return booking

    return _create_booking


# =============================================================================
# Service Fixtures
# =============================================================================

@pytest.fixture
def materializer(models, db):
    from patrol_scheduler.services.materializer import Materializer
    return Materializer(db.session, models)


@pytest.fixture
def booking_service(models, db):
    from patrol_scheduler.services.booking_service import BookingService
    return BookingService(db.session, models)


@pytest.fixture
def template_service(models, db):
    from patrol_scheduler.services.template_service import TemplateService
    return TemplateService(db.session, models)


@pytest.fixture
def schedule_service(models, db):
    from patrol_scheduler.services.schedule_service import ScheduleService
    return ScheduleService(db.session, models)


@pytest.fixture
def user_service(models, db):
    from patrol_scheduler.services.user_service import UserService
    return UserService(db.session, models)


@pytest.fixture
def december_2024():
    """[2024-12-01, 2025-01-01) in naive UTC"""
    return datetime(2024, 12, 1), datetime(2025, 1, 1)
