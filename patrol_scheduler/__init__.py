"""
Flask application factory.

This module implements the application factory pattern for creating
Flask application instances with different configurations.
"""

from flask import Flask
from sqlalchemy import event
from sqlalchemy.engine import Engine
import os

from .extensions import db, migrate, csrf, limiter
from .config import get_config


def _set_sqlite_pragma(dbapi_conn, connection_record):
    """
    Enable foreign keys on SQLite connections and hand transaction control
    to SQLAlchemy so SAVEPOINTs behave.
    """
    if 'sqlite' in str(dbapi_conn):
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def _sqlite_begin(conn):
    """Emit BEGIN ourselves, since pysqlite no longer does (see _set_sqlite_pragma)"""
    if conn.dialect.name == 'sqlite':
        conn.exec_driver_sql("BEGIN")


def create_app(config_name=None):
    """
    Application factory function.

    Args:
        config_name: Configuration name (development, testing, production)
                    If None, determined from environment

    Returns:
        Flask application instance
    """
    app = Flask(__name__)

    # Apply ProxyFix for correct IP and scheme handling behind reverse proxies
    from werkzeug.middleware.proxy_fix import ProxyFix
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    # Load configuration
    config_class = get_config(config_name)
    config_class.validate()
    app.config.from_object(config_class)

    # Ensure instance directory exists for the default SQLite database
    basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))
    if app.config['SQLALCHEMY_DATABASE_URI'].startswith('sqlite:///instance/'):
        os.makedirs(os.path.join(basedir, "instance"), exist_ok=True)
        app.config['SQLALCHEMY_DATABASE_URI'] = f'sqlite:///{os.path.join(basedir, "instance", "patrol.db")}'

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)

    # Initialize rate limiter
    app.config.setdefault('RATELIMIT_DEFAULT', '300 per hour')
    limiter.init_app(app)

    # SQLite: foreign keys on, SAVEPOINT-safe transactions
    if not event.contains(Engine, "connect", _set_sqlite_pragma):
        event.listen(Engine, "connect", _set_sqlite_pragma)
        event.listen(Engine, "begin", _sqlite_begin)

    # Configure logging and error handling
    from patrol_scheduler.error_handlers import setup_logging, register_error_handlers
    setup_logging(app)
    register_error_handlers(app)

    # Initialize database models
    from patrol_scheduler.models import init_models, model_registry
    models = init_models(db)

    # Initialize model registry
    model_registry.init_app(app)
    model_registry.register(models)

    # Register blueprints
    register_blueprints(app)

    # Setup background tasks
    if app.config.get('AUTO_MATERIALIZE_ENABLED') and not app.config.get('TESTING'):
        setup_background_tasks(app)

    app.logger.info(f"Patrol Scheduler started ({config_class.__name__})")
    return app


def register_blueprints(app):
    """Register all blueprints with the application"""
    from patrol_scheduler.routes import (
        api_schedules_bp,
        api_recurring_assignments_bp,
        api_bookings_bp,
        api_materialize_bp,
        api_users_bp,
        health_bp
    )

    api_blueprints = [
        api_schedules_bp,
        api_recurring_assignments_bp,
        api_bookings_bp,
        api_materialize_bp,
        api_users_bp,
    ]
    for blueprint in api_blueprints:
        app.register_blueprint(blueprint)
        # JSON API clients do not carry CSRF tokens
        csrf.exempt(blueprint)

    # Health probes must never be throttled
    app.register_blueprint(health_bp)
    limiter.exempt(health_bp)


def setup_background_tasks(app):
    """Schedule periodic materialization of the upcoming horizon."""

    from apscheduler.schedulers.background import BackgroundScheduler
    from apscheduler.triggers.interval import IntervalTrigger
    from patrol_scheduler.error_handlers import StorageUnavailable, materialize_logger
    from patrol_scheduler.models import get_models
    from patrol_scheduler.services.materializer import Materializer
    import atexit

    def materialize_upcoming():
        """Background task materializing bookings for the next horizon."""
        with app.app_context():
            try:
                Materializer(db.session, get_models()).materialize_upcoming(run_type='automatic')
            except StorageUnavailable as e:
                materialize_logger.run_warning('automatic run', f'{e.message}; retrying next interval')
            finally:
                db.session.remove()

    scheduler = BackgroundScheduler()
    scheduler.add_job(
        func=materialize_upcoming,
        trigger=IntervalTrigger(minutes=app.config.get('MATERIALIZE_INTERVAL_MINUTES', 60)),
        id='auto_materialize',
        name='Materialize recurring assignments',
        replace_existing=True,
        max_instances=1,
        coalesce=True
    )
    scheduler.start()
    app.extensions['materialize_scheduler'] = scheduler

    # Ensure scheduler shuts down when app exits
    atexit.register(lambda: scheduler.shutdown(wait=False))


def init_db(app):
    """Initialize the database."""
    with app.app_context():
        db.create_all()
