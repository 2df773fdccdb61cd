"""
Health Check and Monitoring Endpoints
Provides liveness, readiness and status endpoints for process supervisors.
"""
from flask import Blueprint, jsonify, current_app
from datetime import datetime
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
import sys
import psutil
import os

from patrol_scheduler.extensions import db

health_bp = Blueprint('health', __name__, url_prefix='/health')


@health_bp.route('/ping', methods=['GET'])
def ping():
    """
    Simple ping endpoint for basic connectivity checks.
    Returns: 200 OK with pong message
    """
    return jsonify({
        'status': 'ok',
        'message': 'pong',
        'timestamp': datetime.utcnow().isoformat()
    }), 200


@health_bp.route('/live', methods=['GET'])
def liveness():
    """Liveness probe - the process is up and serving requests"""
    return jsonify({
        'status': 'alive',
        'timestamp': datetime.utcnow().isoformat()
    }), 200


@health_bp.route('/ready', methods=['GET'])
def readiness():
    """
    Readiness probe - checks the database is reachable.

    Returns:
        200: Application is ready
        503: Storage is unavailable
    """
    checks = {'database': False}
    errors = []

    try:
        db.session.execute(text('SELECT 1'))
        checks['database'] = True
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Readiness check failed: {e}")
        errors.append(f"Database: {str(e)}")

    all_checks_passed = all(checks.values())
    response = {
        'status': 'ready' if all_checks_passed else 'not_ready',
        'checks': checks,
        'auto_materialize': current_app.config.get('AUTO_MATERIALIZE_ENABLED', False),
        'timestamp': datetime.utcnow().isoformat()
    }
    if errors:
        response['errors'] = errors

    return jsonify(response), 200 if all_checks_passed else 503


@health_bp.route('/status', methods=['GET'])
def status():
    """
    Process resources and configuration summary.

    Returns:
        200: Status information
    """
    process = psutil.Process()
    memory_info = process.memory_info()
    uri = current_app.config.get('SQLALCHEMY_DATABASE_URI', '')

    return jsonify({
        'status': 'operational',
        'timestamp': datetime.utcnow().isoformat(),
        'application': {
            'name': 'Patrol Scheduler',
            'debug': current_app.debug,
            'default_timezone': current_app.config.get('DEFAULT_TIMEZONE'),
            'materialize_horizon_days': current_app.config.get('MATERIALIZE_HORIZON_DAYS'),
        },
        'system': {
            'python_version': sys.version,
            'platform': sys.platform,
            'process_id': os.getpid(),
        },
        'resources': {
            'memory_mb': round(memory_info.rss / 1024 / 1024, 2),
        },
        'database': {
            'type': uri.split(':', 1)[0] if uri else 'unknown',
        }
    }), 200
