"""
Error handling and logging utilities for the Patrol Scheduler
Provides centralized error handling, logging, and materialization run logging
"""
import logging
import traceback
from datetime import datetime
from flask import jsonify, request
import os


def setup_logging(app):
    """Configure application logging"""
    log_level = getattr(logging, app.config.get('LOG_LEVEL', 'INFO').upper())
    log_file = app.config.get('LOG_FILE')

    formatter = logging.Formatter(
        '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
    )

    handlers = []

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    handlers.append(console_handler)

    # File handler (disabled when LOG_FILE is empty, e.g. under testing)
    if log_file:
        if not os.path.isabs(log_file):
            basedir = os.path.abspath(os.path.dirname(os.path.dirname(os.path.dirname(__file__))))
            log_file = os.path.join(basedir, log_file)

        os.makedirs(os.path.dirname(log_file), exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    app.logger.setLevel(log_level)
    for handler in handlers:
        app.logger.addHandler(handler)

    # Materialization runs log through their own logger
    materialize_logger = logging.getLogger('materialize')
    materialize_logger.setLevel(log_level)
    if not materialize_logger.handlers:
        for handler in handlers:
            materialize_logger.addHandler(handler)

    werkzeug_logger = logging.getLogger('werkzeug')
    werkzeug_logger.setLevel(log_level)

    return app.logger


def _json_error(status_code, error, message, **extra):
    payload = {
        'error': error,
        'message': message,
        'status_code': status_code
    }
    payload.update(extra)
    return jsonify(payload), status_code


def register_error_handlers(app):
    """Register global error handlers for the Flask app"""

    @app.errorhandler(400)
    def bad_request_error(error):
        """Handle 400 Bad Request errors"""
        app.logger.warning(f"Bad request from {request.remote_addr}: {request.url}")
        return _json_error(400, 'Bad Request', 'The request could not be understood by the server')

    @app.errorhandler(404)
    def not_found_error(error):
        """Handle 404 Not Found errors"""
        app.logger.info(f"404 Not Found: {request.url} from {request.remote_addr}")
        return _json_error(404, 'Not Found', 'The requested resource was not found')

    @app.errorhandler(405)
    def method_not_allowed_error(error):
        """Handle 405 Method Not Allowed errors"""
        app.logger.warning(f"Method not allowed: {request.method} {request.url} from {request.remote_addr}")
        return _json_error(
            405, 'Method Not Allowed',
            f'The {request.method} method is not allowed for this endpoint'
        )

    @app.errorhandler(429)
    def rate_limited_error(error):
        """Handle 429 Too Many Requests errors"""
        app.logger.warning(f"Rate limit exceeded from {request.remote_addr}: {request.url}")
        return _json_error(429, 'Too Many Requests', 'Rate limit exceeded')

    @app.errorhandler(500)
    def internal_error(error):
        """Handle 500 Internal Server Error"""
        from patrol_scheduler.utils.validators import sanitize_request_data

        error_id = datetime.utcnow().strftime('%Y%m%d_%H%M%S_%f')
        app.logger.error(f"Internal Server Error [{error_id}]: {str(error)}")
        app.logger.error(f"Traceback [{error_id}]: {traceback.format_exc()}")

        # Log request details for debugging (SANITIZED to prevent credential leakage)
        app.logger.error(f"Request details [{error_id}]: {request.method} {request.url}")
        request_data = sanitize_request_data(request.get_data(as_text=True)[:1000])
        app.logger.error(f"Request data [{error_id}]: {request_data}")

        return _json_error(500, 'Internal Server Error', 'An unexpected error occurred', error_id=error_id)


def handle_materialize_error(operation, error, context=None):
    """Centralized materialization error logging"""
    logger = logging.getLogger('materialize')
    error_id = datetime.utcnow().strftime('%Y%m%d_%H%M%S_%f')

    log_message = f"MATERIALIZE ERROR [{error_id}] in {operation}: {str(error)}"
    if context:
        log_message += f" | Context: {context}"

    logger.error(log_message)
    logger.debug(f"MATERIALIZE ERROR TRACEBACK [{error_id}]: {traceback.format_exc()}")

    return {
        'error_id': error_id,
        'operation': operation,
        'error_message': str(error),
        'timestamp': datetime.utcnow().isoformat()
    }


class MaterializationLogger:
    """Specialized logger for materialization runs"""

    def __init__(self, name='materialize'):
        self.logger = logging.getLogger(name)

    def run_started(self, operation, details=None):
        """Log materialization run start"""
        message = f"Started: {operation}"
        if details:
            message += f" | {details}"
        self.logger.info(message)

    def run_completed(self, operation, stats=None):
        """Log materialization run completion"""
        message = f"Completed: {operation}"
        if stats:
            message += f" | Stats: {stats}"
        self.logger.info(message)

    def run_failed(self, operation, error, context=None):
        """Log materialization run failure"""
        error_details = handle_materialize_error(operation, error, context)
        return error_details['error_id']

    def run_warning(self, operation, message):
        """Log materialization warnings"""
        self.logger.warning(f"{operation}: {message}")


# Global materialization logger instance
materialize_logger = MaterializationLogger()
