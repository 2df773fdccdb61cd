"""
Error handling decorators

Provides decorators for consistent error handling across endpoints.
"""
from functools import wraps
from flask import jsonify, current_app
from datetime import datetime
from sqlalchemy.exc import OperationalError

from .exceptions import AppException, StorageUnavailable


def handle_errors(f):
    """
    Universal error handler decorator - use on all endpoints

    Provides:
    - Consistent JSON error responses
    - Automatic logging with error IDs
    - Exception type hierarchy support
    - Session rollback so failed writes are never partially applied

    Usage:
        @api_bp.route('/endpoint')
        @handle_errors
        def my_endpoint():
            if not valid:
                raise ValidationException('Invalid input')
            return jsonify({'success': True})

    Args:
        f: Function to decorate

    Returns:
        Decorated function with error handling
    """
    @wraps(f)
    def decorated(*args, **kwargs):
        db = current_app.extensions['sqlalchemy']
        try:
            return f(*args, **kwargs)

        except AppException as e:
            db.session.rollback()
            current_app.logger.warning(
                f"{e.error_type} in {f.__name__}: {e.message}",
                extra={'details': e.details} if e.details else {}
            )
            return jsonify(e.to_dict()), e.status_code

        except OperationalError as e:
            db.session.rollback()
            current_app.logger.error(f"Storage unavailable in {f.__name__}: {str(e)}")
            error = StorageUnavailable('Storage is temporarily unavailable, retry the request')
            return jsonify(error.to_dict()), error.status_code

        except Exception as e:
            db.session.rollback()
            error_id = datetime.utcnow().strftime('%Y%m%d_%H%M%S_%f')

            current_app.logger.error(
                f"Unexpected error [{error_id}] in {f.__name__}: {str(e)}",
                exc_info=True
            )

            # Don't expose internal error details in production
            return jsonify({
                'error': 'InternalError',
                'message': 'An unexpected error occurred',
                'error_id': error_id,
                'status_code': 500
            }), 500

    return decorated
