"""
Users API Routes
Manages patrol volunteers
"""
from flask import Blueprint, request, jsonify, current_app
from patrol_scheduler.error_handlers import handle_errors
from patrol_scheduler.models import get_models
from patrol_scheduler.services.user_service import UserService
from patrol_scheduler.utils.validators import get_json_body, parse_bool_param, validate_required_fields

api_users_bp = Blueprint('api_users', __name__, url_prefix='/api/users')


def _service():
    db = current_app.extensions['sqlalchemy']
    return UserService(db.session, get_models())


@api_users_bp.route('', methods=['GET'])
@handle_errors
def list_users():
    users = _service().list(role=request.args.get('role'))
    return jsonify({
        'success': True,
        'users': [u.to_dict() for u in users]
    })


@api_users_bp.route('', methods=['POST'])
@handle_errors
def create_user():
    """Register a volunteer"""
    data = get_json_body()
    validate_required_fields(data, ['name'])

    user = _service().create(
        name=data['name'],
        phone=data.get('phone'),
        role=data.get('role') or 'owl'
    )
    return jsonify({
        'success': True,
        'user': user.to_dict(),
        'message': f"User '{user.name}' created successfully"
    }), 201


@api_users_bp.route('/<int:user_id>', methods=['GET'])
@handle_errors
def get_user(user_id):
    return jsonify({
        'success': True,
        'user': _service().get(user_id).to_dict()
    })


@api_users_bp.route('/<int:user_id>', methods=['DELETE'])
@handle_errors
def delete_user(user_id):
    """
    Delete a user and their recurring assignments

    Query params:
        cascade: true to cancel live future bookings instead of failing with 409
    """
    cascade = parse_bool_param(request.args.get('cascade'), 'cascade') or False
    summary = _service().delete(user_id, cascade=cascade)
    return jsonify({
        'success': True,
        'message': 'User deleted successfully',
        **summary
    })
