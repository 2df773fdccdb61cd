"""
Recurring Assignments API Routes
Manages the templates that attach volunteers to recurring shift slots
"""
from flask import Blueprint, request, jsonify, current_app
from patrol_scheduler.error_handlers import handle_errors
from patrol_scheduler.models import get_models
from patrol_scheduler.services.template_service import TemplateService
from patrol_scheduler.utils.validators import (
    get_json_body, parse_bool_param, parse_int_param, validate_required_fields
)

api_recurring_assignments_bp = Blueprint(
    'api_recurring_assignments', __name__, url_prefix='/api/recurring-assignments'
)


def _service():
    db = current_app.extensions['sqlalchemy']
    return TemplateService(db.session, get_models())


def _template_fields(data):
    fields = {}
    for key in ('user_id', 'schedule_id', 'day_of_week'):
        if key in data:
            fields[key] = parse_int_param(data[key], key, required=True)
    for key in ('time_slot', 'buddy_name', 'description'):
        if key in data:
            fields[key] = data[key]
    if 'is_active' in data:
        fields['is_active'] = parse_bool_param(data['is_active'], 'is_active')
        if fields['is_active'] is None:
            fields['is_active'] = True
    return fields


@api_recurring_assignments_bp.route('', methods=['GET'])
@handle_errors
def list_recurring_assignments():
    """
    List recurring assignments

    Query params:
        user_id, schedule_id, day_of_week: Exact filters
        has_buddy: true/false
        include_inactive: false to hide inactive templates (default true)
    """
    include_inactive = parse_bool_param(request.args.get('include_inactive'), 'include_inactive')
    templates = _service().list(
        user_id=parse_int_param(request.args.get('user_id'), 'user_id'),
        schedule_id=parse_int_param(request.args.get('schedule_id'), 'schedule_id'),
        day_of_week=parse_int_param(request.args.get('day_of_week'), 'day_of_week'),
        has_buddy=parse_bool_param(request.args.get('has_buddy'), 'has_buddy'),
        include_inactive=True if include_inactive is None else include_inactive
    )
    return jsonify({
        'success': True,
        'recurring_assignments': [t.to_dict() for t in templates]
    })


@api_recurring_assignments_bp.route('', methods=['POST'])
@handle_errors
def create_recurring_assignment():
    """Create a recurring assignment"""
    data = get_json_body()
    validate_required_fields(data, ['user_id', 'schedule_id', 'day_of_week', 'time_slot'])

    template = _service().create(**_template_fields(data))
    return jsonify({
        'success': True,
        'recurring_assignment': template.to_dict(),
        'message': 'Recurring assignment created successfully'
    }), 201


@api_recurring_assignments_bp.route('/<int:template_id>', methods=['GET'])
@handle_errors
def get_recurring_assignment(template_id):
    template = _service().get(template_id)
    return jsonify({
        'success': True,
        'recurring_assignment': template.to_dict()
    })


@api_recurring_assignments_bp.route('/<int:template_id>', methods=['PUT'])
@handle_errors
def update_recurring_assignment(template_id):
    template = _service().update(template_id, **_template_fields(get_json_body()))
    return jsonify({
        'success': True,
        'recurring_assignment': template.to_dict(),
        'message': 'Recurring assignment updated successfully'
    })


@api_recurring_assignments_bp.route('/<int:template_id>', methods=['DELETE'])
@handle_errors
def delete_recurring_assignment(template_id):
    """Delete a recurring assignment; bookings it created are kept"""
    _service().delete(template_id)
    return jsonify({
        'success': True,
        'message': 'Recurring assignment deleted successfully'
    })
