"""
Schedules API Routes
Manages recurring patrol schedules and exposes their occurrences
"""
from flask import Blueprint, request, jsonify, current_app
from patrol_scheduler.error_handlers import handle_errors
from patrol_scheduler.models import get_models
from patrol_scheduler.services.schedule_service import ScheduleService
from patrol_scheduler.utils.validators import (
    get_json_body, parse_bool_param, parse_datetime_param, parse_int_param,
    parse_optional_date, validate_required_fields
)

api_schedules_bp = Blueprint('api_schedules', __name__, url_prefix='/api/schedules')


def _service():
    db = current_app.extensions['sqlalchemy']
    return ScheduleService(db.session, get_models())


def _schedule_fields(data):
    """Translate a JSON body into ScheduleService keyword arguments"""
    fields = {}
    for key in ('name', 'cron_expr', 'timezone'):
        if key in data:
            fields[key] = data[key]
    if 'duration_minutes' in data:
        fields['duration_minutes'] = parse_int_param(data['duration_minutes'], 'duration_minutes')
    if 'positions_available' in data:
        fields['positions_available'] = parse_int_param(data['positions_available'], 'positions_available')
    for key in ('start_date', 'end_date'):
        if key in data:
            fields[key] = parse_optional_date(data[key], key)
    return fields


@api_schedules_bp.route('', methods=['GET'])
@handle_errors
def list_schedules():
    """Get all schedules"""
    schedules = _service().list()
    return jsonify({
        'success': True,
        'schedules': [s.to_dict() for s in schedules]
    })


@api_schedules_bp.route('', methods=['POST'])
@handle_errors
def create_schedule():
    """Create a new schedule"""
    data = get_json_body()
    validate_required_fields(data, ['name', 'cron_expr'])

    fields = _schedule_fields(data)
    if fields.get('positions_available') is None:
        fields.pop('positions_available', None)
    schedule = _service().create(**fields)

    return jsonify({
        'success': True,
        'schedule': schedule.to_dict(),
        'message': f"Schedule '{schedule.name}' created successfully"
    }), 201


@api_schedules_bp.route('/<int:schedule_id>', methods=['GET'])
@handle_errors
def get_schedule(schedule_id):
    """Get a specific schedule"""
    schedule = _service().get(schedule_id)
    return jsonify({
        'success': True,
        'schedule': schedule.to_dict()
    })


@api_schedules_bp.route('/<int:schedule_id>', methods=['PUT'])
@handle_errors
def update_schedule(schedule_id):
    """Update a schedule"""
    fields = _schedule_fields(get_json_body())
    schedule = _service().update(schedule_id, **fields)
    return jsonify({
        'success': True,
        'schedule': schedule.to_dict(),
        'message': 'Schedule updated successfully'
    })


@api_schedules_bp.route('/<int:schedule_id>', methods=['DELETE'])
@handle_errors
def delete_schedule(schedule_id):
    """
    Delete a schedule and its recurring assignments

    Query params:
        cascade: true to cancel live future bookings instead of failing with 409
    """
    cascade = parse_bool_param(request.args.get('cascade'), 'cascade') or False
    summary = _service().delete(schedule_id, cascade=cascade)
    return jsonify({
        'success': True,
        'message': 'Schedule deleted successfully',
        **summary
    })


@api_schedules_bp.route('/<int:schedule_id>/occurrences', methods=['GET'])
@handle_errors
def list_occurrences(schedule_id):
    """
    List occurrences in [from, to) with their bookings

    Query params:
        from: YYYY-MM-DD or ISO-8601 datetime (inclusive)
        to: YYYY-MM-DD or ISO-8601 datetime (exclusive)
    """
    range_start = parse_datetime_param(request.args.get('from'), 'from')
    range_end = parse_datetime_param(request.args.get('to'), 'to')

    occurrences = _service().list_occurrences(schedule_id, range_start, range_end)
    return jsonify({
        'success': True,
        'schedule_id': schedule_id,
        'occurrences': occurrences
    })


@api_schedules_bp.route('/open-slots', methods=['GET'])
@handle_errors
def list_open_slots():
    """
    List occurrences across all schedules that still have an open position

    Query params:
        from: YYYY-MM-DD or ISO-8601 datetime (inclusive)
        to: YYYY-MM-DD or ISO-8601 datetime (exclusive)
    """
    range_start = parse_datetime_param(request.args.get('from'), 'from')
    range_end = parse_datetime_param(request.args.get('to'), 'to')

    open_slots = _service().list_open_slots(range_start, range_end)
    return jsonify({
        'success': True,
        'open_slots': open_slots,
        'count': len(open_slots)
    })
