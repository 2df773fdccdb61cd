"""
Bookings API Routes
Lists materialized and manual bookings, and handles manual booking/cancellation
"""
from flask import Blueprint, request, jsonify, current_app
from patrol_scheduler.error_handlers import handle_errors
from patrol_scheduler.models import get_models
from patrol_scheduler.services.booking_service import BookingService
from patrol_scheduler.utils.validators import (
    get_json_body, parse_bool_param, parse_datetime_param, parse_int_param,
    validate_required_fields
)

api_bookings_bp = Blueprint('api_bookings', __name__, url_prefix='/api/bookings')


def _service():
    db = current_app.extensions['sqlalchemy']
    return BookingService(db.session, get_models())


@api_bookings_bp.route('', methods=['GET'])
@handle_errors
def list_bookings():
    """
    List bookings

    Query params:
        from, to: Range on shift start, [from, to)
        user_id, schedule_id: Exact filters
        is_recurring: true for materialized bookings, false for manual ones
    """
    bookings = _service().list_bookings(
        range_start=parse_datetime_param(request.args.get('from'), 'from', required=False),
        range_end=parse_datetime_param(request.args.get('to'), 'to', required=False),
        user_id=parse_int_param(request.args.get('user_id'), 'user_id'),
        schedule_id=parse_int_param(request.args.get('schedule_id'), 'schedule_id'),
        is_recurring=parse_bool_param(request.args.get('is_recurring'), 'is_recurring')
    )
    return jsonify({
        'success': True,
        'bookings': [b.to_dict() for b in bookings],
        'count': len(bookings)
    })


@api_bookings_bp.route('', methods=['POST'])
@handle_errors
def create_booking():
    """Book a user onto one occurrence of a schedule"""
    data = get_json_body()
    validate_required_fields(data, ['schedule_id', 'user_id', 'shift_start'])

    booking = _service().create_booking(
        schedule_id=parse_int_param(data['schedule_id'], 'schedule_id', required=True),
        user_id=parse_int_param(data['user_id'], 'user_id', required=True),
        shift_start=parse_datetime_param(data['shift_start'], 'shift_start'),
        position_index=parse_int_param(data.get('position_index'), 'position_index'),
        buddy_name=data.get('buddy_name')
    )
    return jsonify({
        'success': True,
        'booking': booking.to_dict(),
        'message': 'Booking created successfully'
    }), 201


@api_bookings_bp.route('/<int:booking_id>', methods=['GET'])
@handle_errors
def get_booking(booking_id):
    return jsonify({
        'success': True,
        'booking': _service().get(booking_id).to_dict()
    })


@api_bookings_bp.route('/<int:booking_id>', methods=['DELETE'])
@handle_errors
def cancel_booking(booking_id):
    """Cancel a booking"""
    booking = _service().cancel(booking_id)
    return jsonify({
        'success': True,
        'booking': booking,
        'message': 'Booking cancelled'
    })
