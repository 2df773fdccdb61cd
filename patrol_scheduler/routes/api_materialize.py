"""
Materialization API Routes
Triggers materialization and exposes run history
"""
from flask import Blueprint, request, jsonify, current_app
from patrol_scheduler.error_handlers import handle_errors
from patrol_scheduler.error_handlers.exceptions import ResourceNotFoundException
from patrol_scheduler.models import get_models
from patrol_scheduler.services.materializer import Materializer
from patrol_scheduler.utils.validators import (
    get_json_body, parse_datetime_param, parse_int_param, validate_required_fields
)

api_materialize_bp = Blueprint('api_materialize', __name__, url_prefix='/api/materialize')


@api_materialize_bp.route('', methods=['POST'])
@handle_errors
def materialize():
    """
    Materialize bookings from recurring assignments

    Body:
        from: Range start, inclusive
        to: Range end, exclusive
        schedule_id: Optional, restricts the run to one schedule
    """
    data = get_json_body()
    validate_required_fields(data, ['from', 'to'])

    db = current_app.extensions['sqlalchemy']
    materializer = Materializer(db.session, get_models())
    result = materializer.materialize(
        range_start=parse_datetime_param(data['from'], 'from'),
        range_end=parse_datetime_param(data['to'], 'to'),
        schedule_id=parse_int_param(data.get('schedule_id'), 'schedule_id'),
        run_type='manual'
    )

    return jsonify({
        'success': True,
        **result.to_dict()
    })


@api_materialize_bp.route('/runs', methods=['GET'])
@handle_errors
def list_runs():
    """Most recent materialization runs first"""
    db = current_app.extensions['sqlalchemy']
    MaterializationRun = get_models()['MaterializationRun']

    limit = parse_int_param(request.args.get('limit'), 'limit') or 20
    limit = max(1, min(limit, 200))

    runs = db.session.query(MaterializationRun).order_by(
        MaterializationRun.started_at.desc(),
        MaterializationRun.id.desc()
    ).limit(limit).all()

    return jsonify({
        'success': True,
        'runs': [r.to_dict() for r in runs]
    })


@api_materialize_bp.route('/runs/<int:run_id>', methods=['GET'])
@handle_errors
def get_run(run_id):
    db = current_app.extensions['sqlalchemy']
    MaterializationRun = get_models()['MaterializationRun']

    run = db.session.get(MaterializationRun, run_id)
    if not run:
        raise ResourceNotFoundException(f'Materialization run {run_id} not found')

    return jsonify({
        'success': True,
        'run': run.to_dict()
    })
