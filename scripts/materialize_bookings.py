#!/usr/bin/env python3
"""
Materialize Recurring Assignments

Turns recurring assignment templates into bookings for a date range. Safe to
run from cron or a systemd timer: repeated runs only skip what already exists.

Usage:
    python scripts/materialize_bookings.py [--days 14]
    python scripts/materialize_bookings.py --from 2024-12-01 --to 2025-01-01 [--schedule-id 3]
    python scripts/materialize_bookings.py --days 7 --output run.json
"""

import sys
import os
import json
import argparse
from datetime import timedelta

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from patrol_scheduler import create_app
from patrol_scheduler.error_handlers import AppException
from patrol_scheduler.models import get_models, get_db
from patrol_scheduler.services.materializer import Materializer, summarize
from patrol_scheduler.utils.timezone import to_local_time, utcnow
from patrol_scheduler.utils.validators import parse_datetime_param


def run_materialization(range_from=None, range_to=None, days=None, schedule_id=None,
                        run_type='manual', config_name=None):
    """
    Run one materialization pass inside an app context.

    Args:
        range_from: Range start string (YYYY-MM-DD or ISO-8601), default now
        range_to: Range end string, default range_from + days
        days: Horizon used when range_to is omitted (default MATERIALIZE_HORIZON_DAYS)
        schedule_id: Restrict to one schedule
        run_type: 'manual' or 'automatic'
        config_name: Configuration name passed to create_app

    Returns:
        dict: Serialized MaterializationResult plus summary counts
    """
    app = create_app(config_name)

    with app.app_context():
        db = get_db()
        models = get_models()

        start = parse_datetime_param(range_from, 'from', required=False) or utcnow()
        end = parse_datetime_param(range_to, 'to', required=False)
        if end is None:
            horizon = days if days is not None else app.config.get('MATERIALIZE_HORIZON_DAYS', 14)
            end = start + timedelta(days=horizon)

        materializer = Materializer(db.session, models)
        result = materializer.materialize(start, end, schedule_id=schedule_id, run_type=run_type)

        report = result.to_dict()
        report['summary'] = summarize(result)
        report['range'] = {
            'from': start.isoformat(),
            'to': end.isoformat(),
            'local': f"{to_local_time(start)} -> {to_local_time(end)} {app.config.get('DEFAULT_TIMEZONE')}"
        }
        return report


def main():
    """Main entry point"""
    parser = argparse.ArgumentParser(description='Materialize recurring assignments into bookings')
    parser.add_argument('--from', dest='range_from', type=str, default=None,
                        help='Range start, YYYY-MM-DD or ISO-8601 (default: now)')
    parser.add_argument('--to', dest='range_to', type=str, default=None,
                        help='Range end, exclusive (default: from + --days)')
    parser.add_argument('--days', type=int, default=None,
                        help='Horizon in days when --to is omitted (default: MATERIALIZE_HORIZON_DAYS)')
    parser.add_argument('--schedule-id', type=int, default=None,
                        help='Only materialize this schedule')
    parser.add_argument('--automatic', action='store_true',
                        help='Record the run as automatic (for cron/systemd timers)')
    parser.add_argument('--config', type=str, default=None,
                        help='Configuration name (development, testing, production)')
    parser.add_argument('--output', type=str, default=None,
                        help='Write the full result as JSON to this file')

    args = parser.parse_args()

    try:
        report = run_materialization(
            range_from=args.range_from,
            range_to=args.range_to,
            days=args.days,
            schedule_id=args.schedule_id,
            run_type='automatic' if args.automatic else 'manual',
            config_name=args.config
        )
    except AppException as e:
        print(f"Materialization failed: {e}")
        sys.exit(2 if e.status_code == 503 else 1)

    summary = report['summary']
    print(f"Run {report['run_id']}: {report['range']['from']} -> {report['range']['to']}")
    print(f"  local: {report['range']['local']}")
    for key, value in summary.items():
        print(f"  {key}: {value}")

    if args.output:
        with open(args.output, 'w') as f:
            json.dump(report, f, indent=2)
        print(f"Result saved to: {args.output}")

    sys.exit(1 if summary['failed'] else 0)


if __name__ == '__main__':
    main()
