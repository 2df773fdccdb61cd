"""Timezone helpers: all instants are stored as naive UTC, local views are derived."""

from datetime import datetime, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


@lru_cache(maxsize=32)
def _get_tz(tz_name):
    return ZoneInfo(tz_name)


def get_zone(tz_name):
    """Load an IANA timezone.

    Raises:
        ValueError: If the name is empty or unknown.
    """
    if not tz_name:
        raise ValueError('Timezone name is required')
    try:
        return _get_tz(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown timezone '{tz_name}'")


def is_valid_timezone(tz_name):
    try:
        get_zone(tz_name)
    except ValueError:
        return False
    return True


def to_naive_utc(dt):
    """Normalize a datetime to a naive UTC instant.

    Aware datetimes are converted; naive datetimes are assumed to be UTC already.
    """
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def utc_to_local(dt, tz_name):
    """Convert a naive UTC datetime into an aware datetime in tz_name."""
    return dt.replace(tzinfo=timezone.utc).astimezone(get_zone(tz_name))


def local_to_utc(local_naive, tz_name):
    """Resolve a local wall-clock time to a naive UTC instant.

    Returns None for wall-clock times that do not exist in tz_name (the
    spring-forward gap). Ambiguous times resolve to their first instant.
    """
    zone = get_zone(tz_name)
    aware = local_naive.replace(tzinfo=zone, fold=0)
    utc = aware.astimezone(timezone.utc)
    if utc.astimezone(zone).replace(tzinfo=None) != local_naive:
        return None
    return utc.replace(tzinfo=None)


def utcnow():
    """Current time as a naive UTC datetime"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_local_time(dt, fmt='%Y-%m-%d %H:%M', tz_name=None):
    """Convert a naive UTC datetime to local time and format it.

    Args:
        dt: A naive datetime assumed to be UTC, or None.
        fmt: strftime format string.
        tz_name: IANA timezone name. Falls back to the app's DEFAULT_TIMEZONE.

    Returns:
        Formatted local time string, or '' if dt is None.
    """
    if dt is None:
        return ''
    if tz_name is None:
        from flask import current_app
        tz_name = current_app.config.get('DEFAULT_TIMEZONE', 'UTC')
    return utc_to_local(dt, tz_name).strftime(fmt)
