"""
Request validation helpers for the JSON API

Parsing failures raise ValidationException so @handle_errors renders them
as 400 responses.
"""
import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from flask import request

from patrol_scheduler.error_handlers.exceptions import ValidationException
from patrol_scheduler.utils.timezone import to_naive_utc


TRUE_VALUES = ('1', 'true', 'yes', 'on')
FALSE_VALUES = ('0', 'false', 'no', 'off')


def validate_date_param(date_str: str, param_name: str = 'date') -> date:
    """
    Parse a YYYY-MM-DD date parameter.

    Examples:
        >>> validate_date_param('2024-12-21')
        datetime.date(2024, 12, 21)
    """
    try:
        return datetime.strptime(date_str, '%Y-%m-%d').date()
    except (TypeError, ValueError):
        raise ValidationException(
            f"Invalid {param_name} format. Use YYYY-MM-DD (e.g., 2024-12-21)"
        )


def parse_datetime_param(value: Optional[str], param_name: str, required: bool = True) -> Optional[datetime]:
    """
    Parse a date or ISO-8601 datetime into a naive UTC datetime.

    A bare YYYY-MM-DD means midnight UTC. Values with an offset are
    converted to UTC; naive values are taken as UTC.
    """
    if value is None or value == '':
        if required:
            raise ValidationException(f"Missing required parameter: {param_name}")
        return None

    if isinstance(value, datetime):
        return to_naive_utc(value)

    text = str(value).strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'

    try:
        if len(text) == 10:
            parsed = datetime.combine(date.fromisoformat(text), datetime.min.time())
        else:
            parsed = datetime.fromisoformat(text)
    except ValueError:
        raise ValidationException(
            f"Invalid {param_name}. Use YYYY-MM-DD or an ISO-8601 datetime"
        )

    return to_naive_utc(parsed)


def parse_optional_date(value: Optional[str], param_name: str) -> Optional[date]:
    if value in (None, ''):
        return None
    return validate_date_param(value, param_name)


def parse_int_param(value: Any, param_name: str, required: bool = False) -> Optional[int]:
    """Parse an integer query/body value"""
    if value is None or value == '':
        if required:
            raise ValidationException(f"Missing required parameter: {param_name}")
        return None
    if isinstance(value, bool):
        raise ValidationException(f"{param_name} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationException(f"{param_name} must be an integer")


def parse_bool_param(value: Any, param_name: str) -> Optional[bool]:
    """Parse a boolean query/body value, None when absent"""
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    raise ValidationException(f"{param_name} must be true or false")


def validate_required_fields(data: Dict[str, Any], required_fields: List[str]) -> None:
    """
    Validate that all required fields are present in request data.

    Raises:
        ValidationException: If any required field is missing
    """
    missing = [field for field in required_fields if data.get(field) in (None, '')]
    if missing:
        raise ValidationException(
            f"Missing required fields: {', '.join(missing)}",
            details={'missing_fields': missing}
        )


def get_json_body() -> Dict[str, Any]:
    """Request body as a dict; a missing or non-object body is a 400"""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationException('Request body must be a JSON object')
    return data


def sanitize_request_data(data: str) -> str:
    """
    Remove sensitive data from request strings for safe logging.

    Examples:
        >>> sanitize_request_data('{"phone": "+27821234567"}')
        '{"phone": "[REDACTED]"}'
    """
    for field in ('password', 'token', 'api_key', 'secret', 'phone'):
        data = re.sub(
            rf'("{field}"\s*:\s*")[^"]*(")', r'\1[REDACTED]\2', data, flags=re.IGNORECASE
        )
    return data
