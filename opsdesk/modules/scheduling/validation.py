"""Input coercion shared by the scheduling services."""

import re
from datetime import date, datetime

from opsdesk.core.errors import ScheduleValidationError


_DIGITS = re.compile(r"^\s*\d+\s*$")


def require_text(value: str | None, field: str) -> str:
    """Return a non-blank string or raise a validation error for field."""
    if value is None or not str(value).strip():
        raise ScheduleValidationError(field, "is required")
    return str(value).strip()


def coerce_positive_int(value: object, field: str) -> int:
    """Coerce an int, integral float or digit string to a positive int.

    Raises:
        ScheduleValidationError: If the value is missing, fractional, non-numeric or not > 0
    """
    if isinstance(value, bool):
        raise ScheduleValidationError(field, "must be a positive integer")

    if isinstance(value, int):
        number = value
    elif isinstance(value, float) and value.is_integer():
        number = int(value)
    elif isinstance(value, str) and _DIGITS.match(value):
        number = int(value)
    else:
        raise ScheduleValidationError(field, "must be a positive integer")

    if number <= 0:
        raise ScheduleValidationError(field, "must be a positive integer")
    return number


def parse_day(value: str | date | None, field: str = "date") -> date | None:
    """Parse a calendar day from YYYY-MM-DD or any ISO timestamp (None passes through)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        raise ScheduleValidationError(field, f"invalid date {value!r}") from None
