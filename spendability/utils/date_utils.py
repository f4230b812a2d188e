"""Date parsing utilities"""

from datetime import date, datetime
from typing import Any, Optional


def parse_date(value: Any) -> Optional[date]:
    """
    Coerce a stored date value into a date.

    Accepts date/datetime objects and ISO strings ("2025-11-14" or a full
    timestamp, whose calendar date part is used as-is). Returns None for
    empty or unparseable values.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            return None
    return None
