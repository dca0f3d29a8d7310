"""
utils/timestamps.py
-------------------
Conversion of SQLite timestamp text into datetime objects.
"""

from datetime import datetime
from typing import Optional


def parse_timestamp(value) -> Optional[datetime]:
    """
    Parse a value written by CURRENT_TIMESTAMP or strftime('%Y-%m-%d %H:%M:%f').

    Args:
        value: Text such as '2024-05-01 12:30:00' or '2024-05-01 12:30:00.125',
            a datetime, or None.

    Returns:
        A naive datetime in UTC, or None when the column is NULL.
    """
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))
