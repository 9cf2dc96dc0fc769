"""
Datetime utility functions.
"""

from datetime import datetime
import pytz


def utcnow() -> datetime:
    """
    Get current UTC datetime using pytz.UTC.

    Returns:
        Current UTC datetime with pytz timezone information
    """
    return datetime.now(pytz.UTC)


def isoformat_or_none(value):
    """
    Serialize a datetime to ISO 8601, passing None through.

    Naive values (SQLite drops the offset) are UTC.
    """
    if not value:
        return None
    if value.tzinfo is None:
        value = pytz.UTC.localize(value)
    return value.isoformat()
