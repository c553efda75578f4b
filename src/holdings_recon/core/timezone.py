"""Timezone utilities. Ledger and cache timestamps are kept in UTC."""

from datetime import datetime
from typing import Union

import pytz
from dateutil import parser as date_parser

UTC = pytz.UTC


def now_utc() -> datetime:
    """Return current time in UTC."""
    return datetime.now(UTC)


def ensure_utc(dt: datetime) -> datetime:
    """Convert a datetime to UTC."""
    if dt.tzinfo is None:
        # Naive values come back from SQLite and the mirror; they are stored as UTC
        return UTC.localize(dt)
    return dt.astimezone(UTC)


def parse_timestamp(value: Union[str, int, float, datetime]) -> datetime:
    """
    Parse a ledger timestamp and return it in UTC.

    Accepts ISO-8601 strings, datetimes, and epoch seconds or milliseconds.
    Raises ValueError when the value cannot be interpreted.
    """
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, bool):
        raise ValueError(f"Not a timestamp: {value!r}")
    if isinstance(value, (int, float)):
        seconds = value / 1000 if value > 10_000_000_000 else value
        return datetime.fromtimestamp(seconds, UTC)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Not a timestamp: {value!r}")
    try:
        dt = date_parser.isoparse(value)
    except ValueError:
        dt = date_parser.parse(value)
    return ensure_utc(dt)
