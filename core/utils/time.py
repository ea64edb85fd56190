"""
Time Utilities

This module provides utilities for handling timestamps and date ranges.

Yahoo Finance returns timestamps as seconds since epoch, and clients ask for
historical windows as short period strings ("30d", "6m", "1y"). The helpers
here normalize both into timezone-aware UTC datetimes.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple, Union

from dateutil import parser as dateparser

from core.errors import InvalidPeriodError


DEFAULT_PERIOD_DAYS = 30

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Days per unit for period strings
PERIOD_UNITS = {
    "d": 1,
    "m": 30,
    "y": 365,
}

_PERIOD_RE = re.compile(r"^\s*([+-]?\d+)")


def to_utc_datetime(timestamp: Union[int, float]) -> datetime:
    """
    Convert a timestamp (seconds or milliseconds) to UTC datetime.

    Detection Logic:
        - If |timestamp| > 1e12 (1 trillion): Assumed to be milliseconds
        - Otherwise: Assumed to be seconds

    Negative timestamps (bars before 1970) are valid. The datetime is built
    by offsetting the epoch, since fromtimestamp() rejects pre-1970 values
    on some platforms.

    Args:
        timestamp: Unix timestamp in seconds or milliseconds

    Returns:
        datetime: Timezone-aware datetime object in UTC

    Raises:
        ValueError: If timestamp is outside the datetime range

    Examples:
        >>> to_utc_datetime(1704110400000)
        datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)

        >>> to_utc_datetime(1704110400)
        datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)
    """
    if abs(timestamp) > 1e12:
        timestamp = timestamp / 1000.0

    try:
        return EPOCH + timedelta(seconds=timestamp)
    except (OverflowError, ValueError) as e:
        raise ValueError(f"Invalid timestamp: {timestamp}. Error: {e}")


def datetime_to_timestamp(dt: datetime, milliseconds: bool = False) -> int:
    """
    Convert a datetime object to Unix timestamp.

    Args:
        dt: Datetime object (can be naive or timezone-aware)
        milliseconds: If True, return milliseconds; if False, return seconds

    Returns:
        int: Unix timestamp in seconds or milliseconds

    Notes:
        - If datetime is naive (no timezone), UTC is assumed
        - Result is always an integer (fractional seconds are truncated)
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    timestamp = int(dt.timestamp())

    if milliseconds:
        timestamp *= 1000

    return timestamp


def current_utc_datetime() -> datetime:
    """Get current time as timezone-aware datetime in UTC."""
    return datetime.now(timezone.utc)


def to_iso(dt: datetime) -> str:
    """
    ISO-8601 representation used inside cache keys.

    Naive datetimes are treated as UTC so the same instant always
    produces the same string.

    Example:
        >>> to_iso(datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc))
        '2024-01-01T12:00:00.000+00:00'
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds")


def to_calendar_date(timestamp: Union[int, float]) -> str:
    """Calendar date (YYYY-MM-DD, UTC) of an epoch timestamp."""
    return to_utc_datetime(timestamp).date().isoformat()


# ============================================
# Period Parsing
# ============================================

def period_to_days(period: Optional[str], default_days: int = DEFAULT_PERIOD_DAYS) -> int:
    """
    Convert a period string to a number of days.

    Supported suffixes:
        - "d": days         ("45d" -> 45)
        - "m": months of 30 ("2m"  -> 60)
        - "y": years of 365 ("1y"  -> 365)

    A missing period or a period with any other suffix yields ``default_days``.
    Units are case-insensitive ("5Y" == "5y"). "0d" is an empty window
    ending now.

    Raises:
        InvalidPeriodError: If a d/m/y period has no leading integer or it is negative
    """
    if not period:
        return default_days

    period = period.strip().lower()
    unit = period[-1:]
    if unit not in PERIOD_UNITS:
        return default_days

    match = _PERIOD_RE.match(period)
    if not match:
        raise InvalidPeriodError(f"Invalid period: '{period}'")

    amount = int(match.group(1))
    if amount < 0:
        raise InvalidPeriodError(f"Period cannot be negative: '{period}'")

    return amount * PERIOD_UNITS[unit]


def period_to_range(
    period: Optional[str],
    now: Optional[datetime] = None,
    default_days: int = DEFAULT_PERIOD_DAYS
) -> Tuple[datetime, datetime]:
    """
    Convert a period string to a (start, end) pair ending at ``now``.

    Example:
        >>> start, end = period_to_range("2m")
        >>> (end - start).days
        60
    """
    end = now or current_utc_datetime()
    start = end - timedelta(days=period_to_days(period, default_days))
    return start, end


def parse_date(value: str) -> datetime:
    """
    Parse a user-supplied date/datetime string into a UTC datetime.

    Accepts anything python-dateutil understands ("2024-01-31",
    "2024-01-31T15:30:00Z", ...). Naive values are taken as UTC.

    Raises:
        InvalidPeriodError: If the value cannot be parsed
    """
    try:
        dt = dateparser.isoparse(value)
    except (ValueError, OverflowError):
        try:
            dt = dateparser.parse(value)
        except (ValueError, OverflowError) as e:
            raise InvalidPeriodError(f"Invalid date: '{value}'") from e

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def resolve_range(
    period: Optional[str] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
    now: Optional[datetime] = None,
    default_days: int = DEFAULT_PERIOD_DAYS
) -> Tuple[datetime, datetime]:
    """
    Resolve the historical window for a request.

    Explicit ``start``/``end`` dates win over ``period``. A missing ``end``
    means now; a missing ``start`` means ``period`` days before ``end``.

    Raises:
        InvalidPeriodError: If a value cannot be parsed or start is after end
    """
    if not start and not end:
        return period_to_range(period, now=now, default_days=default_days)

    end_dt = parse_date(end) if end else (now or current_utc_datetime())
    if start:
        start_dt = parse_date(start)
    else:
        start_dt = end_dt - timedelta(days=period_to_days(period, default_days))

    if start_dt > end_dt:
        raise InvalidPeriodError(f"start ({start_dt.date()}) must not be after end ({end_dt.date()})")
    return start_dt, end_dt
