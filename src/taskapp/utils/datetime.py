"""Datetime utilities with consistent timezone handling.

Task rows carry two kinds of temporal values: calendar dates (start/due
dates, ``YYYY-MM-DD``) and timestamps (created/updated/completed, ISO 8601).
Timestamps are kept timezone-aware in UTC; calendar days are derived from
them with an explicit UTC offset so the whole team buckets events into the
same business day.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Iterator, Optional, Union


def now_utc() -> datetime:
    """Return current datetime in UTC timezone.

    Returns:
        Current datetime with timezone=UTC
    """
    return datetime.now(timezone.utc)


def ensure_aware(dt: Optional[datetime]) -> Optional[datetime]:
    """Ensure datetime is timezone-aware, assuming UTC if naive.

    Args:
        dt: Datetime to check/convert, or None

    Returns:
        Timezone-aware datetime, or None if input was None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        # Naive datetime - assume UTC
        return dt.replace(tzinfo=timezone.utc)

    return dt


def to_iso_string(dt: Optional[datetime]) -> Optional[str]:
    """Convert datetime to ISO string with timezone info.

    Args:
        dt: Datetime to convert, or None

    Returns:
        ISO format string with timezone, or None if input was None
    """
    if dt is None:
        return None

    aware_dt = ensure_aware(dt)
    return aware_dt.isoformat()


def parse_timestamp(value: Union[str, datetime, date, None]) -> Optional[datetime]:
    """Parse an ISO 8601 timestamp into an aware datetime.

    Accepts the ``Z`` suffix PostgreSQL/JSON producers emit. Plain dates are
    read as midnight UTC. Empty values return None.

    Raises:
        ValueError: If the string is not a valid ISO timestamp
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_aware(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)

    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return ensure_aware(datetime.fromisoformat(text))


def parse_date(value: Union[str, datetime, date, None]) -> Optional[date]:
    """Parse a ``YYYY-MM-DD`` calendar date.

    Full timestamps are accepted too and truncated to their date part.

    Raises:
        ValueError: If the string is not a valid date
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = value.strip()
    if len(text) > 10:
        return parse_timestamp(text).date()
    return date.fromisoformat(text)


def to_local_date(dt: Optional[datetime], utc_offset: timedelta = timedelta(0)) -> Optional[date]:
    """Return the calendar day a timestamp falls on at the given UTC offset."""
    if dt is None:
        return None
    return (ensure_aware(dt).astimezone(timezone.utc) + utc_offset).date()


def today_local(utc_offset: timedelta = timedelta(0)) -> date:
    """Today's date at the given UTC offset."""
    return to_local_date(now_utc(), utc_offset)


def date_range(start: date, end: date) -> Iterator[date]:
    """Yield every day from start to end, both inclusive."""
    current = start
    while current <= end:
        yield current
        if current == date.max:
            return
        current += timedelta(days=1)


def days_between(start: date, end: date) -> int:
    """Signed number of days from start to end."""
    return (end - start).days
