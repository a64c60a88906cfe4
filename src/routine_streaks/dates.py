"""Date key normalization in the fixed reference timezone.

Every component works on YYYY-MM-DD strings produced here, never on the
device or session timezone, so a traveling user's day boundary stays put.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DEFAULT_TIMEZONE = "America/New_York"


def _zone(tz: str | None) -> ZoneInfo:
    try:
        return ZoneInfo(tz or DEFAULT_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo(DEFAULT_TIMEZONE)


def _parse_date(d: str) -> date:
    """Parse a YYYY-MM-DD string to a date object."""
    return date.fromisoformat(d)


def to_date_key(value: datetime | date | str, tz: str | None = None) -> str:
    """Return the YYYY-MM-DD key of a timestamp in the reference timezone.

    Naive datetimes and timestamp strings are taken as UTC. Dates and bare
    YYYY-MM-DD strings are already calendar days and pass through unchanged.
    """
    if isinstance(value, str):
        if len(value) == 10:
            return _parse_date(value).isoformat()
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(_zone(tz)).date().isoformat()
    return value.isoformat()


def iso_weekday(value: datetime | date | str, tz: str | None = None) -> int:
    """ISO weekday (1=Mon..7=Sun) of a timestamp or date key."""
    return _parse_date(to_date_key(value, tz)).isoweekday()


def now_in_reference_tz(tz: str | None = None, now: datetime | None = None) -> datetime:
    """Current wall-clock time in the reference timezone."""
    current = now or datetime.now(tz=timezone.utc)
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)
    return current.astimezone(_zone(tz))


def today_key(tz: str | None = None, now: datetime | None = None) -> str:
    return now_in_reference_tz(tz, now).date().isoformat()


def shift_days(date_key: str, days: int) -> str:
    """Move a date key forward (or backward with negative days)."""
    return (_parse_date(date_key) + timedelta(days=days)).isoformat()


def date_range(start: str, end: str) -> list[str]:
    """All date keys from start to end inclusive. Empty when start > end."""
    first = _parse_date(start)
    last = _parse_date(end)
    span = (last - first).days
    return [(first + timedelta(days=i)).isoformat() for i in range(span + 1)]


def week_start(date_key: str) -> str:
    """Monday of the ISO week containing date_key."""
    d = _parse_date(date_key)
    return (d - timedelta(days=d.isoweekday() - 1)).isoformat()


def week_bounds(date_key: str) -> tuple[str, str]:
    """(Monday, Sunday) of the ISO week containing date_key."""
    start = week_start(date_key)
    return (start, shift_days(start, 6))


def month_start(date_key: str) -> str:
    return _parse_date(date_key).replace(day=1).isoformat()


def year_start(date_key: str) -> str:
    return _parse_date(date_key).replace(month=1, day=1).isoformat()
