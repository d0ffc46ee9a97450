"""
Clock and ISO 8601 timestamp helpers.

Memory operations never read the wall clock directly; they take a ``clock``
callable so callers (and tests) decide what "now" is.
"""

from datetime import date, datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]

SECONDS_PER_DAY = 86400


def utc_now() -> datetime:
    """Default clock: the current time in UTC."""
    return datetime.now(timezone.utc)


def format_timestamp(dt: datetime) -> str:
    """Format a datetime as an ISO 8601 string, assuming UTC when naive."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()


def parse_timestamp(value: str) -> datetime:
    """
    Parse an ISO 8601 timestamp. Accepts a trailing ``Z`` and naive values
    (treated as UTC).

    Raises:
        ValueError: If the string is not a valid timestamp
    """
    dt = datetime.fromisoformat(value.replace('Z', '+00:00'))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def ensure_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def seconds_since(earlier: str, now: datetime) -> float:
    return (ensure_utc(now) - parse_timestamp(earlier)).total_seconds()


def whole_days_between(earlier: str, now: datetime) -> int:
    """Number of whole days (floor of seconds / 86400) from ``earlier`` to ``now``."""
    elapsed = seconds_since(earlier, now)
    return int(elapsed // SECONDS_PER_DAY)


def epoch_millis(dt: datetime) -> int:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def utc_date(dt: datetime) -> str:
    """Calendar date (``YYYY-MM-DD``) of ``dt`` in UTC."""
    return ensure_utc(dt).astimezone(timezone.utc).date().isoformat()


def days_between_dates(earlier: str, later: str) -> int:
    """Whole days from one ``YYYY-MM-DD`` date to another."""
    return (date.fromisoformat(later) - date.fromisoformat(earlier)).days
