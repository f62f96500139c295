"""Time utilities."""

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current UTC time as a naive datetime.

    Timestamps are stored naive-UTC so SQLite and Postgres round-trip
    the same values.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def from_unix(timestamp: Optional[int]) -> Optional[datetime]:
    """Convert a Unix timestamp (seconds) into a naive UTC datetime."""
    if timestamp is None:
        return None
    return datetime.fromtimestamp(int(timestamp), tz=timezone.utc).replace(tzinfo=None)


def elapsed_seconds(start: datetime, end: Optional[datetime] = None) -> float:
    """Seconds between ``start`` and ``end`` (defaults to now)."""
    end = end or utcnow()
    return (end - start).total_seconds()
