from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

# Time source injected into membership operations; only used for timestamps.
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """Convert a datetime to UTC, assuming UTC for naive values."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
