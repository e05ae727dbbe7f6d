"""
Server clock helpers

All timestamps are stored as naive UTC so PostgreSQL and SQLite round-trip
them identically.
"""
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_epoch(value: Optional[datetime]) -> Optional[float]:
    """Naive-UTC datetime -> POSIX seconds"""
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc).timestamp()


def from_epoch(seconds: float) -> datetime:
    return datetime.fromtimestamp(seconds, tz=timezone.utc).replace(tzinfo=None)
