"""Datetime helpers shared across the application."""

from __future__ import annotations

from datetime import UTC, datetime

__all__ = [
    "utc_now",
    "to_timestamp",
    "from_timestamp",
    "serialize_datetime",
]


def utc_now() -> datetime:
    """Return the current time as an aware UTC ``datetime``."""
    return datetime.now(tz=UTC)


def to_timestamp(value: datetime) -> float:
    """Return POSIX seconds for ``value``, treating naive values as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.timestamp()


def from_timestamp(value: float | None) -> datetime | None:
    """Convert stored POSIX seconds back into an aware UTC ``datetime``."""
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=UTC)


def serialize_datetime(value: datetime | None) -> str | None:
    """Serialise ``value`` to ISO 8601 in UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.isoformat()
    return value.astimezone(UTC).isoformat()
