"""Datetime helpers shared by services and serializers."""

from __future__ import annotations

from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """
    Return value as an aware UTC datetime.

    SQLite drops tzinfo on round-trip; every stored timestamp is written in
    UTC, so naive values are tagged rather than converted.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def isoformat_utc(value: datetime | None) -> str | None:
    """Serialize as ISO-8601 with a trailing Z, matching what browsers emit."""
    normalized = as_utc(value)
    if normalized is None:
        return None
    return normalized.isoformat(timespec="milliseconds").replace("+00:00", "Z")
