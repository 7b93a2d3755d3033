"""Timestamp helpers shared by the GitHub collectors."""

from __future__ import annotations

import datetime as dt


def utcnow() -> dt.datetime:
    """Return an aware UTC timestamp."""
    return dt.datetime.now(dt.UTC)


def ensure_tzaware(value: dt.datetime, *, field: str) -> dt.datetime:
    """Return ``value`` in UTC, rejecting naive datetimes."""
    if value.tzinfo is None:
        msg = f"{field} must be timezone-aware"
        raise ValueError(msg)
    return value.astimezone(dt.UTC)


def to_github_timestamp(value: dt.datetime, *, field: str) -> str:
    """Serialise an aware datetime as the ISO-8601 ``Z`` form GitHub expects."""
    return ensure_tzaware(value, field=field).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_github_datetime(value: str) -> dt.datetime:
    """Parse a GitHub ISO-8601 timestamp into an aware UTC datetime."""
    parsed = dt.datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        msg = f"GitHub datetime missing timezone: {value}"
        raise ValueError(msg)
    return parsed.astimezone(dt.UTC)


def from_unix_seconds(value: int) -> dt.datetime:
    """Convert a Unix timestamp in seconds to an aware UTC datetime."""
    return dt.datetime.fromtimestamp(value, tz=dt.UTC)
