"""
Shared datetime helpers.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from .errors import InvalidInput


def ensure_utc(dt: datetime) -> datetime:
    """Return a timezone-aware UTC datetime."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_timestamp(value: str) -> Optional[datetime]:
    """Parse an ISO 8601 timestamp and normalize it to UTC."""
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    return ensure_utc(parsed)


def parse_cutoff(value: str) -> datetime:
    """Parse the user supplied cutoff date.

    Accepts a plain date (``2020-01-01``, midnight UTC) or a full ISO 8601
    timestamp. Raises InvalidInput when the value cannot be parsed.
    """
    parsed = parse_timestamp(value)
    if parsed is None:
        raise InvalidInput(f"Requested date {value!r} is not a valid ISO 8601 date.")
    return parsed


def format_timestamp(dt: Optional[datetime]) -> str:
    """Render a UTC timestamp the way the npm registry does."""
    if dt is None:
        return "unknown"
    return ensure_utc(dt).isoformat(timespec="milliseconds").replace("+00:00", "Z")
