"""Utility functions for Community Connect.

This module provides common helper functions for datetime handling,
media file naming, and safe logging of secrets.
"""

from datetime import UTC, datetime
from typing import Any

from dateutil import parser as dateutil_parser  # type: ignore[import-untyped]


def parse_datetime(value: str | datetime | None) -> datetime | None:
    """Parse ISO8601 timestamp string into timezone-aware UTC datetime.

    Args:
        value: ISO8601 timestamp string, datetime object, or None

    Returns:
        Parsed timezone-aware datetime in UTC, or None if input is None

    Raises:
        ValueError: If timestamp format is invalid

    Example:
        >>> dt = parse_datetime("2024-01-15T10:30:00+00:00")
        >>> dt.tzinfo
        datetime.timezone.utc
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    dt = dateutil_parser.isoparse(value)

    # Postgres timestamptz without offset is UTC
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)

    return dt.astimezone(UTC)


def utc_now() -> datetime:
    """Get current UTC timestamp as timezone-aware datetime."""
    return datetime.now(UTC)


def format_iso(dt: datetime | None) -> str | None:
    """Format datetime as ISO8601 string with 'Z' suffix.

    Args:
        dt: Datetime object or None

    Returns:
        ISO8601 formatted string or None if input is None

    Example:
        >>> dt = datetime(2024, 1, 15, 10, 30, tzinfo=UTC)
        >>> format_iso(dt)
        '2024-01-15T10:30:00Z'
    """
    if dt is None:
        return None
    return dt.astimezone(UTC).isoformat().replace("+00:00", "Z")


def epoch_millis(dt: datetime) -> int:
    """Milliseconds since the Unix epoch."""
    return int(dt.timestamp() * 1000)


def file_extension(filename: str) -> str:
    """Return the text after the last dot of a filename.

    A name without a dot is returned whole.

    Example:
        >>> file_extension("clip.final.mp4")
        'mp4'
        >>> file_extension("README")
        'README'
    """
    return filename.rsplit(".", 1)[-1]


def redact_token(token: str | None) -> str:
    """Redact sensitive tokens for safe logging.

    Args:
        token: Token string to redact

    Returns:
        Redacted token showing only first 8 and last 4 characters

    Example:
        >>> redact_token("abcdefghijklmnop")
        'abcdefgh...mnop'
        >>> redact_token("short")
        '***'
        >>> redact_token(None)
        'None'
    """
    if not token:
        return "None"
    return f"{token[:8]}...{token[-4:]}" if len(token) > 12 else "***"


def safe_get(data: Any, *keys: str, default: Any = None) -> Any:
    """Safely navigate nested dictionary structure.

    Example:
        >>> data = {"user": {"id": "u1"}}
        >>> safe_get(data, "user", "id")
        'u1'
        >>> safe_get(data, "user", "email", default="")
        ''
    """
    for key in keys:
        if isinstance(data, dict):
            data = data.get(key)
            if data is None:
                return default
        else:
            return default
    return data


def ensure_list(value: Any) -> list[Any]:
    """Ensure value is a list, wrapping if necessary.

    Example:
        >>> ensure_list({"id": 1})
        [{'id': 1}]
        >>> ensure_list(None)
        []
    """
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]
