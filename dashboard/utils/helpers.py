"""
Utility helper functions for safe data handling.
"""
from datetime import datetime, timezone
from typing import Any, Optional


def safe_str(value: Any, default: str = "") -> str:
    """
    Safely convert value to string, handling None.

    Args:
        value: Any value to convert
        default: Default string if value is None

    Returns:
        String representation or default
    """
    if value is None:
        return default
    return str(value)


def safe_lower(value: Any) -> str:
    """
    Safely lowercase a value, handling None.
    """
    if value is None:
        return ""
    return str(value).lower()


def safe_int(value: Any, default: int = 0) -> int:
    """
    Safely convert value to int, handling None and invalid values.

    Args:
        value: Any value to convert
        default: Default int if conversion fails

    Returns:
        Integer or default
    """
    if value is None:
        return default
    try:
        return int(value)
    except (ValueError, TypeError):
        return default


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def iso_now() -> str:
    """Current UTC time as an ISO-8601 string with a Z suffix."""
    return utc_now().isoformat().replace("+00:00", "Z")


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 string, epoch seconds, or datetime into an aware datetime.

    Naive values are assumed to be UTC. Returns None if the value can't be parsed.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
