"""
Timezone utilities for the scheduler and collectors.
"""

from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo


def resolve_timezone(name: Optional[str]):
    """
    Resolve a timezone name, falling back to UTC.

    Args:
        name: IANA timezone name (e.g. "America/New_York")

    Returns:
        tzinfo instance
    """
    if not name or name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def now_in(tz=None) -> datetime:
    """
    Get the current aware datetime in ``tz`` (UTC by default).

    Returns:
        datetime: Current time
    """
    return datetime.now(tz or timezone.utc)

