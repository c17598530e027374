"""
Time semantics utilities for period boundaries.

All instants handled by the store and the scheduler are timezone-aware UTC
datetimes. Naive wall-clock values only exist at the intake and display
edges, where they are interpreted in the configured reference timezone.
"""

from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def utc_now() -> datetime:
    """Current wall-clock time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def get_reference_instant(now: Optional[datetime] = None) -> datetime:
    """
    Get the reference instant for a sweep.

    Args:
        now: Optional explicit instant (tests and one-shot sweeps)

    Returns:
        Aware UTC datetime, falling back to wall-clock time
    """
    if now is not None:
        return ensure_utc(now)
    return utc_now()


def get_zone(name: str) -> ZoneInfo:
    """
    Resolve an IANA timezone name.

    Raises:
        ValueError: if the zone is unknown
    """
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown timezone: {name}") from e


def ensure_utc(value: datetime, tz_name: str = "UTC") -> datetime:
    """
    Normalize a datetime to aware UTC.

    Naive values are interpreted as wall-clock time in ``tz_name``.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=get_zone(tz_name))
    return value.astimezone(timezone.utc)


def parse_local(text: str, fmt: str, tz_name: str) -> datetime:
    """
    Parse a wall-clock string in the reference timezone into UTC.

    Raises:
        ValueError: if the text does not match ``fmt`` or the zone is unknown
    """
    naive = datetime.strptime(text.strip(), fmt)
    return ensure_utc(naive, tz_name)


def format_local(value: datetime, fmt: str, tz_name: str) -> str:
    """Render an instant as wall-clock time in the reference timezone."""
    return ensure_utc(value).astimezone(get_zone(tz_name)).strftime(fmt)


def to_storage(value: datetime) -> str:
    """
    Serialize an instant for the store.

    Fixed-width ISO8601 in UTC so that lexical order equals time order.
    """
    return ensure_utc(value).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def from_storage(text: str) -> datetime:
    """Parse a value written by ``to_storage``."""
    return datetime.strptime(text, "%Y-%m-%dT%H:%M:%S.%fZ").replace(tzinfo=timezone.utc)
