"""
Timezone utilities for slot scheduling.

Shifts are defined in the tenant's local wall-clock time; slots also carry
the UTC instant so clients in other zones render them correctly.
"""

from datetime import date, datetime, time, timezone
from typing import Optional

import pytz


def now_utc() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to aware UTC.

    SQLite hands back naive datetimes for ``DateTime(timezone=True)``
    columns; every value we persist is UTC, so naive means UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def local_to_utc(local_date: date, local_time: time, tz_name: str) -> datetime:
    """
    Convert a wall-clock date/time in ``tz_name`` to an aware UTC datetime.

    Raises:
        ValueError: If the timezone name is unknown
    """
    try:
        tz = pytz.timezone(tz_name)
    except pytz.UnknownTimeZoneError as exc:
        raise ValueError(f"Unknown timezone: {tz_name}") from exc
    localized = tz.localize(datetime.combine(local_date, local_time), is_dst=False)
    return localized.astimezone(pytz.utc)


def is_valid_timezone(tz_name: str) -> bool:
    return tz_name in pytz.all_timezones_set
