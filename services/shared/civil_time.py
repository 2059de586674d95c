"""Civil-time helpers shared by scheduling code.

All slot arithmetic happens in minutes since midnight of a single civil day;
only "what is today / what time is it now" needs a timezone.
"""

from __future__ import annotations

from datetime import datetime, time, timezone
from typing import Callable

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def resolve_zone(tz_name: str | None) -> ZoneInfo:
    try:
        return ZoneInfo(tz_name or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo("UTC")


def ensure_timezone(dt: datetime, tz_name: str | None) -> datetime:
    """Return ``dt`` expressed in ``tz_name``; naive values are taken as UTC."""
    zone = resolve_zone(tz_name)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(zone)


def civil_now(clock: Clock, tz_name: str | None) -> datetime:
    return ensure_timezone(clock(), tz_name)


def time_to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def minutes_to_label(minutes: int) -> str:
    """Format minutes since midnight as ``HH:MM``."""
    hours, mins = divmod(minutes, 60)
    return f"{hours:02d}:{mins:02d}"
