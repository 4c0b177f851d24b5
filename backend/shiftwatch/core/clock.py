from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from shiftwatch.core.errors import ValidationError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def get_zone(name: str) -> ZoneInfo:
    """Resolve an IANA zone name or raise ValidationError."""
    try:
        return ZoneInfo((name or "").strip())
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(f"Invalid timezone: {name!r}")


def parse_local(value: str, tz: str) -> datetime:
    """Parse an ISO string (e.g. 2025-08-23T14:00) in ``tz`` and return it as UTC.

    Strings that already carry an offset are converted, not re-localized.
    """
    zone = get_zone(tz)
    try:
        dt = datetime.fromisoformat((value or "").strip())
    except ValueError:
        raise ValidationError("Times must be ISO like 2025-08-23T14:00")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=zone)
    return dt.astimezone(timezone.utc)


def to_local(instant: datetime, tz: str) -> datetime:
    return instant.astimezone(get_zone(tz))


def fmt_hm(instant: datetime, tz: str) -> str:
    return to_local(instant, tz).strftime("%H:%M")


def fmt_date_hm(instant: datetime, tz: str) -> str:
    return to_local(instant, tz).strftime("%Y-%m-%d %H:%M")
