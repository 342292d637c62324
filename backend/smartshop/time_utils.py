# Overview: UTC timestamps and shop-local calendar windows.

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def utcnow() -> datetime:
    """Naive UTC now; every stored timestamp uses this form."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _as_naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    ISO-8601 text to naive UTC, or None for blank input.

    Offsets and a trailing "Z" are honoured; text without an offset is
    already UTC. Malformed text raises ValueError.
    """
    text = (value or "").strip()
    if not text:
        return None
    if text[-1] in "zZ":
        text = text[:-1] + "+00:00"
    return _as_naive_utc(datetime.fromisoformat(text))


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Second-precision "YYYY-MM-DDTHH:MM:SSZ"; naive input counts as UTC."""
    if dt is None:
        return None
    return _as_naive_utc(dt).replace(microsecond=0).isoformat() + "Z"


# ---------------------------------------------------------------------------
# Shop-local calendar helpers
#
# Sales are stored in UTC, but "today" and "this month" are the shop's local
# calendar day/month. Windows are half-open: [start, next_start).
# ---------------------------------------------------------------------------


def resolve_timezone(name: Optional[str]) -> tzinfo:
    """Return a tzinfo for an IANA name; UTC for empty names."""
    if not name or name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown timezone: {name}")


def _local_midnight_utc(day: date, tz: tzinfo) -> datetime:
    local = datetime.combine(day, time.min).replace(tzinfo=tz)
    return local.astimezone(timezone.utc).replace(tzinfo=None)


def local_today(tz: tzinfo, now: Optional[datetime] = None) -> date:
    now = now or utcnow()
    return now.replace(tzinfo=timezone.utc).astimezone(tz).date()


def to_local_date(dt: datetime, tz: tzinfo) -> date:
    """Calendar date of a UTC-naive timestamp in the given zone."""
    return dt.replace(tzinfo=timezone.utc).astimezone(tz).date()


def day_window(day: date, tz: tzinfo) -> tuple[datetime, datetime]:
    """UTC-naive [start, end) covering the local calendar day."""
    return _local_midnight_utc(day, tz), _local_midnight_utc(day + timedelta(days=1), tz)


def first_of_month(day: date) -> date:
    return day.replace(day=1)


def first_of_next_month(day: date) -> date:
    if day.month == 12:
        return date(day.year + 1, 1, 1)
    return date(day.year, day.month + 1, 1)


def first_of_previous_month(day: date) -> date:
    if day.month == 1:
        return date(day.year - 1, 12, 1)
    return date(day.year, day.month - 1, 1)


def month_window(day: date, tz: tzinfo) -> tuple[datetime, datetime]:
    """UTC-naive [start, end) covering the local calendar month of ``day``."""
    return (
        _local_midnight_utc(first_of_month(day), tz),
        _local_midnight_utc(first_of_next_month(day), tz),
    )


def parse_business_date(value: Optional[str], tz: tzinfo) -> Optional[date]:
    """
    Parse a request date into a shop-local calendar date.

    - None / "" -> None
    - "YYYY-MM-DD" is taken as-is
    - a full ISO datetime is converted to the shop's zone first
    """
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError("date must be a string")
    s = value.strip()
    if not s:
        return None
    if len(s) == 10:
        return date.fromisoformat(s)
    dt = parse_iso_datetime(s)
    return to_local_date(dt, tz)
