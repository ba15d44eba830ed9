from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo

from flask import current_app, has_app_context


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)

    # Normalize to UTC-naive
    if dt.tzinfo is None:
        # interpret naive as UTC
        return dt.replace(tzinfo=None)

    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def normalize_instant(value: Union[datetime, date, str, int, float, None]) -> Optional[datetime]:
    """
    Single conversion point from whatever a caller or stored record holds
    into the engine's instant type (UTC-naive datetime).

    Accepts aware/naive datetimes, dates (midnight UTC), ISO-8601 strings
    and epoch seconds. Everything past the storage boundary only ever sees
    the normalized form.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=timezone.utc).replace(tzinfo=None)
    if isinstance(value, str):
        return parse_iso_datetime(value)
    raise TypeError(f"Cannot interpret {type(value).__name__} as a timestamp")


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def parse_business_date(value: Union[date, datetime, str]) -> date:
    """Accept a date, a datetime or 'YYYY-MM-DD'."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value.strip()[:10])


def day_bounds(day: date, tz_name: str = "UTC") -> tuple[datetime, datetime]:
    """
    Inclusive [start, end] of a calendar day in the given zone, as
    UTC-naive instants comparable with stored timestamps.
    """
    tz = ZoneInfo(tz_name)
    start_local = datetime.combine(day, time.min, tzinfo=tz)
    end_local = start_local + timedelta(days=1) - timedelta(microseconds=1)
    return normalize_instant(start_local), normalize_instant(end_local)


# =============================================================================
# CLOCK SOURCES
# =============================================================================

class SystemClock:
    """Wall clock, UTC-naive."""

    def now(self) -> datetime:
        return utcnow()


class FixedClock:
    """Clock pinned to an instant; tests move it explicitly."""

    def __init__(self, instant: Union[datetime, str]):
        self.instant = normalize_instant(instant)

    def now(self) -> datetime:
        return self.instant

    def set(self, instant: Union[datetime, str]) -> None:
        self.instant = normalize_instant(instant)

    def advance(self, **kwargs) -> datetime:
        self.instant = self.instant + timedelta(**kwargs)
        return self.instant


CLOCK_EXTENSION_KEY = "salonpos.clock"

_system_clock = SystemClock()


def resolve_clock(clock=None):
    """Explicit clock, else the app-configured one, else the system clock."""
    if clock is not None:
        return clock
    if has_app_context():
        configured = current_app.extensions.get(CLOCK_EXTENSION_KEY)
        if configured is not None:
            return configured
    return _system_clock


def clock_now() -> datetime:
    """Column default/onupdate hook; same clock the services stamp with."""
    return resolve_clock().now()
