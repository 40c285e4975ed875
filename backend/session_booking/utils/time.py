from datetime import date, datetime, time, timedelta, timezone
from typing import Protocol
from zoneinfo import ZoneInfo


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock returning timezone-aware UTC datetimes."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def business_zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def to_utc_naive(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        raise ValueError("datetime must be timezone-aware")
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def utc_naive_to_local(dt: datetime, tz: ZoneInfo) -> datetime:
    return dt.replace(tzinfo=timezone.utc).astimezone(tz)


def local_to_utc_naive(day: date, at: time, tz: ZoneInfo) -> datetime:
    """Interpret a wall-clock date/time in ``tz`` and return it as naive UTC."""
    return to_utc_naive(datetime.combine(day, at, tzinfo=tz))


def local_day_bounds(day: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """Return the naive-UTC half-open range covering the business-local day."""
    start = local_to_utc_naive(day, time(0, 0), tz)
    end = local_to_utc_naive(day + timedelta(days=1), time(0, 0), tz)
    return start, end


def now_utc_naive(clock: Clock) -> datetime:
    return to_utc_naive(clock.now())
