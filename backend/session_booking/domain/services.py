from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Iterable, Sequence
from zoneinfo import ZoneInfo

from ..models import ReservationStatus
from ..utils.time import local_to_utc_naive
from .errors import InvalidStateTransitionError, SlotUnavailableError, ValidationError

_ALLOWED_TRANSITIONS: dict[ReservationStatus, set[ReservationStatus]] = {
    ReservationStatus.BOOKED: {ReservationStatus.CANCELLED, ReservationStatus.COMPLETED},
    ReservationStatus.COMPLETED: set(),
    ReservationStatus.CANCELLED: set(),
}


@dataclass(frozen=True)
class OperatingHours:
    opening_hour: int
    closing_hour: int
    granularity_minutes: int

    def validate(self) -> None:
        if self.granularity_minutes <= 0:
            raise ValidationError("slot_granularity_minutes", "must be positive")
        if not 0 <= self.opening_hour < self.closing_hour <= 24:
            raise ValidationError("opening_hour", "opening hour must precede closing hour within the day")
        if self.span_minutes % self.granularity_minutes:
            raise ValidationError("slot_granularity_minutes", "must evenly divide the opening hours")

    @property
    def span_minutes(self) -> int:
        return (self.closing_hour - self.opening_hour) * 60

    @property
    def slot_count(self) -> int:
        return self.span_minutes // self.granularity_minutes


@dataclass(frozen=True)
class BookedInterval:
    start: datetime
    end: datetime
    unit_number: int = 1


@dataclass(frozen=True)
class TimeSlot:
    label: str
    starts_at: datetime
    available: bool
    remaining: int


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open intervals [a_start, a_end) and [b_start, b_end) share at least one instant."""
    return a_start < b_end and b_start < a_end


def candidate_slot_starts(day: date, tz: ZoneInfo, hours: OperatingHours) -> list[tuple[str, datetime]]:
    """Wall-clock labels and naive-UTC start instants for every slot of the business day."""
    hours.validate()
    candidates: list[tuple[str, datetime]] = []
    for index in range(hours.slot_count):
        minutes = hours.opening_hour * 60 + index * hours.granularity_minutes
        wall = time(minutes // 60, minutes % 60)
        candidates.append((wall.strftime("%H:%M"), local_to_utc_naive(day, wall, tz)))
    return candidates


def build_slots(
    candidates: Sequence[tuple[str, datetime]],
    booked: Iterable[BookedInterval],
    *,
    unit_count: int,
) -> list[TimeSlot]:
    """
    Tag each candidate start with availability.
    A slot is blocked when as many reservations as the resource has units contain its start
    instant (start <= t < end); a reservation ending exactly at t does not block it.
    """
    intervals = list(booked)
    slots: list[TimeSlot] = []
    for label, starts_at in candidates:
        covering = sum(1 for interval in intervals if interval.start <= starts_at < interval.end)
        remaining = max(unit_count - covering, 0)
        slots.append(TimeSlot(label=label, starts_at=starts_at, available=remaining > 0, remaining=remaining))
    return slots


def validate_booking_window(
    start_local: datetime,
    duration_minutes: int,
    *,
    hours: OperatingHours,
    now_local: datetime,
) -> None:
    """Booking must start in the future, on a slot boundary, and finish by closing time."""
    if start_local <= now_local:
        raise ValidationError("time", "booking must start in the future")
    start_minutes = start_local.hour * 60 + start_local.minute
    if start_local.second or start_local.microsecond:
        raise ValidationError("time", "must be given as HH:MM")
    if start_minutes < hours.opening_hour * 60:
        raise ValidationError("time", "before opening time")
    if start_minutes + duration_minutes > hours.closing_hour * 60:
        raise ValidationError("time", "session would end after closing time")
    if (start_minutes - hours.opening_hour * 60) % hours.granularity_minutes:
        raise ValidationError("time", f"must align to {hours.granularity_minutes}-minute slots")


def assign_unit(
    existing: Iterable[BookedInterval],
    start: datetime,
    end: datetime,
    *,
    unit_count: int,
) -> int:
    """Return the lowest physical unit free for [start, end); raise when every unit is taken."""
    taken = {interval.unit_number for interval in existing if overlaps(start, end, interval.start, interval.end)}
    for unit_number in range(1, unit_count + 1):
        if unit_number not in taken:
            return unit_number
    raise SlotUnavailableError("no unit free for the requested interval")


def validate_transition(
    current: ReservationStatus,
    target: ReservationStatus,
    *,
    now: datetime,
    start_time: datetime,
    end_time: datetime,
) -> None:
    if target not in _ALLOWED_TRANSITIONS[current]:
        raise InvalidStateTransitionError(f"cannot move reservation from {current} to {target}")
    if target == ReservationStatus.CANCELLED and now >= start_time:
        raise InvalidStateTransitionError("only sessions that have not started can be cancelled")
    if target == ReservationStatus.COMPLETED and now < end_time:
        raise InvalidStateTransitionError("session has not finished yet")
