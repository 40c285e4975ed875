import asyncio
import os
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Iterable, List, Optional, Sequence
from zoneinfo import ZoneInfo

import pytest

os.environ.setdefault("AUTH_SECRET", "testsecret")

from session_booking.domain.catalog import DEFAULT_ADDONS, ResourceCatalog, ResourceType
from session_booking.domain.errors import StoreConflictError
from session_booking.domain.services import OperatingHours
from session_booking.models import Reservation, ReservationStatus

# Africa/Abidjan sits on UTC all year, so local wall times equal stored UTC times.
ABIDJAN = ZoneInfo("Africa/Abidjan")
NOW = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)
TODAY = date(2026, 3, 10)
TOMORROW = date(2026, 3, 11)


class FixedClock:
    def __init__(self, now: datetime = NOW) -> None:
        self.current = now

    def now(self) -> datetime:
        return self.current

    def advance(self, delta: timedelta) -> None:
        self.current = self.current + delta


class FakeReservationRepo:
    """In-memory store enforcing the same active (resource, unit, start) uniqueness as the database."""

    def __init__(self, rows: Optional[Iterable[Reservation]] = None, *, yield_on_read: bool = False) -> None:
        self.rows: List[Reservation] = list(rows or [])
        self.locked: List[str] = []
        self.saved: List[Reservation] = []
        self.read_count = 0
        self.yield_on_read = yield_on_read
        self._next_id = max((r.id for r in self.rows), default=0) + 1

    async def _after_read(self) -> None:
        self.read_count += 1
        if self.yield_on_read:
            await asyncio.sleep(0)

    def _active(self, resource_type_id: str) -> List[Reservation]:
        return [
            r for r in self.rows if r.resource_type_id == resource_type_id and r.status != ReservationStatus.CANCELLED
        ]

    async def lock_resource_type(self, resource_type_id: str) -> None:
        self.locked.append(resource_type_id)

    async def list_starting_between(self, resource_type_id: str, start: datetime, end: datetime) -> List[Reservation]:
        rows = sorted(
            (r for r in self._active(resource_type_id) if start <= r.start_time < end),
            key=lambda r: r.start_time,
        )
        await self._after_read()
        return rows

    async def list_overlapping(self, resource_type_id: str, start: datetime, end: datetime) -> List[Reservation]:
        rows = [r for r in self._active(resource_type_id) if r.start_time < end and r.end_time > start]
        await self._after_read()
        return rows

    async def create(self, **fields: object) -> Reservation:
        for row in self._active(str(fields["resource_type_id"])):
            if row.unit_number == fields["unit_number"] and row.start_time == fields["start_time"]:
                raise StoreConflictError("duplicate active unit/start")
        reservation = Reservation(id=self._next_id, updated_at=None, **fields)
        self._next_id += 1
        self.rows.append(reservation)
        return reservation

    async def get(self, reservation_id: int) -> Optional[Reservation]:
        return next((r for r in self.rows if r.id == reservation_id), None)

    async def get_for_update(self, reservation_id: int) -> Optional[Reservation]:
        return await self.get(reservation_id)

    async def list_by_owner(self, owner_id: str, status: ReservationStatus | None = None) -> List[Reservation]:
        rows = [r for r in self.rows if r.owner_id == owner_id and (status is None or r.status == status)]
        return sorted(rows, key=lambda r: r.start_time, reverse=True)

    async def list_between(
        self, start: datetime, end: datetime, resource_type_id: str | None = None
    ) -> List[Reservation]:
        rows = [
            r
            for r in self.rows
            if start <= r.start_time < end and (resource_type_id is None or r.resource_type_id == resource_type_id)
        ]
        return sorted(rows, key=lambda r: (r.start_time, r.resource_type_id, r.unit_number))

    async def save(self, reservation: Reservation) -> Reservation:
        self.saved.append(reservation)
        return reservation


def make_reservation(
    *,
    reservation_id: int = 1,
    resource_type_id: str = "ps5",
    owner_id: str = "user-1",
    start: datetime,
    minutes: int = 60,
    unit_number: int = 1,
    status: ReservationStatus = ReservationStatus.BOOKED,
    extras: Sequence[str] = (),
    total_price: int = 2000,
) -> Reservation:
    return Reservation(
        id=reservation_id,
        resource_type_id=resource_type_id,
        owner_id=owner_id,
        unit_number=unit_number,
        start_time=start,
        end_time=start + timedelta(minutes=minutes),
        duration_minutes=minutes,
        player_count=1,
        extras=list(extras),
        total_price=total_price,
        status=status,
        created_at=NOW.replace(tzinfo=None),
        updated_at=None,
    )


@pytest.fixture
def hours() -> OperatingHours:
    return OperatingHours(opening_hour=10, closing_hour=22, granularity_minutes=30)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def single_unit_catalog() -> ResourceCatalog:
    """Consoles have a single physical unit so any overlap saturates them; VR keeps two headsets."""
    return ResourceCatalog(
        resource_types=[
            ResourceType(id="ps5", name="PlayStation 5", hourly_price=2000, unit_count=1),
            ResourceType(id="xbox", name="Xbox Series X", hourly_price=2000, unit_count=1),
            ResourceType(id="vr", name="Réalité Virtuelle", hourly_price=5000, unit_count=2),
        ],
        addons=DEFAULT_ADDONS,
    )


@pytest.fixture
def reservation_factory() -> Callable[..., Reservation]:
    return make_reservation


@pytest.fixture
def at() -> Callable[[date, int, int], datetime]:
    """Naive-UTC instant for a wall time in the Abidjan test timezone."""

    def _at(day: date, hour: int, minute: int = 0) -> datetime:
        return datetime(day.year, day.month, day.day, hour, minute)

    return _at


@pytest.fixture
def tz() -> ZoneInfo:
    return ABIDJAN


@pytest.fixture
def tomorrow() -> date:
    return TOMORROW


@pytest.fixture
def repo_factory() -> Callable[..., FakeReservationRepo]:
    return FakeReservationRepo
