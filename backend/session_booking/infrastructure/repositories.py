from __future__ import annotations

from datetime import datetime
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Sequence, TypeVar

from sqlalchemy import Select, select
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.errors import StoreConflictError, StoreUnavailableError
from ..domain.repositories import ReservationRepository
from ..models import Reservation, ReservationStatus, ResourceLock

T = TypeVar("T")


async def _guard(call: Callable[[], Awaitable[T]]) -> T:
    """Translate connection-level driver failures into StoreUnavailableError."""
    try:
        return await call()
    except (OperationalError, InterfaceError) as exc:
        raise StoreUnavailableError("reservation store unavailable") from exc


class SqlAlchemyReservationRepository(ReservationRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def lock_resource_type(self, resource_type_id: str) -> None:
        stmt = select(ResourceLock).where(ResourceLock.resource_type_id == resource_type_id).with_for_update()
        lock = await _guard(lambda: self.session.scalar(stmt))
        if lock is not None:
            return
        # Rows are seeded at startup; a type added later gets its row on first booking.
        self.session.add(ResourceLock(resource_type_id=resource_type_id))
        await self._flush()

    async def list_starting_between(
        self,
        resource_type_id: str,
        start: datetime,
        end: datetime,
    ) -> List[Reservation]:
        stmt: Select[Any] = (
            select(Reservation)
            .where(
                Reservation.resource_type_id == resource_type_id,
                Reservation.status != ReservationStatus.CANCELLED,
                Reservation.start_time >= start,
                Reservation.start_time < end,
            )
            .order_by(Reservation.start_time)
        )
        return await self._all(stmt)

    async def list_overlapping(
        self,
        resource_type_id: str,
        start: datetime,
        end: datetime,
    ) -> List[Reservation]:
        stmt: Select[Any] = select(Reservation).where(
            Reservation.resource_type_id == resource_type_id,
            Reservation.status != ReservationStatus.CANCELLED,
            Reservation.start_time < end,
            Reservation.end_time > start,
        )
        return await self._all(stmt)

    async def create(
        self,
        *,
        resource_type_id: str,
        owner_id: str,
        unit_number: int,
        start_time: datetime,
        end_time: datetime,
        duration_minutes: int,
        player_count: int,
        extras: Sequence[str],
        total_price: int,
        status: ReservationStatus,
        created_at: datetime,
    ) -> Reservation:
        reservation = Reservation(
            resource_type_id=resource_type_id,
            owner_id=owner_id,
            unit_number=unit_number,
            start_time=start_time,
            end_time=end_time,
            duration_minutes=duration_minutes,
            player_count=player_count,
            extras=list(extras),
            total_price=total_price,
            status=status,
            created_at=created_at,
            updated_at=None,
        )
        self.session.add(reservation)
        await self._flush()
        return reservation

    async def get(self, reservation_id: int) -> Optional[Reservation]:
        return await _guard(lambda: self.session.get(Reservation, reservation_id))

    async def get_for_update(self, reservation_id: int) -> Optional[Reservation]:
        stmt = select(Reservation).where(Reservation.id == reservation_id).with_for_update()
        return await _guard(lambda: self.session.scalar(stmt))

    async def list_by_owner(
        self,
        owner_id: str,
        status: ReservationStatus | None = None,
    ) -> List[Reservation]:
        stmt: Select[Any] = (
            select(Reservation).where(Reservation.owner_id == owner_id).order_by(Reservation.start_time.desc())
        )
        if status is not None:
            stmt = stmt.where(Reservation.status == status)
        return await self._all(stmt)

    async def list_between(
        self,
        start: datetime,
        end: datetime,
        resource_type_id: str | None = None,
    ) -> List[Reservation]:
        stmt: Select[Any] = (
            select(Reservation)
            .where(Reservation.start_time >= start, Reservation.start_time < end)
            .order_by(Reservation.start_time, Reservation.resource_type_id, Reservation.unit_number)
        )
        if resource_type_id is not None:
            stmt = stmt.where(Reservation.resource_type_id == resource_type_id)
        return await self._all(stmt)

    async def save(self, reservation: Reservation) -> Reservation:
        self.session.add(reservation)
        await self._flush()
        return reservation

    async def _flush(self) -> None:
        # The session transaction is unusable after a failed flush; the caller's
        # `session.begin()` block rolls it back when the error propagates.
        try:
            await self.session.flush()
        except IntegrityError as exc:
            raise StoreConflictError("write rejected by a store constraint") from exc
        except (OperationalError, InterfaceError) as exc:
            raise StoreUnavailableError("reservation store unavailable") from exc

    async def _all(self, stmt: Select[Any]) -> List[Reservation]:
        result = await _guard(lambda: self.session.scalars(stmt))
        return list(result.all())


async def seed_resource_locks(session: AsyncSession, resource_type_ids: Iterable[str]) -> None:
    """Insert the per-resource-type lock rows that bookings serialize on."""
    existing = set(await session.scalars(select(ResourceLock.resource_type_id)))
    for resource_type_id in resource_type_ids:
        if resource_type_id not in existing:
            session.add(ResourceLock(resource_type_id=resource_type_id))
    await session.flush()
