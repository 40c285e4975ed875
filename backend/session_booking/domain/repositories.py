from __future__ import annotations

from datetime import datetime
from typing import Protocol, Sequence

from ..models import Reservation, ReservationStatus


class ReservationRepository(Protocol):
    async def lock_resource_type(self, resource_type_id: str) -> None: ...

    async def list_starting_between(
        self,
        resource_type_id: str,
        start: datetime,
        end: datetime,
    ) -> list[Reservation]: ...

    async def list_overlapping(
        self,
        resource_type_id: str,
        start: datetime,
        end: datetime,
    ) -> list[Reservation]: ...

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
    ) -> Reservation: ...

    async def get(self, reservation_id: int) -> Reservation | None: ...

    async def get_for_update(self, reservation_id: int) -> Reservation | None: ...

    async def list_by_owner(
        self,
        owner_id: str,
        status: ReservationStatus | None = None,
    ) -> list[Reservation]: ...

    async def list_between(
        self,
        start: datetime,
        end: datetime,
        resource_type_id: str | None = None,
    ) -> list[Reservation]: ...

    async def save(self, reservation: Reservation) -> Reservation: ...
