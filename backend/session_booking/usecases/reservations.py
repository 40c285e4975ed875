import logging
from datetime import date, datetime, time, timedelta
from typing import Sequence
from zoneinfo import ZoneInfo

from ..domain.catalog import ResourceCatalog
from ..domain.errors import (
    ReservationNotFoundError,
    SlotUnavailableError,
    StoreConflictError,
    ValidationError,
)
from ..domain.pricing import compute_total
from ..domain.repositories import ReservationRepository
from ..domain.services import (
    BookedInterval,
    OperatingHours,
    assign_unit,
    validate_booking_window,
    validate_transition,
)
from ..models import Reservation, ReservationStatus
from ..utils.auth import CurrentUser
from ..utils.time import Clock, local_day_bounds, now_utc_naive, to_utc_naive

logger = logging.getLogger(__name__)


def _validate_player_count(catalog: ResourceCatalog, player_count: int) -> None:
    if player_count < 1:
        raise ValidationError("player_count", "at least one player is required")
    if player_count > catalog.max_players:
        raise ValidationError("player_count", f"at most {catalog.max_players} players per session")


def _validate_request(
    catalog: ResourceCatalog,
    *,
    owner_id: str,
    resource_type_id: str,
    duration_minutes: int,
    player_count: int,
    extra_ids: Sequence[str],
) -> None:
    if not owner_id:
        raise ValidationError("owner_id", "required")
    if not resource_type_id:
        raise ValidationError("resource_type_id", "required")
    catalog.get(resource_type_id)
    catalog.multiplier(duration_minutes)
    _validate_player_count(catalog, player_count)
    for extra_id in extra_ids:
        catalog.get_addon(extra_id)


def quote_booking(
    catalog: ResourceCatalog,
    *,
    resource_type_id: str,
    duration_minutes: int,
    player_count: int,
    extra_ids: Sequence[str],
    extra_player_fee: int,
) -> int:
    _validate_player_count(catalog, player_count)
    return compute_total(
        catalog,
        resource_type_id,
        duration_minutes,
        player_count,
        extra_ids,
        extra_player_fee=extra_player_fee,
    )


async def create_booking(
    res_repo: ReservationRepository,
    catalog: ResourceCatalog,
    clock: Clock,
    *,
    owner_id: str,
    resource_type_id: str,
    day: date,
    start: time,
    duration_minutes: int,
    player_count: int,
    extra_ids: Sequence[str],
    hours: OperatingHours,
    tz: ZoneInfo,
    extra_player_fee: int,
) -> Reservation:
    """
    Validate, re-check availability and persist a new ``booked`` reservation.
    Nothing is written before the final insert, so an abandoned request leaves no partial state.
    """
    extras = sorted(set(extra_ids))
    _validate_request(
        catalog,
        owner_id=owner_id,
        resource_type_id=resource_type_id,
        duration_minutes=duration_minutes,
        player_count=player_count,
        extra_ids=extras,
    )
    hours.validate()
    start_local = datetime.combine(day, start, tzinfo=tz)
    validate_booking_window(start_local, duration_minutes, hours=hours, now_local=clock.now().astimezone(tz))

    start_time = to_utc_naive(start_local)
    end_time = start_time + timedelta(minutes=duration_minutes)
    resource = catalog.get(resource_type_id)

    total_price = compute_total(
        catalog,
        resource_type_id,
        duration_minutes,
        player_count,
        extras,
        extra_player_fee=extra_player_fee,
    )

    unit_number: int | None = None
    try:
        await res_repo.lock_resource_type(resource_type_id)
        existing = await res_repo.list_overlapping(resource_type_id, start_time, end_time)
        unit_number = assign_unit(
            (BookedInterval(start=r.start_time, end=r.end_time, unit_number=r.unit_number) for r in existing),
            start_time,
            end_time,
            unit_count=resource.unit_count,
        )
        reservation = await res_repo.create(
            resource_type_id=resource_type_id,
            owner_id=owner_id,
            unit_number=unit_number,
            start_time=start_time,
            end_time=end_time,
            duration_minutes=duration_minutes,
            player_count=player_count,
            extras=extras,
            total_price=total_price,
            status=ReservationStatus.BOOKED,
            created_at=now_utc_naive(clock),
        )
    except StoreConflictError as exc:
        logger.warning(
            "booking conflict on %s unit %s at %s", resource_type_id, unit_number, start_time.isoformat()
        )
        raise SlotUnavailableError("slot was taken by a concurrent booking") from exc

    logger.info("reservation %s booked on %s unit %s", reservation.id, resource_type_id, unit_number)
    return reservation


async def _transition(
    res_repo: ReservationRepository,
    clock: Clock,
    *,
    reservation_id: int,
    target: ReservationStatus,
    actor: CurrentUser,
) -> tuple[Reservation, ReservationStatus]:
    reservation = await res_repo.get_for_update(reservation_id)
    # Non-admins cannot see other users' reservations, so they get the same answer as a missing id.
    if reservation is None or (not actor.is_admin and reservation.owner_id != actor.id):
        raise ReservationNotFoundError("reservation not found")

    now = now_utc_naive(clock)
    previous = reservation.status
    validate_transition(
        previous,
        target,
        now=now,
        start_time=reservation.start_time,
        end_time=reservation.end_time,
    )
    reservation.status = target
    reservation.updated_at = now
    updated = await res_repo.save(reservation)
    return updated, previous


async def cancel_reservation(
    res_repo: ReservationRepository,
    clock: Clock,
    *,
    reservation_id: int,
    actor: CurrentUser,
) -> tuple[Reservation, ReservationStatus]:
    return await _transition(
        res_repo,
        clock,
        reservation_id=reservation_id,
        target=ReservationStatus.CANCELLED,
        actor=actor,
    )


async def complete_reservation(
    res_repo: ReservationRepository,
    clock: Clock,
    *,
    reservation_id: int,
    actor: CurrentUser,
) -> tuple[Reservation, ReservationStatus]:
    return await _transition(
        res_repo,
        clock,
        reservation_id=reservation_id,
        target=ReservationStatus.COMPLETED,
        actor=actor,
    )


async def list_owner_reservations(
    res_repo: ReservationRepository,
    *,
    owner_id: str,
    status: ReservationStatus | None = None,
) -> list[Reservation]:
    return await res_repo.list_by_owner(owner_id, status)


async def get_owner_reservation(
    res_repo: ReservationRepository,
    *,
    reservation_id: int,
    owner_id: str,
) -> Reservation | None:
    reservation = await res_repo.get(reservation_id)
    if reservation is None or reservation.owner_id != owner_id:
        return None
    return reservation


async def list_day_reservations(
    res_repo: ReservationRepository,
    *,
    day: date,
    tz: ZoneInfo,
    resource_type_id: str | None = None,
) -> list[Reservation]:
    start, end = local_day_bounds(day, tz)
    return await res_repo.list_between(start, end, resource_type_id)
