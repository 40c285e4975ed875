import logging
from datetime import date
from typing import List, Optional
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import Settings
from ..deps import (
    get_app_settings,
    get_business_tz,
    get_catalog,
    get_clock,
    get_current_user,
    get_notifier,
    get_operating_hours,
    get_session,
    require_admin,
)
from ..domain.catalog import ResourceCatalog
from ..domain.errors import BookingError
from ..domain.notifier import Notifier
from ..domain.services import OperatingHours
from ..infrastructure.notifier import deliver_quietly
from ..infrastructure.repositories import SqlAlchemyReservationRepository
from ..models import Reservation, ReservationStatus
from ..schemas import RegistrationNotice, ReservationCreate, ReservationRead
from ..usecases import reservations as reservation_usecase
from ..utils.audit_log import AuditAction, emit_audit_log
from ..utils.auth import CurrentUser
from ..utils.time import Clock
from .errors import store_transaction, to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["reservations"])


def _audit(
    *,
    action: AuditAction,
    actor: CurrentUser,
    reservation: Reservation,
    status_from: Optional[ReservationStatus],
) -> None:
    try:
        emit_audit_log(
            action=action,
            initiator="admin" if actor.is_admin and actor.id != reservation.owner_id else "user",
            reservation_id=reservation.id,
            resource_type_id=reservation.resource_type_id,
            owner_id=reservation.owner_id,
            actor_id=actor.id,
            start_time=reservation.start_time,
            player_count=reservation.player_count,
            total_price=reservation.total_price,
            status_from=status_from,
            status_to=reservation.status,
        )
    except RuntimeError as exc:
        logger.error("audit log failed for reservation %s: %s", reservation.id, exc)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed") from exc


@router.post("/reservations", response_model=ReservationRead, status_code=status.HTTP_201_CREATED)
async def create_reservation(
    payload: ReservationCreate,
    session: AsyncSession = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
    catalog: ResourceCatalog = Depends(get_catalog),
    clock: Clock = Depends(get_clock),
    hours: OperatingHours = Depends(get_operating_hours),
    tz: ZoneInfo = Depends(get_business_tz),
    settings: Settings = Depends(get_app_settings),
    notifier: Notifier = Depends(get_notifier),
) -> ReservationRead:
    res_repo = SqlAlchemyReservationRepository(session)
    async with store_transaction(session):
        try:
            reservation = await reservation_usecase.create_booking(
                res_repo,
                catalog,
                clock,
                owner_id=user.id,
                resource_type_id=payload.resource_type_id,
                day=payload.date,
                start=payload.time,
                duration_minutes=payload.duration_minutes,
                player_count=payload.player_count,
                extra_ids=payload.extras,
                hours=hours,
                tz=tz,
                extra_player_fee=settings.extra_player_fee,
            )
        except BookingError as exc:
            raise to_http_exception(exc) from exc
        _audit(action="reservation.created", actor=user, reservation=reservation, status_from=None)

    if payload.contact is not None:
        notice = RegistrationNotice.for_reservation(contact=payload.contact, reservation=reservation, tz=tz)
        await deliver_quietly(notifier, notice)

    return ReservationRead.from_db(reservation=reservation, tz=tz)


@router.get("/me/reservations", response_model=List[ReservationRead])
async def list_my_reservations(
    status_filter: Optional[ReservationStatus] = Query(default=None, alias="status"),
    session: AsyncSession = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
    tz: ZoneInfo = Depends(get_business_tz),
) -> list[ReservationRead]:
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        rows = await reservation_usecase.list_owner_reservations(res_repo, owner_id=user.id, status=status_filter)
    except BookingError as exc:
        raise to_http_exception(exc) from exc
    return [ReservationRead.from_db(reservation=res, tz=tz) for res in rows]


@router.get("/me/reservations/{reservation_id}", response_model=ReservationRead)
async def get_my_reservation(
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
    tz: ZoneInfo = Depends(get_business_tz),
) -> ReservationRead:
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        reservation = await reservation_usecase.get_owner_reservation(
            res_repo, reservation_id=reservation_id, owner_id=user.id
        )
    except BookingError as exc:
        raise to_http_exception(exc) from exc
    if reservation is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="reservation not found")
    return ReservationRead.from_db(reservation=reservation, tz=tz)


async def _cancel(
    reservation_id: int,
    session: AsyncSession,
    user: CurrentUser,
    clock: Clock,
    tz: ZoneInfo,
) -> ReservationRead:
    res_repo = SqlAlchemyReservationRepository(session)
    async with store_transaction(session):
        try:
            updated, previous = await reservation_usecase.cancel_reservation(
                res_repo,
                clock,
                reservation_id=reservation_id,
                actor=user,
            )
        except BookingError as exc:
            raise to_http_exception(exc) from exc
        _audit(action="reservation.cancelled", actor=user, reservation=updated, status_from=previous)
    return ReservationRead.from_db(reservation=updated, tz=tz)


@router.post("/me/reservations/{reservation_id}/cancel", response_model=ReservationRead)
async def cancel_my_reservation(
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
    clock: Clock = Depends(get_clock),
    tz: ZoneInfo = Depends(get_business_tz),
) -> ReservationRead:
    # Admins act on other users' reservations only through the /admin routes.
    owner = CurrentUser(id=user.id, role="user")
    return await _cancel(reservation_id, session, owner, clock, tz)


@router.get("/admin/reservations", response_model=List[ReservationRead])
async def list_reservations_for_day(
    day: date = Query(..., alias="date"),
    resource_type_id: Optional[str] = Query(default=None),
    session: AsyncSession = Depends(get_session),
    _admin: CurrentUser = Depends(require_admin),
    tz: ZoneInfo = Depends(get_business_tz),
) -> list[ReservationRead]:
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        rows = await reservation_usecase.list_day_reservations(
            res_repo, day=day, tz=tz, resource_type_id=resource_type_id
        )
    except BookingError as exc:
        raise to_http_exception(exc) from exc
    return [ReservationRead.from_db(reservation=res, tz=tz) for res in rows]


@router.post("/admin/reservations/{reservation_id}/cancel", response_model=ReservationRead)
async def admin_cancel_reservation(
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    admin: CurrentUser = Depends(require_admin),
    clock: Clock = Depends(get_clock),
    tz: ZoneInfo = Depends(get_business_tz),
) -> ReservationRead:
    return await _cancel(reservation_id, session, admin, clock, tz)


@router.post("/admin/reservations/{reservation_id}/complete", response_model=ReservationRead)
async def admin_complete_reservation(
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    admin: CurrentUser = Depends(require_admin),
    clock: Clock = Depends(get_clock),
    tz: ZoneInfo = Depends(get_business_tz),
) -> ReservationRead:
    res_repo = SqlAlchemyReservationRepository(session)
    async with store_transaction(session):
        try:
            updated, previous = await reservation_usecase.complete_reservation(
                res_repo,
                clock,
                reservation_id=reservation_id,
                actor=admin,
            )
        except BookingError as exc:
            raise to_http_exception(exc) from exc
        _audit(action="reservation.completed", actor=admin, reservation=updated, status_from=previous)
    return ReservationRead.from_db(reservation=updated, tz=tz)
