from datetime import date
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import Settings
from ..deps import (
    get_app_settings,
    get_business_tz,
    get_catalog,
    get_clock,
    get_operating_hours,
    get_session,
)
from ..domain.catalog import ResourceCatalog
from ..domain.errors import BookingError
from ..domain.services import OperatingHours
from ..infrastructure.repositories import SqlAlchemyReservationRepository
from ..schemas import AddOnRead, CatalogRead, DaySlotsRead, QuoteRead, QuoteRequest, ResourceTypeRead, SlotRead
from ..usecases import reservations as reservation_usecase
from ..usecases import slots as slot_usecase
from ..utils.time import Clock
from .errors import to_http_exception

router = APIRouter(prefix="", tags=["slots"])


@router.get("/catalog", response_model=CatalogRead)
async def get_catalog_listing(catalog: ResourceCatalog = Depends(get_catalog)) -> CatalogRead:
    return CatalogRead(
        resource_types=[ResourceTypeRead.from_domain(rt) for rt in catalog.list_resource_types()],
        addons=[AddOnRead.from_domain(addon) for addon in catalog.list_addons()],
        durations=catalog.supported_durations(),
        max_players=catalog.max_players,
    )


@router.get("/resources/{resource_type_id}/slots", response_model=DaySlotsRead)
async def list_slots(
    resource_type_id: str = Path(..., min_length=1),
    day: date = Query(..., alias="date", description="Business-local date (YYYY-MM-DD)"),
    include_past: bool = Query(default=False),
    session: AsyncSession = Depends(get_session),
    catalog: ResourceCatalog = Depends(get_catalog),
    clock: Clock = Depends(get_clock),
    hours: OperatingHours = Depends(get_operating_hours),
    tz: ZoneInfo = Depends(get_business_tz),
) -> DaySlotsRead:
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        slots = await slot_usecase.generate_slots(
            res_repo,
            catalog,
            clock,
            resource_type_id=resource_type_id,
            day=day,
            hours=hours,
            tz=tz,
            allow_past=include_past,
        )
    except BookingError as exc:
        raise to_http_exception(exc, unknown_resource_status=status.HTTP_404_NOT_FOUND) from exc
    return DaySlotsRead(
        resource_type_id=resource_type_id,
        date=day,
        slots=[SlotRead.from_domain(slot, tz=tz) for slot in slots],
    )


@router.post("/quotes", response_model=QuoteRead)
async def quote(
    payload: QuoteRequest,
    catalog: ResourceCatalog = Depends(get_catalog),
    settings: Settings = Depends(get_app_settings),
) -> QuoteRead:
    try:
        total = reservation_usecase.quote_booking(
            catalog,
            resource_type_id=payload.resource_type_id,
            duration_minutes=payload.duration_minutes,
            player_count=payload.player_count,
            extra_ids=payload.extras,
            extra_player_fee=settings.extra_player_fee,
        )
    except BookingError as exc:
        raise to_http_exception(exc) from exc
    return QuoteRead(
        resource_type_id=payload.resource_type_id,
        duration_minutes=payload.duration_minutes,
        player_count=payload.player_count,
        extras=sorted(set(payload.extras)),
        total_price=total,
    )
