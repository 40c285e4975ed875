from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from fastapi import HTTPException, status
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.errors import (
    BookingError,
    InvalidDateError,
    InvalidStateTransitionError,
    ReservationNotFoundError,
    SlotUnavailableError,
    StoreUnavailableError,
    UnknownResourceError,
    ValidationError,
)
from ..schemas import ErrorDetail


def _error(status_code: int, code: str, message: str, field: Optional[str] = None) -> HTTPException:
    detail: dict[str, Any] = ErrorDetail(code=code, message=message, field=field).model_dump(exclude_none=True)
    return HTTPException(status_code=status_code, detail=detail)


def to_http_exception(
    exc: BookingError,
    *,
    unknown_resource_status: int = status.HTTP_422_UNPROCESSABLE_ENTITY,
) -> HTTPException:
    """Map a booking-core failure onto the HTTP status and error body clients rely on."""
    if isinstance(exc, UnknownResourceError):
        return _error(unknown_resource_status, "unknown_resource", exc.reason, exc.field)
    if isinstance(exc, ValidationError):
        return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, "validation_error", exc.reason, exc.field)
    if isinstance(exc, InvalidDateError):
        return _error(status.HTTP_400_BAD_REQUEST, "invalid_date", str(exc))
    if isinstance(exc, SlotUnavailableError):
        return _error(
            status.HTTP_409_CONFLICT,
            "slot_unavailable",
            "this time is no longer available, please choose another slot",
        )
    if isinstance(exc, InvalidStateTransitionError):
        return _error(status.HTTP_409_CONFLICT, "invalid_state_transition", str(exc))
    if isinstance(exc, ReservationNotFoundError):
        return _error(status.HTTP_404_NOT_FOUND, "not_found", "reservation not found")
    if isinstance(exc, StoreUnavailableError):
        return _error(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "store_unavailable",
            "booking store is unavailable, try again later",
        )
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "booking_error", str(exc))


@asynccontextmanager
async def store_transaction(session: AsyncSession) -> AsyncIterator[None]:
    """Run the block in one transaction; a lost connection at begin or commit becomes a 503."""
    try:
        async with session.begin():
            yield
    except (OperationalError, InterfaceError) as exc:
        raise to_http_exception(StoreUnavailableError("booking store unavailable")) from exc
