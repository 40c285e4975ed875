from typing import AsyncIterator
from zoneinfo import ZoneInfo

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError, ProgrammingError
from sqlalchemy.ext.asyncio import AsyncSession

from .config import Settings, get_settings
from .database import async_session
from .domain.catalog import ResourceCatalog, default_catalog
from .domain.errors import StoreUnavailableError
from .domain.notifier import Notifier
from .domain.services import OperatingHours
from .infrastructure.notifier import LoggingNotifier
from .models import Profile
from .routers.errors import to_http_exception
from .utils.auth import CurrentUser, decode_access_token
from .utils.time import Clock, SystemClock, business_zone

_UNAUTHORIZED_HEADERS = {"WWW-Authenticate": "Bearer"}


async def get_session() -> AsyncIterator[AsyncSession]:
    async with async_session() as session:
        yield session


async def get_auth_session() -> AsyncIterator[AsyncSession]:
    # Separate from get_session so the identity lookup does not leave a transaction
    # open on the session the route later wraps in `session.begin()`.
    async with async_session() as session:
        yield session


def get_app_settings() -> Settings:
    return get_settings()


def get_clock() -> Clock:
    return SystemClock()


def get_catalog() -> ResourceCatalog:
    return default_catalog()


def get_notifier() -> Notifier:
    return LoggingNotifier()


def get_business_tz(settings: Settings = Depends(get_app_settings)) -> ZoneInfo:
    return business_zone(settings.business_timezone)


def get_operating_hours(settings: Settings = Depends(get_app_settings)) -> OperatingHours:
    return OperatingHours(
        opening_hour=settings.opening_hour,
        closing_hour=settings.closing_hour,
        granularity_minutes=settings.slot_granularity_minutes,
    )


async def get_current_user(
    authorization: str | None = Header(default=None),
    session: AsyncSession = Depends(get_auth_session),
) -> CurrentUser:
    if authorization is None or not authorization.lower().startswith("bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="bearer token required",
            headers=_UNAUTHORIZED_HEADERS,
        )
    settings = get_settings()
    token = authorization.split(" ", 1)[1].strip()
    try:
        profile_id = decode_access_token(token, secret=settings.auth_secret, algorithms=[settings.auth_algorithm])
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="invalid token",
            headers=_UNAUTHORIZED_HEADERS,
        ) from exc

    try:
        role = await session.scalar(select(Profile.role).where(Profile.id == profile_id))
    except (OperationalError, InterfaceError) as exc:
        await session.rollback()
        raise to_http_exception(StoreUnavailableError("profile store unavailable")) from exc
    except (ProgrammingError, DBAPIError) as exc:
        await session.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="profile lookup failed",
        ) from exc
    if role is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="unknown user",
            headers=_UNAUTHORIZED_HEADERS,
        )
    return CurrentUser(id=profile_id, role=str(getattr(role, "value", role)))


async def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="admin role required")
    return user
