import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable

from fastapi import FastAPI, Request, Response

from .config import get_settings
from .database import async_session, dispose_engine
from .domain.catalog import default_catalog
from .infrastructure.repositories import seed_resource_locks
from .routers import reservations, slots
from .utils.request_id import REQUEST_ID_HEADER, RequestIdLogFilter, resolve_request_id, set_request_id

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(request_id)s] %(name)s: %(message)s"


def configure_logging(level: str) -> None:
    """Install a root handler tagging records with the request id; no-op when one is already configured."""
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(RequestIdLogFilter())
    logging.basicConfig(level=level, handlers=[handler])


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    async with async_session() as session, session.begin():
        await seed_resource_locks(session, (rt.id for rt in default_catalog().list_resource_types()))
    logger.info("resource lock rows ready")
    try:
        yield
    finally:
        await dispose_engine()


async def request_id_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
    set_request_id(request_id)
    try:
        response = await call_next(request)
    finally:
        set_request_id(None)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


configure_logging(get_settings().log_level)

app = FastAPI(title="Joystick Jungle Booking API", lifespan=lifespan)
app.middleware("http")(request_id_middleware)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


app.include_router(slots.router)
app.include_router(reservations.router)
