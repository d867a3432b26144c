"""opsdesk - task slot scheduling service."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from opsdesk.core.db_client import DatabaseError, RecordNotFoundError, close_connection, init_db
from opsdesk.core.errors import ErrorCode, ErrorResponse, ErrorSeverity, SchedulingError, error_response_for
from opsdesk.core.logging import configure_logfire, instrument_fastapi
from opsdesk.core.module_registry import get_modules, register_module
from opsdesk.core.redis_client import redis_client
from opsdesk.modules.scheduling import SchedulingModule


logger = logging.getLogger(__name__)


def register_modules() -> None:
    """Register feature modules (idempotent)."""
    module = SchedulingModule()
    if module.name not in get_modules():
        register_module(module)


async def check_redis_connectivity() -> None:
    """Log whether event push is available. Never fails startup."""
    if not redis_client.is_available:
        logger.info("startup_validation", extra={"service": "redis", "status": "disabled"})
        return

    if await redis_client.ping():
        logger.info("startup_validation", extra={"service": "redis", "status": "ok"})
    else:
        logger.warning("startup_validation", extra={"service": "redis", "status": "unavailable"})


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager."""
    configure_logfire()

    await init_db()
    logger.info("Database initialized")

    await check_redis_connectivity()
    yield
    await redis_client.close()
    await close_connection()


register_modules()

app = FastAPI(
    title="opsdesk",
    description="Task slot scheduling: bookings, extensions and availability",
    version="0.1.0",
    lifespan=lifespan,
)

instrument_fastapi(app)

for registered in get_modules().values():
    app.include_router(registered.get_router())


async def _render_error(request: Request, exc: Exception) -> JSONResponse:
    status_code, body = error_response_for(exc)
    if status_code >= 500:  # noqa: PLR2004
        logger.error("request_failed", extra={"path": request.url.path, "error": str(exc)})
    else:
        logger.info("request_rejected", extra={"path": request.url.path, "code": body.code, "error": str(exc)})
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json", exclude_none=True))


app.add_exception_handler(SchedulingError, _render_error)
app.add_exception_handler(RecordNotFoundError, _render_error)
app.add_exception_handler(DatabaseError, _render_error)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render payload/query validation failures in the same shape as service validation errors."""
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")) or None
    body = ErrorResponse(
        code=ErrorCode.ERR_VALIDATION,
        message=first.get("msg", "Invalid request"),
        severity=ErrorSeverity.LOW,
        field=field,
    )
    return JSONResponse(status_code=400, content=body.model_dump(mode="json", exclude_none=True))


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(content={"status": "healthy", "redis": redis_client.get_health_status()}, status_code=200)
