import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.api.main import api_router
from app.core.config import settings
from app.core.database import get_connection_manager
from app.core.database.resolver import parse_flag

_logger = logging.getLogger(__name__)


if settings.SENTRY_DSN and settings.environment_label != "development":
    sentry_sdk.init(dsn=str(settings.SENTRY_DSN), enable_tracing=True)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Own the connection manager for the life of the process."""
    manager = get_connection_manager()
    app.state.db_manager = manager
    _logger.info(
        "%s starting (environment=%s, database=%s)",
        settings.PROJECT_NAME,
        settings.environment_label,
        settings.DB_NAME or "Not configured",
    )
    check_on_startup = parse_flag(
        "DB_CHECK_ON_STARTUP", settings.DB_CHECK_ON_STARTUP, default=True
    )
    if check_on_startup:
        # Configuration errors abort startup; connectivity is only logged.
        await manager.check_health()
    try:
        yield
    finally:
        await manager.close()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.SERVICE_VERSION,
    openapi_url=f"{settings.API_PREFIX}/openapi.json",
    docs_url=f"{settings.API_PREFIX}/docs",
    redoc_url=f"{settings.API_PREFIX}/redoc",
    lifespan=lifespan,
)


@app.exception_handler(Exception)
async def unhandled_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    """Catch-all for unhandled exceptions — log and return 500 with safe message."""
    _logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    content: dict[str, object] = {
        "success": False,
        "message": "Internal server error",
    }
    if not settings.is_production:
        content["error"] = str(exc)
    return JSONResponse(status_code=500, content=content)


app.include_router(api_router, prefix=settings.API_PREFIX)
