import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from app.api.deps import ManagerDep

_log = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


@router.get("", response_model=None)
async def health(manager: ManagerDep) -> dict[str, Any] | JSONResponse:
    """
    Health probe — is the database reachable?

    Always 200 with the connectivity state in the body; 500 only when the
    connection manager itself cannot be initialized (bad configuration).
    """
    config = manager.config
    try:
        result = await manager.check_health()
    except Exception as exc:
        _log.exception("Health check could not initialize the database layer")
        content: dict[str, Any] = {
            "status": "ERROR",
            "message": "Health check failed",
        }
        if not config.is_production:
            content["error"] = str(exc)
        return JSONResponse(status_code=500, content=content)

    return {
        "status": "OK",
        "timestamp": datetime.now(tz=timezone.utc).isoformat(),
        "database": "Connected" if result.ok else "Disconnected",
        "database_type": config.DB_TYPE_LABEL,
        "environment": config.environment_label,
        "service": config.PROJECT_NAME,
        "version": config.SERVICE_VERSION,
    }


@router.get("/liveness", response_model=None)
async def liveness() -> bool:
    """
    Liveness probe — is the process alive and responsive?

    Lightweight: no database I/O.
    """
    return True
