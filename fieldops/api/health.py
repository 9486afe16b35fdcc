"""Liveness and readiness checks.

Readiness is gated on the relational store only; Redis backs the cache and
cross-instance fan-out, both of which degrade gracefully.
"""

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, status
from sqlalchemy import text

from fieldops.config import get_settings
from fieldops.logging_config import get_logger
from fieldops.utils.db import engine
from fieldops.utils.json_utils import ORJSONResponse
from fieldops.utils.redis_client import get_redis

router = APIRouter(prefix="/health", tags=["Health"])
logger = get_logger(__name__)


async def _ping_store() -> None:
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


@router.get("", summary="Dependency health")
async def health() -> dict[str, Any]:
    """Report store and Redis reachability; "degraded" when either is down."""
    services = {"database": "healthy", "redis": "healthy"}

    try:
        await _ping_store()
    except Exception as e:
        logger.error("health_store_failed", error=str(e))
        services["database"] = f"unhealthy: {e}"

    client = get_redis()
    if client is None:
        services["redis"] = "not initialized"
    else:
        try:
            await client.ping()
        except Exception as e:
            logger.error("health_redis_failed", error=str(e))
            services["redis"] = f"unhealthy: {e}"

    healthy = all(state == "healthy" for state in services.values())
    return {
        "status": "healthy" if healthy else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": get_settings().app_version,
        "services": services,
    }


@router.get("/live", summary="Liveness check")
async def live() -> dict[str, str]:
    return {"status": "alive"}


@router.get("/ready", summary="Readiness check")
async def ready():
    try:
        await _ping_store()
    except Exception as e:
        logger.error("readiness_check_failed", error=str(e))
        return ORJSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not ready", "error": str(e)},
        )
    return {"status": "ready"}
