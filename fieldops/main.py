"""ASGI application for the field-operations coordination service.

Wires the REST routers (emergencies, production, teams), the ``/ws`` socket
gateway, health checks, metrics and error tracking onto one FastAPI app.
"""

import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from fieldops.api import emergencies, health, production, teams
from fieldops.api.error_handlers import install_error_handlers
from fieldops.config import get_settings
from fieldops.logging_config import bind_context, clear_context, configure_logging, get_logger
from fieldops.middleware.prometheus import setup_prometheus
from fieldops.middleware.sentry import init_sentry
from fieldops.utils.db import close_db, init_db
from fieldops.utils.json_utils import ORJSONResponse
from fieldops.utils.redis_client import close_redis, init_redis
from fieldops.ws.gateway import get_manager, get_presence, router as ws_router, shutdown_manager

settings = get_settings()
is_production = settings.app_env == "production"

configure_logging(log_level=settings.log_level, json_logs=is_production, app_env=settings.app_env)
logger = get_logger(__name__)

if init_sentry(
    dsn=settings.sentry_dsn,
    environment=settings.app_env,
    release=settings.app_version,
    traces_sample_rate=settings.sentry_traces_sample_rate if is_production else 0.0,
):
    logger.info("sentry_enabled")
elif is_production:
    logger.warning("sentry_disabled", reason="SENTRY_DSN not set")


@asynccontextmanager
async def lifespan(_app: FastAPI):
    # The store is mandatory; a failure here aborts startup
    await init_db()
    logger.info("store_ready")

    try:
        await init_redis()
        logger.info("redis_ready")
    except Exception as e:
        logger.warning("redis_unavailable", error=str(e), fallback="local cache-less mode")
        await close_redis()

    await get_manager()
    await get_presence()
    logger.info("gateway_ready", presence_backend=settings.presence_backend)

    yield

    logger.info("shutdown_started")
    try:
        await shutdown_manager()
        await close_db()
        await close_redis()
    except Exception as e:
        logger.error("shutdown_failed", error=str(e))
    else:
        logger.info("shutdown_complete")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assign each HTTP request an id, bind it to the log context and echo it back.

    The same id is reported as ``traceId`` in error envelopes.
    """

    async def dispatch(self, request: Request, call_next):
        if request.headers.get("upgrade", "").lower() == "websocket":
            return await call_next(request)

        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        bind_context(trace_id=request_id)
        started = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            clear_context()

        response.headers["X-Request-ID"] = request_id
        logger.info(
            "http_request",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
            trace_id=request_id,
        )
        return response


app = FastAPI(
    title="Field Ops Coordination API",
    version=settings.app_version,
    description="Tournament field-operations coordination: emergencies, production mode, presence",
    lifespan=lifespan,
    default_response_class=ORJSONResponse,
)

setup_prometheus(app, app_version=settings.app_version)

app.add_middleware(RequestIDMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.cors_origins.split(",")],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
    expose_headers=["X-Request-ID"],
)

install_error_handlers(app)

app.include_router(health.router)
for module in (emergencies, production, teams):
    app.include_router(module.router, prefix="/api/v1")
app.include_router(ws_router)


@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    return {
        "name": "Field Ops Coordination API",
        "version": settings.app_version,
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "fieldops.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.app_debug,
    )
