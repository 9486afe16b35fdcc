"""Exception-to-envelope mapping for the REST surface.

Every failure leaves the service as
``{"error": {"code", "message", "details"}, "traceId"}`` where ``traceId``
is the request id assigned by the request-id middleware.
"""

import uuid
from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import InterfaceError, OperationalError

from fieldops.config import get_settings
from fieldops.logging_config import get_logger
from fieldops.schemas.common import field_issues
from fieldops.utils.errors import CoordinationError, ErrorCode
from fieldops.utils.json_utils import ORJSONResponse

logger = get_logger(__name__)


def trace_id_of(request: Request) -> str:
    trace_id = getattr(request.state, "request_id", None)
    if trace_id:
        return trace_id
    return request.headers.get("X-Request-ID") or str(uuid.uuid4())


def error_envelope(
    code: str,
    message: str,
    trace_id: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return {
        "error": {"code": code, "message": message, "details": details or {}},
        "traceId": trace_id,
    }


def _reply(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> ORJSONResponse:
    return ORJSONResponse(
        status_code=status_code,
        content=error_envelope(code, message, trace_id_of(request), details),
        headers=headers,
    )


async def on_coordination_error(request: Request, exc: CoordinationError) -> ORJSONResponse:
    # Each error class carries its own HTTP status
    if exc.status_code >= 500:
        logger.error("coordination_error", code=exc.code, message=exc.message)
    else:
        logger.warning("coordination_error", code=exc.code, message=exc.message)
    return _reply(request, exc.status_code, exc.code, exc.message, exc.details)


async def on_request_validation(request: Request, exc: RequestValidationError) -> ORJSONResponse:
    issues = field_issues(exc)
    logger.info("request_rejected", issues=issues)
    return _reply(
        request,
        status.HTTP_400_BAD_REQUEST,
        ErrorCode.VALIDATION_ERROR.value,
        "Validation failed",
        {"issues": issues},
    )


async def on_store_unavailable(request: Request, exc: Exception) -> ORJSONResponse:
    """The relational store could not be reached; nothing was committed."""
    logger.error("store_unavailable", error_type=type(exc).__name__, error=str(exc))
    return _reply(
        request,
        status.HTTP_503_SERVICE_UNAVAILABLE,
        ErrorCode.STORE_UNAVAILABLE.value,
        "Store unavailable",
    )


async def on_http_exception(request: Request, exc: HTTPException) -> ORJSONResponse:
    headers = getattr(exc, "headers", None)
    if isinstance(exc.detail, dict) and "error" in exc.detail:
        return ORJSONResponse(
            status_code=exc.status_code,
            content={**exc.detail, "traceId": trace_id_of(request)},
            headers=headers,
        )
    return _reply(request, exc.status_code, "HTTP_ERROR", str(exc.detail), headers=headers)


async def on_unhandled(request: Request, exc: Exception) -> ORJSONResponse:
    logger.error("unhandled_exception", error_type=type(exc).__name__, exc_info=True)
    message = "Internal server error"
    if get_settings().app_debug:
        message = f"{type(exc).__name__}: {exc}"
    return _reply(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        ErrorCode.INTERNAL_ERROR.value,
        message,
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CoordinationError, on_coordination_error)
    app.add_exception_handler(RequestValidationError, on_request_validation)
    app.add_exception_handler(OperationalError, on_store_unavailable)
    app.add_exception_handler(InterfaceError, on_store_unavailable)
    app.add_exception_handler(HTTPException, on_http_exception)
    app.add_exception_handler(Exception, on_unhandled)
