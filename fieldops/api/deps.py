"""API dependencies for authentication and common utilities."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from fieldops.config import Settings, get_settings
from fieldops.coordination.broadcaster import EventBroadcaster
from fieldops.coordination.engine import CoordinationEngine
from fieldops.coordination.policy import Caller
from fieldops.services.membership import MembershipService
from fieldops.utils.db import get_db
from fieldops.utils.redis_client import CacheService, get_redis
from fieldops.utils.security import TokenError, verify_access_token
from fieldops.ws import gateway
from fieldops.ws.presence import PresenceTracker

# HTTP Bearer security scheme
security = HTTPBearer(auto_error=False)


def _unauthorized(code: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={
            "error": {
                "code": code,
                "message": message,
                "details": {},
            }
        },
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> str:
    """Validate the bearer token and return its subject.

    Raises:
        HTTPException: 401 if the token is missing, invalid or expired
    """
    if not credentials:
        raise _unauthorized("AUTH_REQUIRED", "Authentication required")

    try:
        payload = verify_access_token(credentials.credentials)
    except TokenError as e:
        raise _unauthorized(e.code, e.message)

    if not payload:
        raise _unauthorized("AUTH_INVALID_TOKEN", "Invalid or expired token")

    return str(payload["sub"])


async def get_current_caller(
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Caller:
    """Resolve the caller's active tournament membership.

    Raises:
        NoActiveTournamentError: Mapped to 403 by the application handler
    """
    return await MembershipService(db).resolve_caller(user_id)


def get_cache() -> CacheService:
    return CacheService(get_redis())


def get_engine(
    db: Annotated[AsyncSession, Depends(get_db)],
    cache: Annotated[CacheService, Depends(get_cache)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> CoordinationEngine:
    return CoordinationEngine(db, cache, settings)


def get_broadcaster() -> EventBroadcaster:
    return gateway.get_broadcaster()


async def get_presence() -> PresenceTracker:
    return await gateway.get_presence()


# Type aliases for cleaner annotations
CurrentCaller = Annotated[Caller, Depends(get_current_caller)]
DbSession = Annotated[AsyncSession, Depends(get_db)]
Engine = Annotated[CoordinationEngine, Depends(get_engine)]
Broadcaster = Annotated[EventBroadcaster, Depends(get_broadcaster)]
Presence = Annotated[PresenceTracker, Depends(get_presence)]
