"""The ``/ws`` endpoint.

A client presents its bearer token in the handshake (``Authorization`` header
or ``token`` query parameter). A client that opens the socket without one
must send ``{"type": "AUTH", "payload": {"token": ...}}`` within
``ws_auth_timeout_seconds``. Auth failures close 4001. Callers without an ACTIVE
tournament membership get one ``error`` frame and close 4003. Admitted
sockets join ``tournament:{id}`` and ``user:{id}``, are recorded in presence and
receive ``connectionState`` then ``onlineUsers`` before the frame loop starts.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any
from uuid import uuid4

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from fieldops.config import get_settings
from fieldops.coordination.broadcaster import EventBroadcaster
from fieldops.coordination.events import tournament_channel, user_channel
from fieldops.services.membership import MembershipService
from fieldops.utils.clock import utcnow
from fieldops.utils.db import async_session_factory, session_scope
from fieldops.utils.errors import CoordinationError, FatalError, NoActiveTournamentError
from fieldops.utils.redis_client import CacheService, get_redis
from fieldops.utils.security import TokenError, verify_access_token
from fieldops.ws.connection import WebSocketConnection
from fieldops.ws.events import CLIENT_TO_SERVER_EVENTS, EventType
from fieldops.ws.handlers.base import BaseHandler
from fieldops.ws.handlers.coordination import CoordinationHandler
from fieldops.ws.handlers.system import (
    SystemHandler,
    create_connection_state_message,
    create_online_users_message,
)
from fieldops.ws.manager import ConnectionManager
from fieldops.ws.messages import MessageEnvelope, create_error_message
from fieldops.ws.presence import PresenceTracker, build_presence_store

logger = logging.getLogger(__name__)
router = APIRouter(tags=["WebSocket"])

AUTH_FAILED_CLOSE_CODE = 4001
NO_ACTIVE_TOURNAMENT_CLOSE_CODE = 4003

# Process-wide singletons, created lazily and torn down by shutdown_manager
_manager: ConnectionManager | None = None
_presence: PresenceTracker | None = None


async def get_manager() -> ConnectionManager:
    """Create and start the process connection manager on first use."""
    global _manager
    if _manager is None:
        redis = get_redis()
        if redis is None:
            logger.warning("No Redis client, room messages stay on this instance")
        _manager = ConnectionManager(redis)
        await _manager.start()
    return _manager


def get_broadcaster() -> EventBroadcaster:
    """Broadcaster over the current manager (drops events before startup)."""
    return EventBroadcaster(_manager)


async def get_presence() -> PresenceTracker:
    """Get or create the global presence tracker and start its sweep."""
    global _presence
    if _presence is None:
        settings = get_settings()
        manager = await get_manager()
        store = build_presence_store(
            settings.presence_backend,
            get_redis(),
            # Redis keeps the key past the TTL so the sweep can announce it
            settings.presence_ttl_seconds + settings.presence_sweep_interval_seconds,
        )
        _presence = PresenceTracker(
            store,
            EventBroadcaster(manager),
            manager=manager,
            ttl_seconds=settings.presence_ttl_seconds,
            sweep_interval_seconds=settings.presence_sweep_interval_seconds,
        )
        await _presence.start()
    return _presence


async def shutdown_manager() -> None:
    """Stop the presence sweep, then close every local socket."""
    global _manager, _presence
    if _presence:
        await _presence.stop()
        _presence = None
    if _manager:
        await _manager.stop()
        _manager = None


class HandlerRegistry:
    """Maps each client event type to the handler that owns it."""

    def __init__(self, presence: PresenceTracker, broadcaster: EventBroadcaster):
        coordination = CoordinationHandler(
            broadcaster,
            async_session_factory,
            CacheService(get_redis()),
            get_settings(),
        )
        self._handlers: dict[EventType, BaseHandler] = {
            event_type: handler
            for handler in (SystemHandler(presence), coordination)
            for event_type in handler.handled_events
        }

    def get_handler(self, event_type: EventType) -> BaseHandler | None:
        return self._handlers.get(event_type)


async def _reject_auth(websocket: WebSocket, reason: str, log_detail: str) -> None:
    logger.warning(f"Socket auth rejected: {log_detail}")
    await websocket.close(AUTH_FAILED_CLOSE_CODE, reason)


def _handshake_token(websocket: WebSocket) -> str | None:
    """Token sent with the upgrade request: ``Authorization: Bearer`` or ``?token=``."""
    scheme, _, credentials = websocket.headers.get("authorization", "").partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return websocket.query_params.get("token") or None


async def _read_auth_frame(websocket: WebSocket, timeout: float) -> str | None:
    """Wait for an AUTH frame and return its token. Closes 4001 on any failure."""
    try:
        frame = await asyncio.wait_for(websocket.receive_json(), timeout=timeout)
    except asyncio.TimeoutError:
        await _reject_auth(websocket, "Authentication timeout", f"no auth frame within {timeout}s")
        return None
    except Exception as e:
        await _reject_auth(websocket, "Authentication error", f"unreadable first frame ({e})")
        return None

    if not isinstance(frame, dict) or frame.get("type") != EventType.AUTH.value:
        await _reject_auth(websocket, "Expected AUTH message", "first frame is not auth")
        return None

    payload = frame.get("payload")
    token = (payload.get("token") if isinstance(payload, dict) else None) or frame.get("token")
    if not token:
        await _reject_auth(websocket, "Missing token in AUTH message", "no token")
        return None
    return token


async def _authenticate(websocket: WebSocket, timeout: float) -> str | None:
    """Resolve the caller's user id, or return None after closing 4001.

    A token in the handshake is used as is; without one the client must send
    an AUTH frame within ``timeout`` seconds.
    """
    token = _handshake_token(websocket)
    if token is None:
        token = await _read_auth_frame(websocket, timeout)
        if token is None:
            return None

    try:
        claims = verify_access_token(token)
    except TokenError as e:
        await _reject_auth(websocket, "Invalid or expired token", e.code)
        return None
    if not claims:
        await _reject_auth(websocket, "Invalid or expired token", "token failed verification")
        return None

    return str(claims["sub"])


async def _dispatch(
    conn: WebSocketConnection,
    registry: HandlerRegistry,
    frame: Any,
) -> MessageEnvelope | None:
    """Run one client frame through its handler.

    Returns the frame to send back to the sender: the handler's reply, or an
    ``error`` frame when the frame was rejected.
    """
    request_id = frame.get("requestId") if isinstance(frame, dict) else None
    try:
        event = MessageEnvelope.from_dict(frame)
    except ValueError as e:
        logger.warning(f"Unparseable frame on {conn.connection_id}: {e}")
        return create_error_message("INVALID_MESSAGE", f"Invalid message format: {e}", request_id=request_id)

    if event.type not in CLIENT_TO_SERVER_EVENTS:
        return create_error_message(
            "INVALID_EVENT_DIRECTION",
            f"Event {event.type.value} cannot be sent by client",
            request_id=event.request_id,
            trace_id=event.trace_id,
        )

    handler = registry.get_handler(event.type)
    if handler is None:
        return create_error_message(
            "UNKNOWN_EVENT",
            f"Unknown event type: {event.type.value}",
            request_id=event.request_id,
            trace_id=event.trace_id,
        )

    try:
        return await handler.handle(conn, event)
    except CoordinationError as e:
        logger.info(f"{event.type.value} from {conn.user_id} rejected: {e.code}")
        return create_error_message(
            e.code, e.message, details=e.details, request_id=event.request_id, trace_id=event.trace_id
        )
    except Exception:
        logger.exception(f"{event.type.value} handler crashed")
        return create_error_message(
            "INTERNAL_ERROR", "Internal handler error", request_id=event.request_id, trace_id=event.trace_id
        )


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """Authenticate, gate on tournament membership, then serve frames until the client leaves."""
    await websocket.accept()

    user_id = await _authenticate(websocket, get_settings().ws_auth_timeout_seconds)
    if user_id is None:
        return

    # Membership is resolved before the socket joins any room
    try:
        async with session_scope(async_session_factory) as db:
            caller = await MembershipService(db).resolve_caller(user_id)
    except NoActiveTournamentError as e:
        logger.info(f"Socket for {user_id} refused: no active tournament")
        await websocket.send_json(create_error_message(e.code, e.message).to_dict())
        await websocket.close(NO_ACTIVE_TOURNAMENT_CLOSE_CODE, e.message)
        return
    except FatalError as e:
        logger.error(f"Membership lookup for {user_id} failed: {e.message}")
        await websocket.close(1011, e.message)
        return

    manager = await get_manager()
    presence = await get_presence()
    conn = WebSocketConnection(
        websocket=websocket,
        user_id=caller.user_id,
        tournament_id=caller.tournament_id,
        role=caller.role,
        connection_id=str(uuid4()),
        connected_at=utcnow(),
    )
    await manager.connect(conn)
    for room in (tournament_channel(caller.tournament_id), user_channel(caller.user_id)):
        await manager.subscribe(conn.connection_id, room)

    try:
        online_user_ids = await presence.connect(conn)
        await conn.send(create_connection_state_message(conn).to_dict())
        await conn.send(create_online_users_message(caller.tournament_id, online_user_ids).to_dict())
        logger.info(f"Socket {conn.connection_id} online: user={user_id} tournament={caller.tournament_id}")

        registry = HandlerRegistry(presence, get_broadcaster())
        while True:
            reply = await _dispatch(conn, registry, await websocket.receive_json())
            if reply is not None:
                await conn.send(reply.to_dict())
    except WebSocketDisconnect as e:
        logger.info(f"Socket {conn.connection_id} closed by client (code={e.code})")
    except Exception:
        logger.exception(f"Socket {conn.connection_id} failed")
    finally:
        await presence.disconnect(conn)
        await manager.disconnect(conn.connection_id)


@router.get("/ws/stats")
async def websocket_stats() -> dict[str, Any]:
    """Local socket count for monitoring."""
    manager = await get_manager()
    return {"instance": manager.instance_id, "connections": manager.connection_count}
