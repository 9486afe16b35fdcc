"""System event handlers (heartbeat) and handshake messages."""

import logging

from fieldops.utils.json_utils import isoformat
from fieldops.ws.connection import WebSocketConnection
from fieldops.ws.events import EventType
from fieldops.ws.handlers.base import BaseHandler
from fieldops.ws.messages import MessageEnvelope
from fieldops.ws.presence import PresenceTracker

logger = logging.getLogger(__name__)


class SystemHandler(BaseHandler):
    """Handles client heartbeats by refreshing the session's presence record."""

    def __init__(self, presence: PresenceTracker):
        self.presence = presence

    @property
    def handled_events(self) -> tuple[EventType, ...]:
        return (EventType.HEARTBEAT,)

    async def handle(
        self,
        conn: WebSocketConnection,
        event: MessageEnvelope,
    ) -> MessageEnvelope | None:
        alive = await self.presence.heartbeat(conn)
        if not alive:
            # Swept already; the socket is being closed
            logger.debug(f"Heartbeat after expiry: user={conn.user_id}, conn={conn.connection_id}")
            return None

        return MessageEnvelope.create(
            event_type=EventType.HEARTBEAT,
            payload={"lastSeen": isoformat(conn.last_seen)},
            request_id=event.request_id,
            trace_id=event.trace_id,
        )


def create_connection_state_message(
    conn: WebSocketConnection,
    trace_id: str | None = None,
) -> MessageEnvelope:
    """Create a ``connectionState`` message sent once the session is ONLINE."""
    return MessageEnvelope.create(
        event_type=EventType.CONNECTION_STATE,
        payload={
            "state": conn.state.value,
            "userId": conn.user_id,
            "tournamentId": conn.tournament_id,
            "role": conn.role,
            "connectionId": conn.connection_id,
        },
        trace_id=trace_id,
    )


def create_online_users_message(tournament_id: str, user_ids: list[str]) -> MessageEnvelope:
    return MessageEnvelope.create(
        event_type=EventType.ONLINE_USERS,
        payload={"tournamentId": tournament_id, "userIds": user_ids, "count": len(user_ids)},
    )
