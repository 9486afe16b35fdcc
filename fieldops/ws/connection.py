"""Per-socket session state."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    """CONNECTING until the handshake completes, then ONLINE.

    A session ends OFFLINE when the client leaves, or EXPIRED when the
    liveness sweep drops it.
    """

    CONNECTING = "connecting"
    ONLINE = "online"
    OFFLINE = "offline"
    EXPIRED = "expired"


@dataclass
class WebSocketConnection:
    websocket: WebSocket
    user_id: str
    tournament_id: str
    role: str
    connection_id: str
    connected_at: datetime
    state: ConnectionState = ConnectionState.CONNECTING
    subscribed_channels: set[str] = field(default_factory=set)
    last_seen: datetime | None = None

    async def send(self, message: dict[str, Any]) -> bool:
        """Write one JSON frame; False when the socket is already gone."""
        try:
            await self.websocket.send_json(message)
        except Exception as e:
            logger.warning(f"Send to {self.connection_id} failed: {e}")
            return False
        return True

    async def close(self, code: int = 1000, reason: str = "") -> None:
        # Callers own the lifecycle state
        try:
            await self.websocket.close(code, reason)
        except Exception as e:
            logger.debug(f"Close of {self.connection_id} failed: {e}")

    def is_subscribed(self, channel: str) -> bool:
        return channel in self.subscribed_channels
