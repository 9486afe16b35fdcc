"""WebSocket gateway module for real-time communication."""

from fieldops.ws.events import EventType
from fieldops.ws.messages import MessageEnvelope
from fieldops.ws.connection import WebSocketConnection, ConnectionState
from fieldops.ws.manager import ConnectionManager

__all__ = [
    "EventType",
    "MessageEnvelope",
    "WebSocketConnection",
    "ConnectionState",
    "ConnectionManager",
]
