"""Contract shared by socket event handlers."""

from abc import ABC, abstractmethod

from fieldops.ws.connection import WebSocketConnection
from fieldops.ws.events import EventType
from fieldops.ws.messages import MessageEnvelope


class BaseHandler(ABC):
    """Handles a fixed group of client-to-server event types.

    A handler may answer with one envelope for the sender. Rejections are
    raised as CoordinationError; the gateway turns them into ``error`` frames
    addressed to the sender only.
    """

    @property
    @abstractmethod
    def handled_events(self) -> tuple[EventType, ...]: ...

    @abstractmethod
    async def handle(
        self,
        conn: WebSocketConnection,
        event: MessageEnvelope,
    ) -> MessageEnvelope | None: ...
