"""Event broadcaster: delivers engine outboxes to socket rooms.

Delivery is best-effort. A failed fan-out is logged and counted, never raised:
the state change it announces has already been committed.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from fieldops.coordination.events import CoordinationEvent, EventName
from fieldops.middleware.prometheus import record_broadcast
from fieldops.utils.errors import UpstreamUnavailableError
from fieldops.ws.events import EventType
from fieldops.ws.manager import ConnectionManager
from fieldops.ws.messages import MessageEnvelope

logger = logging.getLogger(__name__)


class EventBroadcaster:
    """Turns CoordinationEvents into envelopes on ``tournament:*``/``user:*`` rooms."""

    def __init__(self, manager: ConnectionManager | None):
        self.manager = manager

    async def broadcast_to_tournament(
        self,
        tournament_id: str,
        event: EventName,
        payload: dict[str, Any],
        exclude_connection: str | None = None,
    ) -> int:
        return await self._deliver(CoordinationEvent.for_tournament(
            tournament_id, event, payload, exclude_connection=exclude_connection
        ))

    async def send_to_user(self, user_id: str, event: EventName, payload: dict[str, Any]) -> int:
        return await self._deliver(CoordinationEvent.for_user(user_id, event, payload))

    async def dispatch(self, events: Iterable[CoordinationEvent]) -> int:
        """Deliver an outbox sequentially, in emission order.

        Returns:
            Number of local sockets reached across all events
        """
        delivered = 0
        for event in events:
            delivered += await self._deliver(event)
        return delivered

    async def _deliver(self, event: CoordinationEvent) -> int:
        name = event.name.value
        if self.manager is None:
            logger.debug(f"No connection manager; dropping {name} for {event.channel}")
            record_broadcast(name, delivered=False)
            return 0

        envelope = MessageEnvelope.create(EventType(name), event.payload)
        try:
            count = await self.manager.broadcast_to_channel(
                event.channel,
                envelope.to_dict(),
                exclude_connection=event.exclude_connection,
            )
        except Exception as e:
            error = UpstreamUnavailableError("broadcaster", str(e))
            logger.warning(f"{error.message} (event={name}, channel={event.channel})")
            record_broadcast(name, delivered=False)
            return 0

        record_broadcast(name, delivered=True)
        logger.debug(f"Broadcast {name} to {event.channel} ({count} local)")
        return count
