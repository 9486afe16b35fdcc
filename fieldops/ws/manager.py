"""Socket registry and room fan-out.

Each instance knows only its own sockets. Rooms (``tournament:{id}``,
``user:{id}``) are tracked locally; when Redis is configured every room
message is also published on ``ws:pubsub:{room}`` so peer instances can
deliver it to their own members.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Any
from uuid import uuid4

from redis.asyncio import Redis

from fieldops.middleware.prometheus import record_ws_connection
from fieldops.utils.json_utils import json_dumps, json_loads
from fieldops.ws.connection import ConnectionState, WebSocketConnection

logger = logging.getLogger(__name__)

PUBSUB_PREFIX = "ws:pubsub:"


class ConnectionManager:
    def __init__(self, redis: Redis | None):
        self.redis = redis
        self._instance_id = uuid4().hex[:8]

        self._by_id: dict[str, WebSocketConnection] = {}
        self._rooms: defaultdict[str, set[str]] = defaultdict(set)

        self._listener: asyncio.Task | None = None
        self._active = False

    @property
    def instance_id(self) -> str:
        """Tag put on outgoing bus messages so an instance ignores its own echo."""
        return self._instance_id

    @property
    def connection_count(self) -> int:
        return len(self._by_id)

    async def start(self) -> None:
        if self._active:
            return
        self._active = True
        if self.redis is not None:
            await self._start_pubsub_listener()
        logger.info(f"Socket registry up on instance {self._instance_id}")

    async def stop(self) -> None:
        """Stop the bus listener and close local sockets with 1001 (going away)."""
        self._active = False

        if self._listener is not None:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass
            self._listener = None

        closed = 0
        for connection_id, conn in list(self._by_id.items()):
            await conn.close(1001, "Server shutting down")
            await self.disconnect(connection_id)
            closed += 1

        logger.info(f"Socket registry down on instance {self._instance_id}, closed {closed}")

    async def connect(self, conn: WebSocketConnection) -> None:
        self._by_id[conn.connection_id] = conn
        record_ws_connection(connected=True)
        logger.info(f"Socket {conn.connection_id} registered for {conn.user_id} ({len(self._by_id)} open)")

    async def disconnect(self, connection_id: str) -> None:
        """Forget a socket and leave all of its rooms.

        A socket already marked EXPIRED by the liveness sweep keeps that state.
        """
        conn = self._by_id.get(connection_id)
        if conn is None:
            return

        if conn.state != ConnectionState.EXPIRED:
            conn.state = ConnectionState.OFFLINE

        for room in list(conn.subscribed_channels):
            await self.unsubscribe(connection_id, room)
        del self._by_id[connection_id]

        record_ws_connection(connected=False)
        logger.info(f"Socket {connection_id} dropped ({len(self._by_id)} open)")

    def get_connection(self, connection_id: str) -> WebSocketConnection | None:
        return self._by_id.get(connection_id)

    def get_channel_connections(self, channel: str) -> list[WebSocketConnection]:
        return self._resolve(self._rooms.get(channel, ()))

    def _resolve(self, connection_ids) -> list[WebSocketConnection]:
        return [self._by_id[cid] for cid in connection_ids if cid in self._by_id]

    async def subscribe(self, connection_id: str, channel: str) -> bool:
        conn = self._by_id.get(connection_id)
        if conn is None:
            return False
        self._rooms[channel].add(connection_id)
        conn.subscribed_channels.add(channel)
        return True

    async def unsubscribe(self, connection_id: str, channel: str) -> bool:
        conn = self._by_id.get(connection_id)
        if conn is None:
            return False
        members = self._rooms.get(channel)
        if members is not None:
            members.discard(connection_id)
            if not members:
                del self._rooms[channel]
        conn.subscribed_channels.discard(channel)
        return True

    async def broadcast_to_channel(
        self,
        channel: str,
        message: dict[str, Any],
        exclude_connection: str | None = None,
    ) -> int:
        """Deliver ``message`` to a room on this instance, then publish it for peers.

        Returns:
            Number of local sockets that accepted the frame

        Raises:
            redis.RedisError: The publish failed. Local members were already served.
        """
        delivered = await self._send_to_local_channel(channel, message, exclude_connection)

        if self.redis is not None:
            bus_message = {
                "source_instance": self._instance_id,
                "exclude_connection": exclude_connection,
                "message": message,
            }
            await self.redis.publish(PUBSUB_PREFIX + channel, json_dumps(bus_message))

        return delivered

    async def send_to_connection(self, connection_id: str, message: dict[str, Any]) -> bool:
        conn = self._by_id.get(connection_id)
        return await conn.send(message) if conn is not None else False

    async def _send_to_local_channel(
        self,
        channel: str,
        message: dict[str, Any],
        exclude_connection: str | None = None,
    ) -> int:
        delivered = 0
        for conn in self.get_channel_connections(channel):
            if conn.connection_id != exclude_connection and await conn.send(message):
                delivered += 1
        return delivered

    async def _start_pubsub_listener(self) -> None:
        pubsub = self.redis.pubsub()
        pattern = PUBSUB_PREFIX + "*"
        await pubsub.psubscribe(pattern)

        async def pump() -> None:
            try:
                while self._active:
                    try:
                        item = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                    except asyncio.CancelledError:
                        raise
                    except Exception as e:
                        logger.error(f"Bus read failed: {e}")
                        await asyncio.sleep(1)
                        continue
                    if item and item["type"] == "pmessage":
                        await self._handle_pubsub_message(item)
            finally:
                await pubsub.punsubscribe(pattern)
                await pubsub.close()

        self._listener = asyncio.create_task(pump())

    async def _handle_pubsub_message(self, item: dict[str, Any]) -> None:
        """Relay a peer's room message to the matching local room."""
        try:
            channel = item.get("channel", b"")
            if isinstance(channel, bytes):
                channel = channel.decode()
            room = str(channel).removeprefix(PUBSUB_PREFIX)

            envelope = json_loads(item.get("data", b"{}"))
            if envelope.get("source_instance") == self._instance_id:
                return

            await self._send_to_local_channel(room, envelope["message"], envelope.get("exclude_connection"))
        except Exception as e:
            logger.error(f"Dropped malformed bus message: {e}")
