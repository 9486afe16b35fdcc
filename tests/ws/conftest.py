"""Socket-layer fakes and fixtures.

``MockWebSocket`` stands in for a Starlette WebSocket; ``MockRedis`` implements
the subset of redis.asyncio commands the presence store, cache and
connection manager call.
"""

from __future__ import annotations

import asyncio
import fnmatch
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncGenerator
from uuid import uuid4

import pytest
import pytest_asyncio
from fastapi import WebSocketDisconnect
from starlette.datastructures import Headers, QueryParams

from fieldops.utils.security import create_access_token
from fieldops.ws.connection import WebSocketConnection
from fieldops.ws.events import EventType
from fieldops.ws.manager import ConnectionManager
from fieldops.ws.messages import MessageEnvelope


def create_test_token(user_id: str, expired: bool = False) -> str:
    lifetime = timedelta(hours=-1) if expired else timedelta(hours=1)
    return create_access_token(user_id, expires_delta=lifetime)


class MockWebSocket:
    """Records outgoing frames and replays queued incoming ones.

    Queue ``None`` (via ``client_disconnect``) to simulate the client leaving.
    """

    def __init__(self, headers: dict[str, str] | None = None, query: dict[str, str] | None = None):
        self.headers = Headers(headers or {})
        self.query_params = QueryParams(query or {})
        self.accepted = False
        self.closed = False
        self.close_code: int | None = None
        self.sent_messages: list[dict[str, Any]] = []
        self._inbox: asyncio.Queue[dict[str, Any] | None] = asyncio.Queue()

    async def accept(self) -> None:
        self.accepted = True

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.closed = True
        self.close_code = code

    async def send_json(self, data: dict[str, Any]) -> None:
        if self.closed:
            raise RuntimeError("socket is closed")
        self.sent_messages.append(data)

    async def receive_json(self) -> dict[str, Any]:
        if self.closed:
            raise RuntimeError("socket is closed")
        frame = await self._inbox.get()
        if frame is None:
            raise WebSocketDisconnect(code=1000)
        return frame

    def add_message(self, frame: dict[str, Any]) -> None:
        self._inbox.put_nowait(frame)

    def client_disconnect(self) -> None:
        self._inbox.put_nowait(None)

    def sent_types(self) -> list[str]:
        return [frame["type"] for frame in self.sent_messages]


class MockRedis:
    def __init__(self):
        self.strings: dict[str, str] = {}
        self.sets: defaultdict[str, set[str]] = defaultdict(set)
        self.sorted_sets: defaultdict[str, dict[str, float]] = defaultdict(dict)
        self.published: list[tuple[str, str]] = []

    async def get(self, key: str) -> str | None:
        return self.strings.get(key)

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self.strings[key] = value
        return True

    async def setex(self, key: str, seconds: int, value: str) -> bool:
        return await self.set(key, value, ex=seconds)

    async def delete(self, *keys: str) -> int:
        return sum(self.strings.pop(key, None) is not None for key in keys)

    async def scan_iter(self, match: str = "*"):
        for key in [k for k in self.strings if fnmatch.fnmatchcase(k, match)]:
            yield key

    async def sadd(self, name: str, value: str) -> int:
        fresh = value not in self.sets[name]
        self.sets[name].add(value)
        return int(fresh)

    async def srem(self, name: str, value: str) -> int:
        present = value in self.sets[name]
        self.sets[name].discard(value)
        return int(present)

    async def smembers(self, name: str) -> set[str]:
        return set(self.sets[name])

    async def zadd(self, name: str, mapping: dict[str, float]) -> int:
        fresh = len(mapping.keys() - self.sorted_sets[name].keys())
        self.sorted_sets[name].update(mapping)
        return fresh

    async def zrem(self, name: str, member: str) -> int:
        return int(self.sorted_sets[name].pop(member, None) is not None)

    async def zrangebyscore(self, name: str, low: Any, high: Any) -> list[str]:
        floor = float(low)
        ceiling = float(high)
        ranked = sorted(self.sorted_sets[name].items(), key=lambda item: item[1])
        return [member for member, score in ranked if floor <= score <= ceiling]

    async def publish(self, channel: str, message: str) -> int:
        self.published.append((channel, message))
        return 1

    def pubsub(self) -> "IdlePubSub":
        return IdlePubSub()


class IdlePubSub:
    """A subscription that never yields a message."""

    async def psubscribe(self, pattern: str) -> None:
        pass

    async def punsubscribe(self, pattern: str) -> None:
        pass

    async def close(self) -> None:
        pass

    async def get_message(self, ignore_subscribe_messages: bool = True, timeout: float = 1.0):
        await asyncio.sleep(0.01)
        return None


@pytest_asyncio.fixture
async def connection_manager() -> AsyncGenerator[ConnectionManager, None]:
    manager = ConnectionManager(MockRedis())
    await manager.start()
    yield manager
    await manager.stop()


@pytest.fixture
def test_tournament_id() -> str:
    return f"t-{uuid4().hex[:8]}"


@pytest.fixture
def make_connection(test_tournament_id: str):
    """Build a WebSocketConnection over a fresh MockWebSocket."""

    def _make(user_id: str | None = None, role: str = "FIELD_MEMBER") -> WebSocketConnection:
        return WebSocketConnection(
            websocket=MockWebSocket(),
            user_id=user_id or f"u-{uuid4().hex[:8]}",
            tournament_id=test_tournament_id,
            role=role,
            connection_id=str(uuid4()),
            connected_at=datetime.now(timezone.utc),
        )

    return _make


def create_auth_message(token: str) -> dict[str, Any]:
    return {"type": EventType.AUTH.value, "payload": {"token": token}}


def create_heartbeat_message(request_id: str | None = None) -> dict[str, Any]:
    return MessageEnvelope.create(EventType.HEARTBEAT, {}, request_id=request_id).to_dict()


def create_emergency_alert_message(severity: str = "HIGH", request_id: str | None = None) -> dict[str, Any]:
    payload = {
        "type": "TECHNICAL",
        "severity": severity,
        "title": "Main stage power loss",
        "description": "Generator tripped during the feature table broadcast",
    }
    return MessageEnvelope.create(EventType.EMERGENCY_ALERT, payload, request_id=request_id).to_dict()
