"""Presence tracking for socket sessions.

A presence record exists while a session is connected and heartbeating.
``userOnline`` / ``userOffline`` are announced per *user*, not per session:
only the first session appearing and the last one leaving produce an event.
Whoever removes a record (disconnect or sweep) owns the single offline event;
``PresenceStore.remove`` hands the record to exactly one caller.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, replace
from datetime import datetime, timedelta

from redis.asyncio import Redis

from fieldops.coordination.broadcaster import EventBroadcaster
from fieldops.coordination.events import CoordinationEvent, EventName
from fieldops.middleware.prometheus import record_presence
from fieldops.utils.clock import Clock, ensure_utc, utcnow
from fieldops.utils.json_utils import isoformat, json_dumps, json_loads
from fieldops.ws.connection import ConnectionState, WebSocketConnection
from fieldops.ws.manager import ConnectionManager

logger = logging.getLogger(__name__)

EXPIRED_CLOSE_CODE = 4000


@dataclass
class PresenceRecord:
    """One live socket session."""

    session_id: str
    user_id: str
    tournament_id: str
    connected_at: datetime
    last_seen: datetime

    def to_json(self) -> str:
        return json_dumps(asdict(self))

    @classmethod
    def from_json(cls, raw: str | bytes) -> PresenceRecord:
        data = json_loads(raw)
        return cls(
            session_id=data["session_id"],
            user_id=data["user_id"],
            tournament_id=data["tournament_id"],
            connected_at=ensure_utc(datetime.fromisoformat(data["connected_at"].replace("Z", "+00:00"))),
            last_seen=ensure_utc(datetime.fromisoformat(data["last_seen"].replace("Z", "+00:00"))),
        )


class PresenceStore(ABC):
    """Storage for presence records."""

    @abstractmethod
    async def insert(self, record: PresenceRecord) -> None:
        ...

    @abstractmethod
    async def refresh(self, session_id: str, now: datetime) -> PresenceRecord | None:
        """Bump ``last_seen``. Returns None if the record is already gone."""
        ...

    @abstractmethod
    async def remove(self, session_id: str) -> PresenceRecord | None:
        """Delete a record.

        Returns:
            The removed record, or None if another caller removed it first
        """
        ...

    @abstractmethod
    async def list_by_tournament(self, tournament_id: str) -> list[PresenceRecord]:
        ...

    @abstractmethod
    async def list_stale(self, cutoff: datetime) -> list[PresenceRecord]:
        """Records whose ``last_seen`` is older than ``cutoff``."""
        ...


class InMemoryPresenceStore(PresenceStore):
    """Single-instance store. Safe under one event loop without locks."""

    def __init__(self) -> None:
        self._records: dict[str, PresenceRecord] = {}

    async def insert(self, record: PresenceRecord) -> None:
        self._records[record.session_id] = record

    async def refresh(self, session_id: str, now: datetime) -> PresenceRecord | None:
        record = self._records.get(session_id)
        if record is None:
            return None
        record.last_seen = now
        return record

    async def remove(self, session_id: str) -> PresenceRecord | None:
        return self._records.pop(session_id, None)

    async def list_by_tournament(self, tournament_id: str) -> list[PresenceRecord]:
        return [r for r in self._records.values() if r.tournament_id == tournament_id]

    async def list_stale(self, cutoff: datetime) -> list[PresenceRecord]:
        return [r for r in self._records.values() if r.last_seen < cutoff]


class RedisPresenceStore(PresenceStore):
    """Multi-instance store.

    Keys:
        presence:{sid}                  JSON record with a TTL
        presence:tournament:{tid}       set of session ids
        presence:last_seen              sorted set of session ids by last_seen
    """

    LAST_SEEN_KEY = "presence:last_seen"

    def __init__(self, redis: Redis, ttl_seconds: int):
        self.redis = redis
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def _record_key(session_id: str) -> str:
        return f"presence:{session_id}"

    @staticmethod
    def _tournament_key(tournament_id: str) -> str:
        return f"presence:tournament:{tournament_id}"

    async def insert(self, record: PresenceRecord) -> None:
        await self.redis.setex(self._record_key(record.session_id), self.ttl_seconds, record.to_json())
        await self.redis.sadd(self._tournament_key(record.tournament_id), record.session_id)
        await self.redis.zadd(self.LAST_SEEN_KEY, {record.session_id: record.last_seen.timestamp()})

    async def refresh(self, session_id: str, now: datetime) -> PresenceRecord | None:
        raw = await self.redis.get(self._record_key(session_id))
        if raw is None:
            return None
        record = replace(PresenceRecord.from_json(raw), last_seen=now)
        await self.redis.setex(self._record_key(session_id), self.ttl_seconds, record.to_json())
        await self.redis.zadd(self.LAST_SEEN_KEY, {session_id: now.timestamp()})
        return record

    async def remove(self, session_id: str) -> PresenceRecord | None:
        key = self._record_key(session_id)
        raw = await self.redis.get(key)
        await self.redis.zrem(self.LAST_SEEN_KEY, session_id)
        if raw is None:
            return None
        # DEL reports 1 to exactly one of several concurrent removers
        if not await self.redis.delete(key):
            return None
        record = PresenceRecord.from_json(raw)
        await self.redis.srem(self._tournament_key(record.tournament_id), session_id)
        return record

    async def list_by_tournament(self, tournament_id: str) -> list[PresenceRecord]:
        set_key = self._tournament_key(tournament_id)
        records = []
        for session_id in list(await self.redis.smembers(set_key)):
            raw = await self.redis.get(self._record_key(session_id))
            if raw is None:
                await self.redis.srem(set_key, session_id)
                continue
            records.append(PresenceRecord.from_json(raw))
        return records

    async def list_stale(self, cutoff: datetime) -> list[PresenceRecord]:
        session_ids = await self.redis.zrangebyscore(self.LAST_SEEN_KEY, "-inf", cutoff.timestamp())
        records = []
        for session_id in session_ids:
            raw = await self.redis.get(self._record_key(session_id))
            if raw is None:
                # Key TTL ran out before the sweep saw it
                await self.redis.zrem(self.LAST_SEEN_KEY, session_id)
                logger.info(f"Presence record {session_id} lapsed before sweep")
                continue
            records.append(PresenceRecord.from_json(raw))
        return records


class PresenceTracker:
    """Maintains presence records and announces user-level online/offline."""

    def __init__(
        self,
        store: PresenceStore,
        broadcaster: EventBroadcaster,
        manager: ConnectionManager | None = None,
        ttl_seconds: int = 300,
        sweep_interval_seconds: int = 60,
        clock: Clock = utcnow,
    ):
        self.store = store
        self.broadcaster = broadcaster
        self.manager = manager
        self.ttl = timedelta(seconds=ttl_seconds)
        self.sweep_interval_seconds = sweep_interval_seconds
        self.clock = clock

        self._sweep_task: asyncio.Task | None = None
        self._running = False

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        """Start the periodic stale-session sweep."""
        if self._running:
            return
        self._running = True

        async def sweep_loop() -> None:
            while self._running:
                try:
                    await asyncio.sleep(self.sweep_interval_seconds)
                    await self.sweep()
                except asyncio.CancelledError:
                    break
                except Exception as e:
                    logger.error(f"Presence sweep error: {e}")

        self._sweep_task = asyncio.create_task(sweep_loop())
        logger.info(
            f"Presence sweep started (ttl={self.ttl.total_seconds():.0f}s, "
            f"interval={self.sweep_interval_seconds}s)"
        )

    async def stop(self) -> None:
        self._running = False
        if self._sweep_task:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None

    # =========================================================================
    # Session events
    # =========================================================================

    async def connect(self, conn: WebSocketConnection) -> list[str]:
        """Record a new session and announce the user if it is their first.

        Returns:
            User ids online in the tournament, for the ``onlineUsers`` reply
        """
        now = self.clock()
        already_online = await self._has_session(conn.tournament_id, conn.user_id)

        await self.store.insert(PresenceRecord(
            session_id=conn.connection_id,
            user_id=conn.user_id,
            tournament_id=conn.tournament_id,
            connected_at=now,
            last_seen=now,
        ))
        conn.state = ConnectionState.ONLINE
        conn.last_seen = now
        record_presence(online=True)

        if not already_online:
            await self.broadcaster.dispatch([CoordinationEvent.for_tournament(
                conn.tournament_id,
                EventName.USER_ONLINE,
                {"userId": conn.user_id, "timestamp": isoformat(now)},
                exclude_connection=conn.connection_id,
            )])

        return await self.online_user_ids(conn.tournament_id)

    async def heartbeat(self, conn: WebSocketConnection) -> bool:
        """Refresh ``last_seen``. False if the session was already expired."""
        now = self.clock()
        record = await self.store.refresh(conn.connection_id, now)
        if record is None:
            return False
        conn.last_seen = now
        return True

    async def disconnect(self, conn: WebSocketConnection) -> bool:
        """Drop the session's record. False if the sweep got there first."""
        record = await self.store.remove(conn.connection_id)
        if record is None:
            return False
        if conn.state != ConnectionState.EXPIRED:
            conn.state = ConnectionState.OFFLINE
        record_presence(online=False)
        await self._announce_offline(record, reason="disconnected")
        return True

    async def sweep(self) -> int:
        """Expire sessions silent for longer than the TTL.

        Returns:
            Number of sessions expired by this pass
        """
        cutoff = self.clock() - self.ttl
        expired = 0
        for stale in await self.store.list_stale(cutoff):
            record = await self.store.remove(stale.session_id)
            if record is None:
                continue
            expired += 1
            record_presence(online=False, expired=True)

            conn = self.manager.get_connection(record.session_id) if self.manager else None
            if conn is not None:
                conn.state = ConnectionState.EXPIRED
                await conn.close(EXPIRED_CLOSE_CODE, "Presence expired")

            logger.info(
                f"Presence expired: user={record.user_id}, session={record.session_id}, "
                f"last_seen={isoformat(record.last_seen)}"
            )
            await self._announce_offline(record, reason="expired")
        return expired

    async def online_user_ids(self, tournament_id: str) -> list[str]:
        records = await self.store.list_by_tournament(tournament_id)
        return sorted({record.user_id for record in records})

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _has_session(self, tournament_id: str, user_id: str) -> bool:
        records = await self.store.list_by_tournament(tournament_id)
        return any(record.user_id == user_id for record in records)

    async def _announce_offline(self, record: PresenceRecord, reason: str) -> None:
        if await self._has_session(record.tournament_id, record.user_id):
            return
        await self.broadcaster.dispatch([CoordinationEvent.for_tournament(
            record.tournament_id,
            EventName.USER_OFFLINE,
            {"userId": record.user_id, "reason": reason, "timestamp": isoformat(self.clock())},
            exclude_connection=record.session_id,
        )])


def build_presence_store(backend: str, redis: Redis | None, ttl_seconds: int) -> PresenceStore:
    """Pick the configured store; ``redis`` falls back to memory without a client."""
    if backend == "redis":
        if redis is not None:
            return RedisPresenceStore(redis, ttl_seconds)
        logger.warning("presence_backend=redis but Redis is unavailable; using memory store")
    return InMemoryPresenceStore()
