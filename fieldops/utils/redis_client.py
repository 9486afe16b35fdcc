"""Redis client for caching, presence and pub/sub."""

import logging
from typing import Any

from redis.asyncio import ConnectionPool, Redis

from fieldops.config import get_settings
from fieldops.middleware.prometheus import record_cache_access
from fieldops.utils.json_utils import json_dumps, json_loads

settings = get_settings()
logger = logging.getLogger(__name__)

# Global Redis connection pool and client instance
redis_pool: ConnectionPool | None = None
redis_client: Redis | None = None


async def init_redis() -> Redis:
    """Initialize the shared Redis connection pool."""
    global redis_pool, redis_client

    redis_pool = ConnectionPool.from_url(
        settings.redis_url,
        max_connections=settings.redis_max_connections,
        socket_timeout=settings.redis_socket_timeout,
        socket_connect_timeout=settings.redis_socket_connect_timeout,
        retry_on_timeout=True,
        health_check_interval=settings.redis_health_check_interval,
        encoding="utf-8",
        decode_responses=True,
    )
    redis_client = Redis(connection_pool=redis_pool)

    await redis_client.ping()
    return redis_client


async def close_redis() -> None:
    """Close Redis connection and pool."""
    global redis_pool, redis_client
    if redis_client:
        await redis_client.close()
        redis_client = None
    if redis_pool:
        await redis_pool.disconnect()
        redis_pool = None


def get_redis() -> Redis | None:
    """Return the shared client, or None before init_redis() ran."""
    return redis_client


class CacheService:
    """Best-effort JSON cache over Redis.

    Caching is an optimization, never a correctness dependency: every Redis
    error is logged and swallowed. Reads degrade to a miss (None), writes
    report False.
    """

    def __init__(self, client: Redis | None):
        self.client = client

    @staticmethod
    def _kind(key: str) -> str:
        return key.split(":", 1)[0]

    async def get(self, key: str) -> Any | None:
        if self.client is None:
            return None
        try:
            raw = await self.client.get(key)
        except Exception as e:
            logger.warning(f"Cache get failed for {key}: {e}")
            return None

        record_cache_access(self._kind(key), hit=raw is not None)
        if raw is None:
            return None
        try:
            return json_loads(raw)
        except ValueError as e:
            logger.warning(f"Discarding undecodable cache entry {key}: {e}")
            return None

    async def set(self, key: str, value: Any, ttl: int) -> bool:
        if self.client is None:
            return False
        try:
            await self.client.setex(key, ttl, json_dumps(value))
            return True
        except Exception as e:
            logger.warning(f"Cache set failed for {key}: {e}")
            return False

    async def delete(self, *keys: str) -> bool:
        if self.client is None or not keys:
            return False
        try:
            await self.client.delete(*keys)
            return True
        except Exception as e:
            logger.warning(f"Cache delete failed for {keys}: {e}")
            return False

    async def keys(self, pattern: str) -> list[str]:
        """List keys matching a glob pattern (SCAN based, never KEYS)."""
        if self.client is None:
            return []
        try:
            return [key async for key in self.client.scan_iter(match=pattern)]
        except Exception as e:
            logger.warning(f"Cache scan failed for {pattern}: {e}")
            return []

    async def delete_pattern(self, pattern: str) -> bool:
        matched = await self.keys(pattern)
        if not matched:
            return True
        return await self.delete(*matched)
