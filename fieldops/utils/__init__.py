"""Utility modules."""

from fieldops.utils.db import engine, get_db, session_scope
from fieldops.utils.redis_client import CacheService, get_redis

__all__ = [
    "engine",
    "get_db",
    "session_scope",
    "CacheService",
    "get_redis",
]
