"""
Redis Storage Backend.

Keeps ledger state and the event log in Redis so they survive restarts and
can be shared by several processes. The ledger lock then becomes a Redis
key, so every process on the same prefix is serialized by it.
"""

from __future__ import annotations

import json
import os
import uuid
from typing import Any

from paygate.core.logging import get_logger
from paygate.storage.base import StorageBackend, register_storage_backend

logger = get_logger("storage.redis")


class RedisStorage(StorageBackend):
    """
    Redis storage backend.

    Each record is a JSON string under ``{prefix}:{collection}:{key}``; a set
    at ``{prefix}:{collection}:_index`` tracks the keys of each collection.
    """

    # Only delete the lock if the stored token is ours
    _RELEASE_LOCK_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("del", KEYS[1])
    else
        return 0
    end
    """

    def __init__(self, redis_url: str | None = None, prefix: str = "paygate") -> None:
        """
        Initialize Redis storage.

        Args:
            redis_url: Redis connection URL (or from PAYGATE_REDIS_URL env)
            prefix: Key prefix for all storage keys
        """
        self._redis_url = redis_url or os.environ.get("PAYGATE_REDIS_URL", "redis://localhost:6379/0")
        self._prefix = prefix
        self._client = None

    def _get_client(self):
        """Lazy-load Redis client."""
        if self._client is None:
            import redis.asyncio as redis

            self._client = redis.from_url(self._redis_url, decode_responses=True)
        return self._client

    def _make_key(self, collection: str, key: str) -> str:
        return f"{self._prefix}:{collection}:{key}"

    def _index_key(self, collection: str) -> str:
        return f"{self._prefix}:{collection}:_index"

    def _lock_key(self, key: str) -> str:
        return f"{self._prefix}:locks:{key}"

    async def save(self, collection: str, key: str, data: dict[str, Any]) -> None:
        client = self._get_client()
        await client.set(self._make_key(collection, key), json.dumps(data))
        await client.sadd(self._index_key(collection), key)

    async def get(self, collection: str, key: str) -> dict[str, Any] | None:
        data = await self._get_client().get(self._make_key(collection, key))
        if data is None:
            return None
        return json.loads(data)

    async def delete(self, collection: str, key: str) -> bool:
        client = self._get_client()
        result = await client.delete(self._make_key(collection, key))
        await client.srem(self._index_key(collection), key)
        return result > 0

    async def keys(self, collection: str) -> list[str]:
        return sorted(await self._get_client().smembers(self._index_key(collection)))

    async def count(self, collection: str, filters: dict[str, Any] | None = None) -> int:
        if filters:
            return await super().count(collection, filters)
        return await self._get_client().scard(self._index_key(collection))

    async def acquire_lock(self, key: str, ttl: int = 30) -> str | None:
        """Acquire with SET NX EX; the value is our ownership token."""
        token = str(uuid.uuid4())
        result = await self._get_client().set(self._lock_key(key), token, nx=True, ex=ttl)
        return token if result else None

    async def release_lock(self, key: str, token: str) -> bool:
        """Release via an atomic check-and-delete script."""
        result = await self._get_client().eval(self._RELEASE_LOCK_SCRIPT, 1, self._lock_key(key), token)
        return int(result) > 0

    async def health_check(self) -> bool:
        try:
            await self._get_client().ping()
            return True
        except Exception as exc:
            logger.warning(f"Redis health check failed: {exc}")
            return False

    async def close(self) -> None:
        """Close Redis connection."""
        if self._client:
            await self._client.aclose()
            self._client = None


register_storage_backend("redis", RedisStorage)
