"""
In-Memory Storage Backend.

Default backend. State lives in the process and is gone when it exits, so
use it for development, tests and single-process demos.
"""

from __future__ import annotations

import time
import uuid
from copy import deepcopy
from typing import Any

from paygate.storage.base import StorageBackend, register_storage_backend


class InMemoryStorage(StorageBackend):
    """Collections of deep-copied records held in dicts."""

    def __init__(self) -> None:
        self._data: dict[str, dict[str, dict[str, Any]]] = {}
        # lock key -> (token, monotonic expiry)
        self._locks: dict[str, tuple[str, float]] = {}

    def _collection(self, collection: str) -> dict[str, dict[str, Any]]:
        return self._data.setdefault(collection, {})

    async def save(self, collection: str, key: str, data: dict[str, Any]) -> None:
        self._collection(collection)[key] = deepcopy(data)

    async def get(self, collection: str, key: str) -> dict[str, Any] | None:
        data = self._collection(collection).get(key)
        return deepcopy(data) if data is not None else None

    async def delete(self, collection: str, key: str) -> bool:
        return self._collection(collection).pop(key, None) is not None

    async def keys(self, collection: str) -> list[str]:
        return sorted(self._collection(collection))

    async def count(self, collection: str, filters: dict[str, Any] | None = None) -> int:
        if filters:
            return await super().count(collection, filters)
        return len(self._collection(collection))

    async def acquire_lock(self, key: str, ttl: int = 30) -> str | None:
        """Acquire the lock if it is free or its holder's TTL has lapsed."""
        now = time.monotonic()
        held = self._locks.get(key)
        if held is not None and now < held[1]:
            return None

        token = str(uuid.uuid4())
        self._locks[key] = (token, now + ttl)
        return token

    async def release_lock(self, key: str, token: str) -> bool:
        held = self._locks.get(key)
        if held is None or held[0] != token:
            return False
        del self._locks[key]
        return True


register_storage_backend("memory", InMemoryStorage)
