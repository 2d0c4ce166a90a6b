"""
Storage backend interface.

The ledger keeps everything it knows (transactions, per-address indices,
settings and the event log) as small JSON-compatible records grouped into
collections. A backend only has to provide keyed record access and a
non-blocking lock; filtering and counting are built on top of that here.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class StorageBackend(ABC):
    """
    Abstract base class for storage backends.

    Records are plain dicts. Backends must hand out copies: mutating a
    returned record never changes what is stored.
    """

    @abstractmethod
    async def save(self, collection: str, key: str, data: dict[str, Any]) -> None:
        """Store ``data`` under ``key``, replacing any existing record."""
        ...

    @abstractmethod
    async def get(self, collection: str, key: str) -> dict[str, Any] | None:
        """Return the record under ``key``, or None if there is none."""
        ...

    @abstractmethod
    async def delete(self, collection: str, key: str) -> bool:
        """
        Remove a record.

        Returns:
            True if deleted, False if not found
        """
        ...

    @abstractmethod
    async def keys(self, collection: str) -> list[str]:
        """All keys in ``collection``, sorted."""
        ...

    @abstractmethod
    async def acquire_lock(self, key: str, ttl: int = 30) -> str | None:
        """
        Acquire a lock without waiting.

        Args:
            key: Lock key
            ttl: Seconds after which an unreleased lock expires

        Returns:
            Ownership token if acquired, None if already held
        """
        ...

    @abstractmethod
    async def release_lock(self, key: str, token: str) -> bool:
        """
        Release a lock held with the given token.

        Returns:
            True if released, False if not held or the token does not match
        """
        ...

    async def query(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """
        Records matching every filter exactly, in key order.

        Each result carries its key under ``_key``.
        """
        results = []
        for key in await self.keys(collection):
            record = await self.get(collection, key)
            if record is None:
                continue
            if filters and any(record.get(k) != v for k, v in filters.items()):
                continue
            record["_key"] = key
            results.append(record)

        results = results[offset:]
        if limit is not None:
            results = results[:limit]
        return results

    async def count(self, collection: str, filters: dict[str, Any] | None = None) -> int:
        if filters:
            return len(await self.query(collection, filters))
        return len(await self.keys(collection))

    async def clear(self, collection: str) -> int:
        """
        Delete every record in a collection.

        Returns:
            Number of records deleted
        """
        keys = await self.keys(collection)
        for key in keys:
            await self.delete(collection, key)
        return len(keys)

    async def health_check(self) -> bool:
        return True

    async def close(self) -> None:
        """Release connections held by the backend."""
        return None


# name -> backend class, filled in by each backend module on import
_STORAGE_BACKENDS: dict[str, type[StorageBackend]] = {}


def register_storage_backend(name: str, backend_class: type[StorageBackend]) -> None:
    """Register a storage backend by name."""
    _STORAGE_BACKENDS[name] = backend_class


def get_storage_backend(name: str) -> type[StorageBackend] | None:
    return _STORAGE_BACKENDS.get(name)


def list_storage_backends() -> list[str]:
    return sorted(_STORAGE_BACKENDS)
