"""
Ledger Lock Service.

One process-wide lock serializes every state-changing ledger call. A call
that finds the lock held fails at once; there is no waiting and no retry,
so a callback that re-enters the ledger mid-transfer is rejected.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from paygate.core.exceptions import ReentrancyError
from paygate.core.logging import get_logger

if TYPE_CHECKING:
    from paygate.storage.base import StorageBackend

logger = get_logger("lock")


class ReentrancyLock:
    """
    Non-blocking mutex for one ledger.

    The holder is tracked on the instance, so the lock stays held until the
    call that took it releases it, however long that call runs. The storage
    lock is taken as well to exclude other ledgers sharing the same storage
    (every process on the same Redis prefix); its TTL only frees the key
    after a holder crashed without releasing.
    """

    LOCK_KEY = "lock:ledger"

    def __init__(self, storage: StorageBackend, ttl: int = 30) -> None:
        """
        Initialize lock service.

        Args:
            storage: Storage backend (Redis/Memory)
            ttl: Seconds after which a storage lock left behind by a crashed holder expires
        """
        self._storage = storage
        self._ttl = ttl
        self._token: str | None = None

    @property
    def locked(self) -> bool:
        """True while this instance holds the lock."""
        return self._token is not None

    async def acquire(self, operation: str) -> str:
        """
        Acquire the lock or fail immediately.

        Args:
            operation: Name of the entry point, for diagnostics

        Returns:
            Ownership token

        Raises:
            ReentrancyError: If the lock is already held
        """
        token = None
        if self._token is None:
            token = await self._storage.acquire_lock(self.LOCK_KEY, self._ttl)
        if token is None:
            logger.warning(f"Rejected {operation}: ledger lock is held")
            raise ReentrancyError(operation)

        self._token = token
        logger.debug(f"Acquired ledger lock for {operation} (token: {token[:8]}...)")
        return token

    async def release(self, token: str) -> bool:
        """
        Release a previously acquired lock.

        The holder is cleared even when the storage key already expired.

        Returns:
            True if the storage lock was released, False on token mismatch
        """
        if self._token == token:
            self._token = None
        released = await self._storage.release_lock(self.LOCK_KEY, token)
        if not released:
            logger.warning("Ledger storage lock release failed: token mismatch or lock expired")
        return released

    @asynccontextmanager
    async def hold(self, operation: str) -> AsyncIterator[str]:
        """Hold the lock for the duration of the block, releasing on every exit path."""
        token = await self.acquire(operation)
        try:
            yield token
        finally:
            await self.release(token)
