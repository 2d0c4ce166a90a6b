"""
Per-call rollback journal.

Records the pre-image of every storage key a ledger call writes and buffers
the events it emits. Rolling back restores the pre-images newest first and
drops the events.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from paygate.core.events import LedgerEvent
    from paygate.storage.base import StorageBackend


class StateJournal:
    """Write-through journal over a StorageBackend."""

    def __init__(self, storage: StorageBackend) -> None:
        self._storage = storage
        self._before: dict[tuple[str, str], dict[str, Any] | None] = {}
        self._events: list[LedgerEvent] = []

    @property
    def events(self) -> list[LedgerEvent]:
        return list(self._events)

    async def save(self, collection: str, key: str, data: dict[str, Any]) -> None:
        """Write a record, remembering what was there first."""
        slot = (collection, key)
        if slot not in self._before:
            self._before[slot] = await self._storage.get(collection, key)
        await self._storage.save(collection, key, data)

    def emit(self, event: LedgerEvent) -> None:
        self._events.append(event)

    async def rollback(self) -> int:
        """
        Undo every write made through this journal.

        Returns:
            Number of keys restored
        """
        for (collection, key), previous in reversed(list(self._before.items())):
            if previous is None:
                await self._storage.delete(collection, key)
            else:
                await self._storage.save(collection, key, previous)

        restored = len(self._before)
        self._before.clear()
        self._events.clear()
        return restored
