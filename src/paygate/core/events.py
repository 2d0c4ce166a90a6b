"""
Ledger events and the append-only event log.

Events are buffered during a state-changing call and only published once the
call has committed, so the log never shows an operation that was rolled back.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass, fields
from typing import TYPE_CHECKING, Any, ClassVar

from paygate.core.logging import get_logger

if TYPE_CHECKING:
    from paygate.storage.base import StorageBackend

logger = get_logger("events")

EventCallback = Callable[["LedgerEvent"], Awaitable[None] | None]


@dataclass(frozen=True)
class LedgerEvent:
    """Base class for ledger events."""

    name: ClassVar[str] = ""
    # Fields external indexers can filter on
    indexed: ClassVar[tuple[str, ...]] = ()

    def to_dict(self) -> dict[str, Any]:
        return {"event": self.name, "args": asdict(self)}

    @property
    def topics(self) -> dict[str, Any]:
        return {key: getattr(self, key) for key in self.indexed}


@dataclass(frozen=True)
class TransactionCreated(LedgerEvent):
    name: ClassVar[str] = "TransactionCreated"
    indexed: ClassVar[tuple[str, ...]] = ("transaction_id", "shop_owner")

    transaction_id: int
    shop_owner: str
    total_payment: int
    origin_chain: str
    payment_token: str


@dataclass(frozen=True)
class TransactionPaid(LedgerEvent):
    name: ClassVar[str] = "TransactionPaid"
    indexed: ClassVar[tuple[str, ...]] = ("transaction_id", "payer", "shop_owner")

    transaction_id: int
    payer: str
    shop_owner: str
    payment_token: str
    payment_amount: int
    tax_amount: int


@dataclass(frozen=True)
class TransactionRefunded(LedgerEvent):
    name: ClassVar[str] = "TransactionRefunded"
    indexed: ClassVar[tuple[str, ...]] = ("transaction_id", "payer")

    transaction_id: int
    payer: str
    refund_amount: int


@dataclass(frozen=True)
class TaxAddressUpdated(LedgerEvent):
    name: ClassVar[str] = "TaxAddressUpdated"
    indexed: ClassVar[tuple[str, ...]] = ("old_address", "new_address")

    old_address: str
    new_address: str


@dataclass(frozen=True)
class TokenAllowed(LedgerEvent):
    name: ClassVar[str] = "TokenAllowed"
    indexed: ClassVar[tuple[str, ...]] = ("token",)

    token: str


@dataclass(frozen=True)
class TokenRemoved(LedgerEvent):
    name: ClassVar[str] = "TokenRemoved"
    indexed: ClassVar[tuple[str, ...]] = ("token",)

    token: str


@dataclass(frozen=True)
class OwnershipTransferred(LedgerEvent):
    name: ClassVar[str] = "OwnershipTransferred"
    indexed: ClassVar[tuple[str, ...]] = ("previous_owner", "new_owner")

    previous_owner: str
    new_owner: str


EVENT_TYPES: dict[str, type[LedgerEvent]] = {
    cls.name: cls
    for cls in (
        TransactionCreated,
        TransactionPaid,
        TransactionRefunded,
        TaxAddressUpdated,
        TokenAllowed,
        TokenRemoved,
        OwnershipTransferred,
    )
}


def event_from_dict(data: dict[str, Any]) -> LedgerEvent:
    """Rebuild an event from its stored form."""
    event_type = EVENT_TYPES.get(data.get("event", ""))
    if event_type is None:
        raise ValueError(f"Unknown event type: {data.get('event')!r}")
    known = {f.name for f in fields(event_type)}
    return event_type(**{k: v for k, v in data.get("args", {}).items() if k in known})


class EventLog:
    """
    Append-only audit log of ledger events.

    Persists every published event under a monotonically increasing sequence
    number and fans it out to in-process subscribers.
    """

    COLLECTION = "events"
    STATE_COLLECTION = "event_state"

    def __init__(self, storage: StorageBackend) -> None:
        self._storage = storage
        self._subscribers: list[EventCallback] = []

    def subscribe(self, callback: EventCallback) -> None:
        """Register a callback (sync or async) invoked for every published event."""
        self._subscribers.append(callback)

    def unsubscribe(self, callback: EventCallback) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    async def _next_sequence(self) -> int:
        state = await self._storage.get(self.STATE_COLLECTION, "sequence")
        sequence = int(state["value"]) + 1 if state else 1
        await self._storage.save(self.STATE_COLLECTION, "sequence", {"value": sequence})
        return sequence

    async def append(self, event: LedgerEvent) -> int:
        """
        Persist an event and notify subscribers.

        Args:
            event: Event to publish

        Returns:
            Sequence number assigned to the event
        """
        sequence = await self._next_sequence()
        record = event.to_dict()
        record["sequence"] = sequence
        await self._storage.save(self.COLLECTION, f"{sequence:012d}", record)
        logger.debug(f"Published {event.name} #{sequence}")

        for callback in list(self._subscribers):
            try:
                result = callback(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                # The call that produced the event has already committed
                logger.exception(f"Event subscriber failed for {event.name} #{sequence}")

        return sequence

    async def query(
        self,
        name: str | None = None,
        limit: int | None = None,
        **args: Any,
    ) -> list[LedgerEvent]:
        """
        Query published events in publication order.

        Args:
            name: Event name filter (e.g. "TransactionCreated")
            limit: Maximum events to return
            **args: Exact-match filters on event fields

        Returns:
            Matching events, oldest first
        """
        filters = {"event": name} if name else None
        records = await self._storage.query(self.COLLECTION, filters=filters)
        records.sort(key=lambda r: int(r["sequence"]))

        events = []
        for record in records:
            record_args = record.get("args", {})
            if any(record_args.get(key) != value for key, value in args.items()):
                continue
            events.append(event_from_dict(record))

        if limit is not None:
            events = events[:limit]
        return events

    async def count(self) -> int:
        return await self._storage.count(self.COLLECTION)
