"""
Asset transfer collaborator interface.

The ledger never moves value itself. Every leg of a settlement or refund goes
through an AssetTransfer implementation, which may be an in-process book, a
chain client, or anything else that can move balances between addresses.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass


@dataclass(frozen=True)
class Transfer:
    """A completed movement of value."""

    asset: str
    source: str
    destination: str
    amount: int
    spender: str | None = None


class AssetTransfer(ABC):
    """
    Abstract base class for the transfer primitive.

    Implementations must raise InsufficientFundsOrAllowanceError when the
    source (or the spender's allowance on it) cannot cover the amount, and
    must undo every transfer made inside ``atomic()`` when the block raises.
    """

    @abstractmethod
    async def transfer(
        self,
        asset: str,
        source: str,
        destination: str,
        amount: int,
        spender: str | None = None,
    ) -> Transfer:
        """
        Move ``amount`` of ``asset`` from ``source`` to ``destination``.

        Args:
            asset: Asset address (NATIVE_TOKEN for the native asset)
            source: Address debited
            destination: Address credited
            amount: Amount in smallest units
            spender: Address moving funds on behalf of ``source`` using its
                allowance; None when ``source`` moves its own funds

        Returns:
            The completed transfer
        """
        ...

    @abstractmethod
    async def balance_of(self, asset: str, holder: str) -> int:
        """Current balance of ``holder`` in ``asset``."""
        ...

    @abstractmethod
    def atomic(self) -> AbstractAsyncContextManager[None]:
        """Unit of work: all transfers inside commit together or not at all."""
        ...
