"""
In-memory asset book.

Reference implementation of the transfer collaborator with balances,
allowances and post-transfer hooks. Hooks run while the ledger call that
triggered the transfer is still in progress, which is how token callbacks
(and hostile tokens) get a chance to call back into the ledger.
"""

from __future__ import annotations

import inspect
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

from paygate.assets.base import AssetTransfer, Transfer
from paygate.core.exceptions import InsufficientFundsOrAllowanceError
from paygate.core.logging import get_logger
from paygate.core.types import normalize_address

logger = get_logger("assets")

TransferHook = Callable[[Transfer], Awaitable[None] | None]


def _check_amount(amount: int) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
        raise ValueError(f"amount must be a non-negative integer, got {amount!r}")


class InMemoryAssetBook(AssetTransfer):
    """
    Balances and allowances held in dicts.

    Keys are normalized addresses; the native asset is just another asset
    keyed by NATIVE_TOKEN.
    """

    def __init__(self) -> None:
        self._balances: dict[tuple[str, str], int] = {}
        # (asset, owner, spender) -> remaining allowance
        self._allowances: dict[tuple[str, str, str], int] = {}
        self._hooks: list[TransferHook] = []

    def on_transfer(self, hook: TransferHook) -> None:
        """Register a hook (sync or async) run after every completed transfer."""
        self._hooks.append(hook)

    def remove_hook(self, hook: TransferHook) -> None:
        if hook in self._hooks:
            self._hooks.remove(hook)

    async def mint(self, asset: str, holder: str, amount: int) -> int:
        """Credit ``amount`` out of thin air. Returns the new balance."""
        _check_amount(amount)
        key = (normalize_address(asset), normalize_address(holder))
        self._balances[key] = self._balances.get(key, 0) + amount
        return self._balances[key]

    async def approve(self, asset: str, owner: str, spender: str, amount: int) -> None:
        """Set the allowance ``spender`` may move out of ``owner``'s balance."""
        _check_amount(amount)
        key = (normalize_address(asset), normalize_address(owner), normalize_address(spender))
        self._allowances[key] = amount

    async def allowance(self, asset: str, owner: str, spender: str) -> int:
        key = (normalize_address(asset), normalize_address(owner), normalize_address(spender))
        return self._allowances.get(key, 0)

    async def balance_of(self, asset: str, holder: str) -> int:
        return self._balances.get((normalize_address(asset), normalize_address(holder)), 0)

    async def transfer(
        self,
        asset: str,
        source: str,
        destination: str,
        amount: int,
        spender: str | None = None,
    ) -> Transfer:
        _check_amount(amount)
        asset = normalize_address(asset)
        source = normalize_address(source)
        destination = normalize_address(destination)
        spender = normalize_address(spender) if spender else None

        if spender and spender != source:
            allowance_key = (asset, source, spender)
            allowed = self._allowances.get(allowance_key, 0)
            if allowed < amount:
                raise InsufficientFundsOrAllowanceError(
                    f"Allowance of {spender} on {source} is too low",
                    available=allowed,
                    required=amount,
                    asset=asset,
                    source=source,
                    destination=destination,
                )

        balance = self._balances.get((asset, source), 0)
        if balance < amount:
            raise InsufficientFundsOrAllowanceError(
                f"Balance of {source} is too low",
                available=balance,
                required=amount,
                asset=asset,
                source=source,
                destination=destination,
            )

        if spender and spender != source:
            self._allowances[(asset, source, spender)] -= amount
        self._balances[(asset, source)] = balance - amount
        self._balances[(asset, destination)] = self._balances.get((asset, destination), 0) + amount

        record = Transfer(asset, source, destination, amount, spender)
        logger.debug(f"Transferred {amount} of {asset} from {source} to {destination}")

        for hook in list(self._hooks):
            result = hook(record)
            if inspect.isawaitable(result):
                await result

        return record

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[None]:
        balances = dict(self._balances)
        allowances = dict(self._allowances)
        try:
            yield
        except BaseException:
            self._balances = balances
            self._allowances = allowances
            logger.debug("Rolled back asset book to snapshot")
            raise
