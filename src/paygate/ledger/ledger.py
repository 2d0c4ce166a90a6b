"""
Custodial payment ledger.

Tracks payment transactions between payers and shop owners, settles them in
the native asset or an allowed token, and routes a fixed tax share of every
payment to the tax collector.

Every state-changing call runs as one unit: it takes the global ledger lock,
journals its storage writes, and performs its transfers inside the asset
collaborator's atomic block. Any exception restores storage, balances and
the event buffer to where they were when the call started.
"""

from __future__ import annotations

import time
from collections.abc import AsyncIterator, Callable, Iterable
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from paygate.core.events import (
    EventLog,
    OwnershipTransferred,
    TaxAddressUpdated,
    TokenAllowed,
    TokenRemoved,
    TransactionCreated,
    TransactionPaid,
    TransactionRefunded,
)
from paygate.core.exceptions import (
    AuthorizationError,
    StateConflictError,
    UnsupportedCallError,
    ValidationError,
)
from paygate.core.logging import get_logger
from paygate.core.types import (
    NATIVE_TOKEN,
    ZERO_ADDRESS,
    Transaction,
    is_zero_address,
    normalize_address,
)
from paygate.ledger import tax
from paygate.ledger.journal import StateJournal
from paygate.ledger.lock import ReentrancyLock

if TYPE_CHECKING:
    from paygate.assets.base import AssetTransfer
    from paygate.storage.base import StorageBackend

logger = get_logger("ledger")


def _require_address(value: Any, field: str) -> str:
    if not isinstance(value, str) or is_zero_address(value):
        raise ValidationError(f"{field} must be a non-zero address", details={field: value})
    return normalize_address(value)


def _require_amount(value: Any, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{field} must be a positive integer", details={field: value})
    return value


def _is_exact_value(value: Any, expected: int) -> bool:
    return not isinstance(value, bool) and isinstance(value, int) and value == expected


def _as_address(value: Any, field: str) -> str:
    """Normalize an address argument that may be the zero address."""
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be an address", details={field: value})
    return normalize_address(value)


class Ledger:
    """
    Transaction ledger with tax splitting, refunds and a token allow-list.

    Mutating methods take the acting address as ``caller`` and, where the
    operation accepts native value, the attached amount as ``value``.
    Read methods never take the lock and may be used from inside callbacks.
    """

    TRANSACTIONS = "transactions"
    PAYER_INDEX = "payer_index"
    SHOP_OWNER_INDEX = "shop_owner_index"
    ALLOWED_TOKENS = "allowed_tokens"
    SETTINGS = "settings"

    def __init__(
        self,
        storage: StorageBackend,
        assets: AssetTransfer,
        address: str,
        lock_ttl: int = 30,
        clock: Callable[[], int] | None = None,
        events: EventLog | None = None,
    ) -> None:
        """
        Initialize the ledger over existing state.

        Use ``Ledger.deploy`` to seed owner, tax collector and allow-list.

        Args:
            storage: Persistence for transactions, indices and settings
            assets: Transfer collaborator that moves value
            address: The ledger's own address; holds native custody
            lock_ttl: Seconds before a storage lock orphaned by a crashed holder expires
            clock: Block time source in unix seconds
            events: Event log (defaults to one on the same storage)
        """
        self._storage = storage
        self._assets = assets
        self.address = _require_address(address, "ledger address")
        self._lock = ReentrancyLock(storage, ttl=lock_ttl)
        self._clock = clock or (lambda: int(time.time()))
        self.events = events or EventLog(storage)

    @classmethod
    async def deploy(
        cls,
        storage: StorageBackend,
        assets: AssetTransfer,
        address: str,
        owner: str,
        tax_address: str,
        allowed_tokens: Iterable[str] = (),
        **kwargs: Any,
    ) -> Ledger:
        """
        Create a ledger and seed its settings.

        Storage that already holds a deployed ledger is reused as is, so a
        Redis-backed ledger keeps its state across restarts.
        """
        owner = _require_address(owner, "owner")
        tax_address = _require_address(tax_address, "tax address")
        tokens = [_require_address(token, "allowed token") for token in allowed_tokens]

        ledger = cls(storage, assets, address, **kwargs)
        if await storage.get(cls.SETTINGS, "owner") is not None:
            logger.info(f"Reusing deployed ledger state at {ledger.address}")
            return ledger

        async with ledger._mutation("deploy") as journal:
            await journal.save(cls.SETTINGS, "owner", {"value": owner})
            await journal.save(cls.SETTINGS, "tax_address", {"value": tax_address})
            await journal.save(cls.SETTINGS, "transaction_counter", {"value": 0})
            for token in tokens:
                await journal.save(cls.ALLOWED_TOKENS, token, {"allowed": True})
            journal.emit(OwnershipTransferred(previous_owner=ZERO_ADDRESS, new_owner=owner))

        logger.info(f"Deployed ledger {ledger.address} (owner {owner}, {len(tokens)} token(s))")
        return ledger

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _mutation(self, operation: str) -> AsyncIterator[StateJournal]:
        async with self._lock.hold(operation):
            journal = StateJournal(self._storage)
            try:
                async with self._assets.atomic():
                    yield journal
            except BaseException as exc:
                restored = await journal.rollback()
                if restored:
                    logger.warning(f"Rolled back {operation} ({restored} record(s)): {exc}")
                else:
                    logger.info(f"Rejected {operation}: {exc}")
                raise

            for event in journal.events:
                await self.events.append(event)

    # ------------------------------------------------------------------
    # Internal state helpers
    # ------------------------------------------------------------------

    async def _setting(self, key: str) -> Any:
        record = await self._storage.get(self.SETTINGS, key)
        if record is None:
            raise StateConflictError("Ledger has not been deployed", details={"setting": key})
        return record["value"]

    async def _require_owner(self, caller: Any, operation: str) -> str:
        owner = await self._setting("owner")
        if not isinstance(caller, str) or normalize_address(caller) != owner:
            raise AuthorizationError(f"Only the owner may call {operation}", caller=caller)
        return owner

    async def _load(self, transaction_id: Any) -> Transaction:
        counter = await self.get_transaction_counter()
        if (
            isinstance(transaction_id, bool)
            or not isinstance(transaction_id, int)
            or not 1 <= transaction_id <= counter
        ):
            raise ValidationError(
                "Invalid transaction id",
                details={"transaction_id": transaction_id, "counter": counter},
            )
        data = await self._storage.get(self.TRANSACTIONS, str(transaction_id))
        if data is None:
            raise StateConflictError("Transaction record is missing", transaction_id=transaction_id)
        return Transaction.from_dict(data)

    async def _append_index(
        self, journal: StateJournal, collection: str, address: str, transaction_id: int
    ) -> None:
        record = await self._storage.get(collection, address) or {"ids": []}
        record["ids"].append(transaction_id)
        await journal.save(collection, address, record)

    async def _create(
        self,
        journal: StateJournal,
        origin_chain: Any,
        total_payment: Any,
        shop_owner: Any,
        payment_token: Any,
        payer: Any,
        check_allowed: bool,
    ) -> int:
        shop_owner = _require_address(shop_owner, "shop owner")
        total_payment = _require_amount(total_payment, "total payment")
        if not isinstance(origin_chain, str) or not origin_chain:
            raise ValidationError("origin chain must be a non-empty string")
        payer = _require_address(payer, "payer")
        payment_token = _as_address(payment_token, "payment token")

        if check_allowed and payment_token != NATIVE_TOKEN and not await self.is_asset_allowed(payment_token):
            raise StateConflictError("Token not allowed", details={"payment_token": payment_token})

        transaction_id = await self.get_transaction_counter() + 1
        tax_amount, shop_owner_amount = tax.split_payment(total_payment)
        transaction = Transaction(
            id=transaction_id,
            payer=payer,
            origin_chain=origin_chain,
            total_payment=total_payment,
            shop_owner=shop_owner,
            payment_token=payment_token,
            created_at=self._clock(),
            tax_amount=tax_amount,
            shop_owner_amount=shop_owner_amount,
        )

        await journal.save(self.TRANSACTIONS, str(transaction_id), transaction.to_dict())
        await journal.save(self.SETTINGS, "transaction_counter", {"value": transaction_id})
        await self._append_index(journal, self.SHOP_OWNER_INDEX, shop_owner, transaction_id)
        await self._append_index(journal, self.PAYER_INDEX, payer, transaction_id)

        journal.emit(
            TransactionCreated(
                transaction_id=transaction_id,
                shop_owner=shop_owner,
                total_payment=total_payment,
                origin_chain=origin_chain,
                payment_token=payment_token,
            )
        )
        logger.info(f"Created transaction {transaction_id}: {total_payment} of {payment_token} to {shop_owner}")
        return transaction_id

    async def _mark_paid(self, journal: StateJournal, transaction: Transaction, payer: str) -> None:
        # Whoever settles becomes the payer of record; the creator's index entry stays
        if payer != transaction.payer:
            await self._append_index(journal, self.PAYER_INDEX, payer, transaction.id)
            transaction.payer = payer
        transaction.is_paid = True
        await journal.save(self.TRANSACTIONS, str(transaction.id), transaction.to_dict())

    def _require_unpaid(self, transaction: Transaction) -> None:
        if transaction.is_paid:
            raise StateConflictError("Transaction already paid", transaction_id=transaction.id)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    async def create_transaction(
        self,
        origin_chain: str,
        total_payment: int,
        shop_owner: str,
        payment_token: str,
        *,
        caller: str,
    ) -> int:
        """
        Create an unpaid transaction with ``caller`` as payer.

        Args:
            origin_chain: Tag of the payment's origin context
            total_payment: Gross amount in smallest units
            shop_owner: Address receiving the post-tax amount
            payment_token: NATIVE_TOKEN or an allowed token address
            caller: Creator, recorded as payer

        Returns:
            The new transaction id
        """
        async with self._mutation("create_transaction") as journal:
            return await self._create(
                journal, origin_chain, total_payment, shop_owner, payment_token, caller, check_allowed=True
            )

    async def create_transaction_for(
        self,
        origin_chain: str,
        total_payment: int,
        shop_owner: str,
        payment_token: str,
        payer: str,
        *,
        caller: str,
    ) -> int:
        """
        Create a transaction on behalf of a designated payer.

        Owner-only entry for trusted integrations. The allow-list is not
        consulted here; it is still enforced when a token payment settles.
        """
        async with self._mutation("create_transaction_for") as journal:
            await self._require_owner(caller, "create_transaction_for")
            return await self._create(
                journal, origin_chain, total_payment, shop_owner, payment_token, payer, check_allowed=False
            )

    async def pay_transaction(self, transaction_id: int, *, caller: str, value: int) -> None:
        """
        Settle a native-asset transaction.

        ``value`` is the native amount attached by ``caller`` and must equal
        the transaction's total payment exactly.
        """
        async with self._mutation("pay_transaction") as journal:
            payer = _require_address(caller, "payer")
            transaction = await self._load(transaction_id)
            self._require_unpaid(transaction)
            if not transaction.is_native:
                raise StateConflictError(
                    "Transaction must be paid with its token", transaction_id=transaction.id
                )
            if not _is_exact_value(value, transaction.total_payment):
                raise ValidationError(
                    "Incorrect payment amount",
                    details={"expected": transaction.total_payment, "received": value},
                )
            tax_address = await self._setting("tax_address")

            await self._mark_paid(journal, transaction, payer)
            await self._assets.transfer(NATIVE_TOKEN, payer, self.address, value)
            await self._assets.transfer(NATIVE_TOKEN, self.address, tax_address, transaction.tax_amount)
            await self._assets.transfer(
                NATIVE_TOKEN, self.address, transaction.shop_owner, transaction.shop_owner_amount
            )

            journal.emit(
                TransactionPaid(
                    transaction_id=transaction.id,
                    payer=payer,
                    shop_owner=transaction.shop_owner,
                    payment_token=NATIVE_TOKEN,
                    payment_amount=transaction.shop_owner_amount,
                    tax_amount=transaction.tax_amount,
                )
            )
            logger.info(f"Transaction {transaction.id} paid natively by {payer}")

    async def pay_transaction_with_token(self, transaction_id: int, *, caller: str) -> bool:
        """
        Settle a token transaction from ``caller``'s pre-approved allowance.

        The token must still be allowed at payment time.
        """
        async with self._mutation("pay_transaction_with_token") as journal:
            payer = _require_address(caller, "payer")
            transaction = await self._load(transaction_id)
            self._require_unpaid(transaction)
            if transaction.is_native:
                raise StateConflictError(
                    "Native transactions are paid with pay_transaction", transaction_id=transaction.id
                )
            token = transaction.payment_token
            if not await self.is_asset_allowed(token):
                raise StateConflictError(
                    "Token not allowed", transaction_id=transaction.id, details={"payment_token": token}
                )
            tax_address = await self._setting("tax_address")

            await self._mark_paid(journal, transaction, payer)
            await self._assets.transfer(
                token, payer, self.address, transaction.total_payment, spender=self.address
            )
            await self._assets.transfer(token, self.address, tax_address, transaction.tax_amount)
            await self._assets.transfer(token, self.address, transaction.shop_owner, transaction.shop_owner_amount)

            journal.emit(
                TransactionPaid(
                    transaction_id=transaction.id,
                    payer=payer,
                    shop_owner=transaction.shop_owner,
                    payment_token=token,
                    payment_amount=transaction.shop_owner_amount,
                    tax_amount=transaction.tax_amount,
                )
            )
            logger.info(f"Transaction {transaction.id} paid in {token} by {payer}")
            return True

    async def refund_transaction(self, transaction_id: int, *, caller: str, value: int = 0) -> None:
        """
        Refund the post-tax amount of a paid transaction to its payer.

        Only the shop owner may refund. Native refunds attach exactly the
        shop owner amount as ``value``; token refunds move it straight from
        the shop owner to the payer using the shop owner's allowance to the
        ledger. Tax is never refunded.
        """
        async with self._mutation("refund_transaction") as journal:
            transaction = await self._load(transaction_id)
            if not transaction.is_paid:
                raise StateConflictError("Transaction not paid", transaction_id=transaction.id)
            if transaction.is_refunded:
                raise StateConflictError("Transaction already refunded", transaction_id=transaction.id)
            if not isinstance(caller, str) or normalize_address(caller) != transaction.shop_owner:
                raise AuthorizationError("Only the shop owner can refund", caller=caller)

            shop_owner = transaction.shop_owner
            refund_amount = transaction.shop_owner_amount
            transaction.is_refunded = True

            if transaction.is_native:
                if not _is_exact_value(value, refund_amount):
                    raise ValidationError(
                        "Incorrect refund amount",
                        details={"expected": refund_amount, "received": value},
                    )
                await journal.save(self.TRANSACTIONS, str(transaction.id), transaction.to_dict())
                await self._assets.transfer(NATIVE_TOKEN, shop_owner, self.address, value)
                await self._assets.transfer(NATIVE_TOKEN, self.address, transaction.payer, refund_amount)
            else:
                if not _is_exact_value(value, 0):
                    raise ValidationError(
                        "Token refunds do not accept native value", details={"received": value}
                    )
                await journal.save(self.TRANSACTIONS, str(transaction.id), transaction.to_dict())
                await self._assets.transfer(
                    transaction.payment_token,
                    shop_owner,
                    transaction.payer,
                    refund_amount,
                    spender=self.address,
                )

            journal.emit(
                TransactionRefunded(
                    transaction_id=transaction.id,
                    payer=transaction.payer,
                    refund_amount=refund_amount,
                )
            )
            logger.info(f"Transaction {transaction.id} refunded {refund_amount} to {transaction.payer}")

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    async def add_allowed_asset(self, asset: str, *, caller: str) -> None:
        async with self._mutation("add_allowed_asset") as journal:
            await self._require_owner(caller, "add_allowed_asset")
            asset = _require_address(asset, "token")
            if await self.is_asset_allowed(asset):
                raise StateConflictError("Token already allowed", details={"token": asset})

            await journal.save(self.ALLOWED_TOKENS, asset, {"allowed": True})
            journal.emit(TokenAllowed(token=asset))
            logger.info(f"Allowed token {asset}")

    async def remove_allowed_asset(self, asset: str, *, caller: str) -> None:
        async with self._mutation("remove_allowed_asset") as journal:
            await self._require_owner(caller, "remove_allowed_asset")
            asset = _require_address(asset, "token")
            if not await self.is_asset_allowed(asset):
                raise StateConflictError("Token not in allowed list", details={"token": asset})

            await journal.save(self.ALLOWED_TOKENS, asset, {"allowed": False})
            journal.emit(TokenRemoved(token=asset))
            logger.info(f"Removed token {asset}")

    async def update_tax_address(self, new_address: str, *, caller: str) -> None:
        async with self._mutation("update_tax_address") as journal:
            await self._require_owner(caller, "update_tax_address")
            new_address = _require_address(new_address, "tax address")
            old_address = await self._setting("tax_address")

            await journal.save(self.SETTINGS, "tax_address", {"value": new_address})
            journal.emit(TaxAddressUpdated(old_address=old_address, new_address=new_address))
            logger.info(f"Tax address changed from {old_address} to {new_address}")

    async def transfer_ownership(self, new_owner: str, *, caller: str) -> None:
        async with self._mutation("transfer_ownership") as journal:
            previous_owner = await self._require_owner(caller, "transfer_ownership")
            new_owner = _require_address(new_owner, "new owner")

            await journal.save(self.SETTINGS, "owner", {"value": new_owner})
            journal.emit(OwnershipTransferred(previous_owner=previous_owner, new_owner=new_owner))
            logger.info(f"Ownership transferred from {previous_owner} to {new_owner}")

    async def emergency_withdraw(self, *, caller: str) -> int:
        """
        Sweep the ledger's whole native balance to the owner.

        Returns:
            Amount withdrawn
        """
        async with self._mutation("emergency_withdraw"):
            owner = await self._require_owner(caller, "emergency_withdraw")
            balance = await self._assets.balance_of(NATIVE_TOKEN, self.address)
            if balance <= 0:
                raise StateConflictError("No funds to withdraw")

            await self._assets.transfer(NATIVE_TOKEN, self.address, owner, balance)
            logger.warning(f"Emergency withdrawal of {balance} native to {owner}")
            return balance

    async def receive(self, sender: str, value: int) -> None:
        """Bare native transfers have no meaning here and are always refused."""
        raise UnsupportedCallError(
            "Direct payments not accepted", details={"sender": sender, "value": value}
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_transaction(self, transaction_id: int) -> Transaction:
        return await self._load(transaction_id)

    async def get_payer_transactions(self, payer: str) -> list[int]:
        record = await self._storage.get(self.PAYER_INDEX, _as_address(payer, "payer"))
        return list(record["ids"]) if record else []

    async def get_shop_owner_transactions(self, shop_owner: str) -> list[int]:
        record = await self._storage.get(self.SHOP_OWNER_INDEX, _as_address(shop_owner, "shop owner"))
        return list(record["ids"]) if record else []

    async def get_transaction_counter(self) -> int:
        record = await self._storage.get(self.SETTINGS, "transaction_counter")
        return int(record["value"]) if record else 0

    async def is_asset_allowed(self, asset: str) -> bool:
        """Native is always valid; tokens must be in the allow-list."""
        asset = _as_address(asset, "asset")
        if asset == NATIVE_TOKEN:
            return True
        record = await self._storage.get(self.ALLOWED_TOKENS, asset)
        return bool(record and record.get("allowed"))

    async def get_tax_address(self) -> str:
        return await self._setting("tax_address")

    async def get_owner(self) -> str:
        return await self._setting("owner")

    async def native_balance(self) -> int:
        return await self._assets.balance_of(NATIVE_TOKEN, self.address)

    @property
    def is_locked(self) -> bool:
        return self._lock.locked

    @staticmethod
    def calculate_tax(amount: int) -> int:
        return tax.calculate_tax(amount)

    @staticmethod
    def calculate_shop_owner_amount(amount: int) -> int:
        return tax.calculate_shop_owner_amount(amount)
