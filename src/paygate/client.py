"""PaymentGateway - caller-facing entry point to the ledger."""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from typing import Any

from paygate.assets.base import AssetTransfer
from paygate.assets.memory import InMemoryAssetBook
from paygate.core.config import Config
from paygate.core.events import EventLog
from paygate.core.exceptions import UnsupportedCallError, ValidationError
from paygate.core.logging import configure_logging, get_logger
from paygate.core.types import Transaction
from paygate.ledger import Ledger
from paygate.storage import StorageBackend, get_storage

Handler = Callable[..., Awaitable[Any]]


class PaymentGateway:
    """
    Dispatches named calls from an external sender to the ledger.

    Mirrors the deployed contract's interface: each call carries the sender
    address, an operation name and optionally attached native value. Only
    payTransaction and refundTransaction accept value; unknown operations
    and bare value transfers are rejected.

    Example:
        >>> gateway = await PaymentGateway.from_config(Config.from_env())
        >>> tx_id = await gateway.call(
        ...     shop, "createTransaction", "coreTestnet", 1_000_000, shop, NATIVE_TOKEN
        ... )
        >>> await gateway.call(payer, "payTransaction", tx_id, value=1_000_000)
    """

    PAYABLE = frozenset({"payTransaction", "refundTransaction"})

    def __init__(self, ledger: Ledger, config: Config | None = None) -> None:
        self._ledger = ledger
        self._config = config
        self._logger = get_logger("gateway")
        self._operations: dict[str, Handler] = {
            "createTransaction": self._create_transaction,
            "payTransaction": self._pay_transaction,
            "payTransactionWithToken": self._pay_transaction_with_token,
            "refundTransaction": self._refund_transaction,
            "addAllowedToken": self._add_allowed_token,
            "removeAllowedToken": self._remove_allowed_token,
            "updateTaxAddress": self._update_tax_address,
            "transferOwnership": self._transfer_ownership,
            "emergencyWithdraw": self._emergency_withdraw,
            "getTransaction": self._get_transaction,
            "getPayerTransactions": self._get_payer_transactions,
            "getShopOwnerTransactions": self._get_shop_owner_transactions,
            "getTransactionCounter": self._get_transaction_counter,
            "isTokenAllowed": self._is_token_allowed,
            "calculateTax": self._calculate_tax,
            "calculateShopOwnerAmount": self._calculate_shop_owner_amount,
            "taxAddress": self._tax_address,
            "owner": self._owner,
        }

    @classmethod
    async def from_config(
        cls,
        config: Config | None = None,
        assets: AssetTransfer | None = None,
        storage: StorageBackend | None = None,
        clock: Callable[[], int] | None = None,
    ) -> PaymentGateway:
        """
        Build storage and ledger from configuration and deploy if needed.

        Args:
            config: Configuration (defaults to Config.from_env())
            assets: Transfer collaborator (defaults to a fresh InMemoryAssetBook)
            storage: Storage backend (defaults to the configured backend)
            clock: Block time source
        """
        config = config or Config.from_env()
        configure_logging(level=config.log_level)

        if storage is None:
            kwargs = {"redis_url": config.redis_url} if config.storage_backend == "redis" else {}
            storage = get_storage(config.storage_backend, **kwargs)

        ledger = await Ledger.deploy(
            storage,
            assets or InMemoryAssetBook(),
            config.ledger_address,
            owner=config.owner,
            tax_address=config.tax_address,
            allowed_tokens=config.allowed_tokens,
            lock_ttl=config.lock_ttl,
            clock=clock,
        )
        get_logger("gateway").info(f"Payment gateway ready ({config.env}, storage: {config.storage_backend})")
        return cls(ledger, config)

    @property
    def ledger(self) -> Ledger:
        return self._ledger

    @property
    def events(self) -> EventLog:
        return self._ledger.events

    @property
    def config(self) -> Config | None:
        return self._config

    def supported_operations(self) -> list[str]:
        return sorted(self._operations)

    async def call(self, sender: str, operation: str | None = None, *args: Any, value: int = 0) -> Any:
        """
        Execute a named operation as ``sender``.

        Args:
            sender: Calling address
            operation: Operation name, or None for a bare value transfer
            *args: Positional operation arguments, in interface order
            value: Native amount attached to the call

        Raises:
            UnsupportedCallError: Unknown operation or bare transfer
            ValidationError: Value attached to a non-payable operation
        """
        if operation is None:
            if value:
                return await self._ledger.receive(sender, value)
            raise UnsupportedCallError("Call carries no operation", details={"sender": sender})

        handler = self._operations.get(operation)
        if handler is None:
            self._logger.warning(f"Rejected unknown operation {operation!r} from {sender}")
            raise UnsupportedCallError(f"Unknown operation: {operation}", operation=operation)

        if value and operation not in self.PAYABLE:
            raise ValidationError(
                f"{operation} does not accept native value", details={"value": value}
            )

        try:
            inspect.signature(handler).bind(sender, value, *args)
        except TypeError:
            raise ValidationError(
                f"Wrong arguments for {operation}", details={"args": list(args)}
            ) from None

        return await handler(sender, value, *args)

    async def receive(self, sender: str, value: int) -> None:
        """Bare native transfer to the gateway; always rejected."""
        await self.call(sender, None, value=value)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _create_transaction(
        self, sender: str, value: int, origin_chain: str, total_payment: int, shop_owner: str, payment_token: str
    ) -> int:
        return await self._ledger.create_transaction(
            origin_chain, total_payment, shop_owner, payment_token, caller=sender
        )

    async def _pay_transaction(self, sender: str, value: int, transaction_id: int) -> None:
        await self._ledger.pay_transaction(transaction_id, caller=sender, value=value)

    async def _pay_transaction_with_token(self, sender: str, value: int, transaction_id: int) -> bool:
        return await self._ledger.pay_transaction_with_token(transaction_id, caller=sender)

    async def _refund_transaction(self, sender: str, value: int, transaction_id: int) -> None:
        await self._ledger.refund_transaction(transaction_id, caller=sender, value=value)

    async def _add_allowed_token(self, sender: str, value: int, token: str) -> None:
        await self._ledger.add_allowed_asset(token, caller=sender)

    async def _remove_allowed_token(self, sender: str, value: int, token: str) -> None:
        await self._ledger.remove_allowed_asset(token, caller=sender)

    async def _update_tax_address(self, sender: str, value: int, new_address: str) -> None:
        await self._ledger.update_tax_address(new_address, caller=sender)

    async def _transfer_ownership(self, sender: str, value: int, new_owner: str) -> None:
        await self._ledger.transfer_ownership(new_owner, caller=sender)

    async def _emergency_withdraw(self, sender: str, value: int) -> int:
        return await self._ledger.emergency_withdraw(caller=sender)

    async def _get_transaction(self, sender: str, value: int, transaction_id: int) -> Transaction:
        return await self._ledger.get_transaction(transaction_id)

    async def _get_payer_transactions(self, sender: str, value: int, payer: str) -> list[int]:
        return await self._ledger.get_payer_transactions(payer)

    async def _get_shop_owner_transactions(self, sender: str, value: int, shop_owner: str) -> list[int]:
        return await self._ledger.get_shop_owner_transactions(shop_owner)

    async def _get_transaction_counter(self, sender: str, value: int) -> int:
        return await self._ledger.get_transaction_counter()

    async def _is_token_allowed(self, sender: str, value: int, token: str) -> bool:
        return await self._ledger.is_asset_allowed(token)

    async def _calculate_tax(self, sender: str, value: int, amount: int) -> int:
        return self._ledger.calculate_tax(amount)

    async def _calculate_shop_owner_amount(self, sender: str, value: int, amount: int) -> int:
        return self._ledger.calculate_shop_owner_amount(amount)

    async def _tax_address(self, sender: str, value: int) -> str:
        return await self._ledger.get_tax_address()

    async def _owner(self, sender: str, value: int) -> str:
        return await self._ledger.get_owner()
