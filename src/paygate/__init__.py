"""
paygate - custodial payment ledger with automatic tax splitting.

Every payment is split between the shop owner and a tax collector at a fixed
0.5% rate, in the native asset or an allowed token.

Usage:
    >>> from paygate import Config, PaymentGateway, NATIVE_TOKEN
    >>>
    >>> gateway = await PaymentGateway.from_config(Config.from_env())
    >>> tx_id = await gateway.ledger.create_transaction(
    ...     "coreTestnet", 1_000_000, shop_owner, NATIVE_TOKEN, caller=payer
    ... )
    >>> await gateway.ledger.pay_transaction(tx_id, caller=payer, value=1_000_000)
"""

from paygate.assets import AssetTransfer, InMemoryAssetBook, Transfer
from paygate.client import PaymentGateway
from paygate.core.config import Config
from paygate.core.events import (
    EventLog,
    LedgerEvent,
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
    ConfigurationError,
    InsufficientFundsOrAllowanceError,
    PayGateError,
    ReentrancyError,
    StateConflictError,
    TransferError,
    UnsupportedCallError,
    ValidationError,
)
from paygate.core.logging import configure_logging, get_logger
from paygate.core.types import NATIVE_TOKEN, ZERO_ADDRESS, AssetKind, Transaction
from paygate.ledger import Ledger, calculate_shop_owner_amount, calculate_tax

__version__ = "0.1.0"
__all__ = [
    # Entry points
    "PaymentGateway",
    "Ledger",
    "Config",
    # Types
    "Transaction",
    "AssetKind",
    "NATIVE_TOKEN",
    "ZERO_ADDRESS",
    "calculate_tax",
    "calculate_shop_owner_amount",
    # Assets
    "AssetTransfer",
    "InMemoryAssetBook",
    "Transfer",
    # Events
    "EventLog",
    "LedgerEvent",
    "TransactionCreated",
    "TransactionPaid",
    "TransactionRefunded",
    "TaxAddressUpdated",
    "TokenAllowed",
    "TokenRemoved",
    "OwnershipTransferred",
    # Exceptions
    "PayGateError",
    "ConfigurationError",
    "ValidationError",
    "StateConflictError",
    "ReentrancyError",
    "AuthorizationError",
    "TransferError",
    "InsufficientFundsOrAllowanceError",
    "UnsupportedCallError",
    # Logging
    "configure_logging",
    "get_logger",
]
