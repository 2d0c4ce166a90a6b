"""
Ledger module - the payment transaction state machine.

Provides the Ledger itself, its global lock, the per-call rollback journal
and the tax split arithmetic.
"""

from paygate.ledger.journal import StateJournal
from paygate.ledger.ledger import Ledger
from paygate.ledger.lock import ReentrancyLock
from paygate.ledger.tax import (
    BPS_DENOMINATOR,
    TAX_RATE_BPS,
    calculate_shop_owner_amount,
    calculate_tax,
    split_payment,
)

__all__ = [
    "Ledger",
    "ReentrancyLock",
    "StateJournal",
    "TAX_RATE_BPS",
    "BPS_DENOMINATOR",
    "calculate_tax",
    "calculate_shop_owner_amount",
    "split_payment",
]
