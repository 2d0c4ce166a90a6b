"""
Type definitions for paygate.

Addresses are opaque strings compared case-insensitively; the zero address
doubles as the native asset sentinel in ``payment_token``.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Native asset sentinel for Transaction.payment_token
NATIVE_TOKEN = ZERO_ADDRESS


class AssetKind(str, Enum):
    """Settlement path of a transaction."""

    NATIVE = "native"
    TOKEN = "token"

    @classmethod
    def of(cls, payment_token: str) -> AssetKind:
        if normalize_address(payment_token) == NATIVE_TOKEN:
            return cls.NATIVE
        return cls.TOKEN


def normalize_address(address: str) -> str:
    """
    Normalize an address for storage and comparison.

    Args:
        address: Address string in any case

    Returns:
        Lower-cased, stripped address

    Raises:
        TypeError: If address is not a string
    """
    if not isinstance(address, str):
        raise TypeError(f"address must be a string, got {type(address).__name__}")
    return address.strip().lower()


def is_zero_address(address: str | None) -> bool:
    """True for None, empty strings and the zero address."""
    if not address:
        return True
    return normalize_address(address) in ("", ZERO_ADDRESS)


@dataclass
class Transaction:
    """
    A single payer-to-shop-owner payment with a fixed tax split.

    Attributes:
        id: Sequential id, starting at 1
        payer: Payer of record (creator until someone else settles)
        origin_chain: Free-form tag of where the payment originated
        total_payment: Gross amount in the asset's smallest unit
        shop_owner: Receiver of the post-tax amount
        payment_token: NATIVE_TOKEN or an allowed token address
        created_at: Block time at creation (unix seconds)
        is_paid: Settlement happened
        is_refunded: Shop owner refunded the post-tax amount
        tax_amount: Tax share, fixed at creation
        shop_owner_amount: total_payment - tax_amount
    """

    id: int
    payer: str
    origin_chain: str
    total_payment: int
    shop_owner: str
    payment_token: str
    created_at: int
    tax_amount: int
    shop_owner_amount: int
    is_paid: bool = False
    is_refunded: bool = False

    @property
    def asset_kind(self) -> AssetKind:
        return AssetKind.of(self.payment_token)

    @property
    def is_native(self) -> bool:
        return self.asset_kind is AssetKind.NATIVE

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for storage."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Transaction:
        """Create Transaction from a stored dictionary."""
        return cls(
            id=int(data["id"]),
            payer=data["payer"],
            origin_chain=data["origin_chain"],
            total_payment=int(data["total_payment"]),
            shop_owner=data["shop_owner"],
            payment_token=data["payment_token"],
            created_at=int(data["created_at"]),
            tax_amount=int(data["tax_amount"]),
            shop_owner_amount=int(data["shop_owner_amount"]),
            is_paid=bool(data.get("is_paid", False)),
            is_refunded=bool(data.get("is_refunded", False)),
        )
