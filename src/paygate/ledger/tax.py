"""Tax split arithmetic. All amounts are integers in the asset's smallest unit."""

from __future__ import annotations

TAX_RATE_BPS = 50
BPS_DENOMINATOR = 10_000


def calculate_tax(amount: int) -> int:
    """Tax share of ``amount``, rounded down."""
    return amount * TAX_RATE_BPS // BPS_DENOMINATOR


def calculate_shop_owner_amount(amount: int) -> int:
    """What the shop owner keeps; always ``amount - calculate_tax(amount)``."""
    return amount - calculate_tax(amount)


def split_payment(amount: int) -> tuple[int, int]:
    """Return ``(tax_amount, shop_owner_amount)`` for a gross amount."""
    tax = calculate_tax(amount)
    return tax, amount - tax
