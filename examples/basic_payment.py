"""
Example: Create, pay and refund transactions

Walks through a native and a token payment against an in-memory asset book,
then reads the resulting events back from the event log.

Reads PAYGATE_* settings from the environment or a .env file; falls back to
demo addresses when they are not set.
"""

import asyncio
import os

from dotenv import load_dotenv

load_dotenv()

from paygate import NATIVE_TOKEN, Config, InMemoryAssetBook, PaymentGateway  # noqa: E402

OWNER = "0x1111111111111111111111111111111111111111"
TAX_COLLECTOR = "0xB3bC5e0c37f99436b1BAC787faE96a8D0609A170"
LEDGER = "0xE49c73e0E3BA8E504572782510850400b57Ae250"
MOCK_USDC = "0xF1FCFF97118ea87Ba99CB5A590d0823651FFFDF1"
SHOP = "0x2222222222222222222222222222222222222222"
PAYER = "0x3333333333333333333333333333333333333333"


async def main():
    print("=== paygate Payment Example ===\n")

    os.environ.setdefault("PAYGATE_OWNER", OWNER)
    os.environ.setdefault("PAYGATE_TAX_ADDRESS", TAX_COLLECTOR)
    os.environ.setdefault("PAYGATE_LEDGER_ADDRESS", LEDGER)
    os.environ.setdefault("PAYGATE_ALLOWED_TOKENS", MOCK_USDC)

    book = InMemoryAssetBook()
    await book.mint(NATIVE_TOKEN, PAYER, 10**18)
    await book.mint(MOCK_USDC, PAYER, 100 * 10**6)

    gateway = await PaymentGateway.from_config(Config.from_env(), assets=book)
    ledger = gateway.ledger

    # ========================================
    # Token payment: 1 USDC (6 decimals)
    # ========================================
    print("--- Token Payment ---")
    usdc_amount = 1 * 10**6
    usdc_tx = await ledger.create_transaction("coreTestnet", usdc_amount, SHOP, MOCK_USDC, caller=PAYER)
    await book.approve(MOCK_USDC, PAYER, ledger.address, usdc_amount)
    await ledger.pay_transaction_with_token(usdc_tx, caller=PAYER)
    print(f"  Paid transaction {usdc_tx}")
    print(f"  Shop owner USDC: {await book.balance_of(MOCK_USDC, SHOP)}")
    print(f"  Tax collector USDC: {await book.balance_of(MOCK_USDC, TAX_COLLECTOR)}")

    # ========================================
    # Native payment: 0.001 (18 decimals), then refund
    # ========================================
    print("\n--- Native Payment ---")
    native_amount = 10**15
    native_tx = await ledger.create_transaction("coreTestnet", native_amount, SHOP, NATIVE_TOKEN, caller=PAYER)
    await ledger.pay_transaction(native_tx, caller=PAYER, value=native_amount)
    transaction = await ledger.get_transaction(native_tx)
    print(f"  Paid transaction {native_tx}: tax {transaction.tax_amount}, shop {transaction.shop_owner_amount}")

    print("\n--- Refund ---")
    await ledger.refund_transaction(native_tx, caller=SHOP, value=transaction.shop_owner_amount)
    print(f"  Refunded {transaction.shop_owner_amount} to {transaction.payer}")

    # ========================================
    # Audit trail
    # ========================================
    print("\n--- Events ---")
    for event in await gateway.events.query():
        print(f"  {event.name}: {event.topics}")

    print(f"\n  Payer transactions: {await ledger.get_payer_transactions(PAYER)}")
    print(f"  Shop transactions: {await ledger.get_shop_owner_transactions(SHOP)}")

    print("\n=== Example Complete ===")


if __name__ == "__main__":
    asyncio.run(main())
