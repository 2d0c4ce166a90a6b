"""
Unit tests for the Ledger transaction lifecycle.

Covers creation, native and token settlement, refunds and the read accessors.
"""

import pytest
from constants import (
    BLOCK_TIME,
    CORE_BTC,
    LEDGER_ADDRESS,
    OTHER_PAYER,
    OWNER,
    PAYER,
    SHOP,
    STARTING_BALANCE,
    STRANGER,
    TAX_COLLECTOR,
    USDC,
)

from paygate.core.events import TransactionCreated, TransactionPaid, TransactionRefunded
from paygate.core.exceptions import (
    AuthorizationError,
    InsufficientFundsOrAllowanceError,
    StateConflictError,
    ValidationError,
)
from paygate.core.types import NATIVE_TOKEN, ZERO_ADDRESS
from paygate.ledger import Ledger


class TestCreateTransaction:
    """Tests for create_transaction."""

    @pytest.mark.asyncio
    async def test_first_id_is_one(self, ledger):
        tx_id = await ledger.create_transaction("test", 1_000_000, SHOP, NATIVE_TOKEN, caller=PAYER)

        assert tx_id == 1
        assert await ledger.get_transaction_counter() == 1

    @pytest.mark.asyncio
    async def test_stores_split_and_metadata(self, ledger):
        tx_id = await ledger.create_transaction("test", 1_000_000, SHOP, NATIVE_TOKEN, caller=PAYER)
        tx = await ledger.get_transaction(tx_id)

        assert tx.payer == PAYER
        assert tx.shop_owner == SHOP
        assert tx.origin_chain == "test"
        assert tx.total_payment == 1_000_000
        assert tx.tax_amount == 5_000
        assert tx.shop_owner_amount == 995_000
        assert tx.payment_token == NATIVE_TOKEN
        assert tx.created_at == BLOCK_TIME
        assert tx.is_paid is False
        assert tx.is_refunded is False

    @pytest.mark.asyncio
    async def test_ids_strictly_increase(self, ledger):
        ids = [
            await ledger.create_transaction("test", 100 + i, SHOP, NATIVE_TOKEN, caller=PAYER)
            for i in range(5)
        ]
        assert ids == [1, 2, 3, 4, 5]

    @pytest.mark.asyncio
    async def test_indexes_shop_owner_and_creator(self, ledger):
        first = await ledger.create_transaction("test", 1_000, SHOP, NATIVE_TOKEN, caller=PAYER)
        second = await ledger.create_transaction("test", 2_000, SHOP, USDC, caller=OTHER_PAYER)

        assert await ledger.get_shop_owner_transactions(SHOP) == [first, second]
        assert await ledger.get_payer_transactions(PAYER) == [first]
        assert await ledger.get_payer_transactions(OTHER_PAYER) == [second]

    @pytest.mark.asyncio
    async def test_addresses_are_case_insensitive(self, ledger):
        tx_id = await ledger.create_transaction("test", 1_000, SHOP.upper().replace("0X", "0x"), NATIVE_TOKEN, caller=PAYER)

        assert await ledger.get_shop_owner_transactions(SHOP) == [tx_id]

    @pytest.mark.asyncio
    async def test_allowed_token(self, ledger):
        tx_id = await ledger.create_transaction("test", 1_000, SHOP, USDC, caller=PAYER)
        tx = await ledger.get_transaction(tx_id)
        assert tx.payment_token == USDC
        assert not tx.is_native

    @pytest.mark.asyncio
    async def test_emits_created_event(self, ledger):
        tx_id = await ledger.create_transaction("coreTestnet", 1_000, SHOP, USDC, caller=PAYER)

        events = await ledger.events.query(TransactionCreated.name)
        assert events == [
            TransactionCreated(
                transaction_id=tx_id,
                shop_owner=SHOP,
                total_payment=1_000,
                origin_chain="coreTestnet",
                payment_token=USDC,
            )
        ]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "kwargs,match",
        [
            ({"total_payment": 0}, "total payment"),
            ({"total_payment": -5}, "total payment"),
            ({"total_payment": True}, "total payment"),
            ({"total_payment": 1.5}, "total payment"),
            ({"shop_owner": ZERO_ADDRESS}, "shop owner"),
            ({"origin_chain": ""}, "origin chain"),
            ({"caller": ZERO_ADDRESS}, "payer"),
        ],
    )
    async def test_invalid_input_rejected_without_consuming_id(self, ledger, kwargs, match):
        call = {
            "origin_chain": "test",
            "total_payment": 1_000,
            "shop_owner": SHOP,
            "payment_token": NATIVE_TOKEN,
            "caller": PAYER,
        }
        call.update(kwargs)

        with pytest.raises(ValidationError, match=match):
            await ledger.create_transaction(**call)

        assert await ledger.get_transaction_counter() == 0
        assert await ledger.get_shop_owner_transactions(SHOP) == []
        assert await ledger.events.query(TransactionCreated.name) == []

    @pytest.mark.asyncio
    async def test_unlisted_token_rejected(self, ledger):
        with pytest.raises(StateConflictError, match="Token not allowed"):
            await ledger.create_transaction("test", 1_000, SHOP, CORE_BTC, caller=PAYER)

        assert await ledger.get_transaction_counter() == 0

    @pytest.mark.asyncio
    async def test_counter_unchanged_after_failure_then_next_id_is_one(self, ledger):
        with pytest.raises(ValidationError):
            await ledger.create_transaction("test", 0, SHOP, NATIVE_TOKEN, caller=PAYER)

        tx_id = await ledger.create_transaction("test", 1, SHOP, NATIVE_TOKEN, caller=PAYER)
        assert tx_id == 1


class TestCreateTransactionFor:
    """Tests for the owner-only create_transaction_for."""

    @pytest.mark.asyncio
    async def test_designated_payer_is_indexed(self, ledger):
        tx_id = await ledger.create_transaction_for("test", 1_000, SHOP, USDC, PAYER, caller=OWNER)

        tx = await ledger.get_transaction(tx_id)
        assert tx.payer == PAYER
        assert await ledger.get_payer_transactions(PAYER) == [tx_id]
        assert await ledger.get_payer_transactions(OWNER) == []

    @pytest.mark.asyncio
    async def test_skips_allow_list(self, ledger):
        tx_id = await ledger.create_transaction_for("test", 1_000, SHOP, CORE_BTC, PAYER, caller=OWNER)
        assert (await ledger.get_transaction(tx_id)).payment_token == CORE_BTC

    @pytest.mark.asyncio
    async def test_unlisted_token_cannot_settle_until_allowed(self, ledger, book):
        await book.mint(CORE_BTC, PAYER, 10_000)
        tx_id = await ledger.create_transaction_for("test", 10_000, SHOP, CORE_BTC, PAYER, caller=OWNER)
        await book.approve(CORE_BTC, PAYER, LEDGER_ADDRESS, 10_000)

        with pytest.raises(StateConflictError, match="Token not allowed"):
            await ledger.pay_transaction_with_token(tx_id, caller=PAYER)

        await ledger.add_allowed_asset(CORE_BTC, caller=OWNER)
        assert await ledger.pay_transaction_with_token(tx_id, caller=PAYER) is True

    @pytest.mark.asyncio
    async def test_requires_owner(self, ledger):
        with pytest.raises(AuthorizationError):
            await ledger.create_transaction_for("test", 1_000, SHOP, USDC, PAYER, caller=STRANGER)

        assert await ledger.get_transaction_counter() == 0

    @pytest.mark.asyncio
    async def test_designated_payer_must_be_non_zero(self, ledger):
        with pytest.raises(ValidationError):
            await ledger.create_transaction_for("test", 1_000, SHOP, USDC, ZERO_ADDRESS, caller=OWNER)


class TestPayTransaction:
    """Tests for native settlement."""

    @pytest.mark.asyncio
    async def test_reference_scenario(self, ledger, book):
        tx_id = await ledger.create_transaction("test", 1_000_000, SHOP, NATIVE_TOKEN, caller=PAYER)

        await ledger.pay_transaction(tx_id, caller=PAYER, value=1_000_000)

        tx = await ledger.get_transaction(tx_id)
        assert tx.is_paid is True
        assert await ledger.get_shop_owner_transactions(SHOP) == [1]
        assert await ledger.get_payer_transactions(PAYER) == [1]
        assert await book.balance_of(NATIVE_TOKEN, TAX_COLLECTOR) == 5_000
        assert await book.balance_of(NATIVE_TOKEN, SHOP) == 995_000
        assert await book.balance_of(NATIVE_TOKEN, PAYER) == STARTING_BALANCE - 1_000_000
        assert await ledger.native_balance() == 0

    @pytest.mark.asyncio
    async def test_emits_paid_event(self, ledger):
        tx_id = await ledger.create_transaction("test", 1_000_000, SHOP, NATIVE_TOKEN, caller=PAYER)
        await ledger.pay_transaction(tx_id, caller=PAYER, value=1_000_000)

        events = await ledger.events.query(TransactionPaid.name)
        assert events == [
            TransactionPaid(
                transaction_id=tx_id,
                payer=PAYER,
                shop_owner=SHOP,
                payment_token=NATIVE_TOKEN,
                payment_amount=995_000,
                tax_amount=5_000,
            )
        ]

    @pytest.mark.asyncio
    async def test_settling_payer_becomes_payer_of_record(self, ledger):
        tx_id = await ledger.create_transaction("test", 1_000, SHOP, NATIVE_TOKEN, caller=PAYER)

        await ledger.pay_transaction(tx_id, caller=OTHER_PAYER, value=1_000)

        tx = await ledger.get_transaction(tx_id)
        assert tx.payer == OTHER_PAYER
        assert await ledger.get_payer_transactions(OTHER_PAYER) == [tx_id]
        # The creator keeps its original entry
        assert await ledger.get_payer_transactions(PAYER) == [tx_id]

    @pytest.mark.asyncio
    async def test_same_payer_not_indexed_twice(self, ledger):
        tx_id = await ledger.create_transaction("test", 1_000, SHOP, NATIVE_TOKEN, caller=PAYER)
        await ledger.pay_transaction(tx_id, caller=PAYER, value=1_000)

        assert await ledger.get_payer_transactions(PAYER) == [tx_id]

    @pytest.mark.asyncio
    async def test_double_payment_rejected(self, ledger, book):
        tx_id = await ledger.create_transaction("test", 1_000, SHOP, NATIVE_TOKEN, caller=PAYER)
        await ledger.pay_transaction(tx_id, caller=PAYER, value=1_000)

        with pytest.raises(StateConflictError, match="already paid"):
            await ledger.pay_transaction(tx_id, caller=OTHER_PAYER, value=1_000)

        assert await book.balance_of(NATIVE_TOKEN, OTHER_PAYER) == STARTING_BALANCE
        assert (await ledger.get_transaction(tx_id)).payer == PAYER

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value", [999, 1_001, 0, 1_000.0, "1000"])
    async def test_amount_must_match_exactly(self, ledger, book, value):
        tx_id = await ledger.create_transaction("test", 1_000, SHOP, NATIVE_TOKEN, caller=PAYER)

        with pytest.raises(ValidationError, match="Incorrect payment amount"):
            await ledger.pay_transaction(tx_id, caller=PAYER, value=value)

        assert (await ledger.get_transaction(tx_id)).is_paid is False
        assert await book.balance_of(NATIVE_TOKEN, PAYER) == STARTING_BALANCE

    @pytest.mark.asyncio
    async def test_token_transaction_rejected(self, ledger):
        tx_id = await ledger.create_transaction("test", 1_000, SHOP, USDC, caller=PAYER)

        with pytest.raises(StateConflictError, match="paid with its token"):
            await ledger.pay_transaction(tx_id, caller=PAYER, value=1_000)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("tx_id", [0, 2, -1])
    async def test_unknown_id_rejected(self, ledger, tx_id):
        await ledger.create_transaction("test", 1_000, SHOP, NATIVE_TOKEN, caller=PAYER)

        with pytest.raises(ValidationError, match="Invalid transaction id"):
            await ledger.pay_transaction(tx_id, caller=PAYER, value=1_000)

    @pytest.mark.asyncio
    async def test_insufficient_native_balance(self, ledger, book):
        tx_id = await ledger.create_transaction("test", 1_000, SHOP, NATIVE_TOKEN, caller=STRANGER)

        with pytest.raises(InsufficientFundsOrAllowanceError):
            await ledger.pay_transaction(tx_id, caller=STRANGER, value=1_000)

        tx = await ledger.get_transaction(tx_id)
        assert tx.is_paid is False
        assert await ledger.events.query(TransactionPaid.name) == []


class TestPayTransactionWithToken:
    """Tests for token settlement."""

    @pytest.mark.asyncio
    async def test_pays_with_allowance(self, ledger, book):
        tx_id = await ledger.create_transaction("test", 1_000_000, SHOP, USDC, caller=PAYER)
        await book.approve(USDC, PAYER, LEDGER_ADDRESS, 1_000_000)

        assert await ledger.pay_transaction_with_token(tx_id, caller=PAYER) is True

        assert (await ledger.get_transaction(tx_id)).is_paid is True
        assert await book.balance_of(USDC, TAX_COLLECTOR) == 5_000
        assert await book.balance_of(USDC, SHOP) == 995_000
        assert await book.balance_of(USDC, PAYER) == STARTING_BALANCE - 1_000_000
        assert await book.balance_of(USDC, LEDGER_ADDRESS) == 0
        assert await book.allowance(USDC, PAYER, LEDGER_ADDRESS) == 0

    @pytest.mark.asyncio
    async def test_emits_paid_event_with_token(self, ledger, book):
        tx_id = await ledger.create_transaction("test", 1_000_000, SHOP, USDC, caller=PAYER)
        await book.approve(USDC, PAYER, LEDGER_ADDRESS, 1_000_000)
        await ledger.pay_transaction_with_token(tx_id, caller=PAYER)

        [event] = await ledger.events.query(TransactionPaid.name)
        assert event.payment_token == USDC
        assert event.payment_amount == 995_000
        assert event.tax_amount == 5_000

    @pytest.mark.asyncio
    async def test_insufficient_allowance_rolls_back(self, ledger, book):
        tx_id = await ledger.create_transaction("test", 1_000, SHOP, USDC, caller=PAYER)
        await book.approve(USDC, PAYER, LEDGER_ADDRESS, 999)

        with pytest.raises(InsufficientFundsOrAllowanceError):
            await ledger.pay_transaction_with_token(tx_id, caller=PAYER)

        assert (await ledger.get_transaction(tx_id)).is_paid is False
        assert await book.balance_of(USDC, PAYER) == STARTING_BALANCE
        assert await book.allowance(USDC, PAYER, LEDGER_ADDRESS) == 999

    @pytest.mark.asyncio
    async def test_different_payer_takes_over(self, ledger, book):
        tx_id = await ledger.create_transaction("test", 1_000, SHOP, USDC, caller=PAYER)
        await book.approve(USDC, OTHER_PAYER, LEDGER_ADDRESS, 1_000)

        await ledger.pay_transaction_with_token(tx_id, caller=OTHER_PAYER)

        assert (await ledger.get_transaction(tx_id)).payer == OTHER_PAYER
        assert await ledger.get_payer_transactions(OTHER_PAYER) == [tx_id]
        assert await ledger.get_payer_transactions(PAYER) == [tx_id]
        assert await book.balance_of(USDC, PAYER) == STARTING_BALANCE

    @pytest.mark.asyncio
    async def test_token_removed_after_creation(self, ledger, book):
        tx_id = await ledger.create_transaction("test", 1_000, SHOP, USDC, caller=PAYER)
        await book.approve(USDC, PAYER, LEDGER_ADDRESS, 1_000)
        await ledger.remove_allowed_asset(USDC, caller=OWNER)

        with pytest.raises(StateConflictError, match="Token not allowed"):
            await ledger.pay_transaction_with_token(tx_id, caller=PAYER)

        assert (await ledger.get_transaction(tx_id)).is_paid is False

    @pytest.mark.asyncio
    async def test_double_payment_rejected(self, ledger, book):
        tx_id = await ledger.create_transaction("test", 1_000, SHOP, USDC, caller=PAYER)
        await book.approve(USDC, PAYER, LEDGER_ADDRESS, 2_000)
        await ledger.pay_transaction_with_token(tx_id, caller=PAYER)

        with pytest.raises(StateConflictError, match="already paid"):
            await ledger.pay_transaction_with_token(tx_id, caller=PAYER)

        assert await book.balance_of(USDC, PAYER) == STARTING_BALANCE - 1_000

    @pytest.mark.asyncio
    async def test_native_transaction_rejected(self, ledger):
        tx_id = await ledger.create_transaction("test", 1_000, SHOP, NATIVE_TOKEN, caller=PAYER)

        with pytest.raises(StateConflictError, match="pay_transaction"):
            await ledger.pay_transaction_with_token(tx_id, caller=PAYER)


class TestRefundTransaction:
    """Tests for refunds."""

    @pytest.mark.asyncio
    async def test_native_refund_scenario(self, ledger, book):
        tx_id = await ledger.create_transaction("test", 1_000_000, SHOP, NATIVE_TOKEN, caller=PAYER)
        await ledger.pay_transaction(tx_id, caller=PAYER, value=1_000_000)

        await ledger.refund_transaction(tx_id, caller=SHOP, value=995_000)

        tx = await ledger.get_transaction(tx_id)
        assert tx.is_refunded is True
        assert tx.is_paid is True
        # Tax is kept by the collector
        assert await book.balance_of(NATIVE_TOKEN, PAYER) == STARTING_BALANCE - 5_000
        assert await book.balance_of(NATIVE_TOKEN, SHOP) == 0
        assert await book.balance_of(NATIVE_TOKEN, TAX_COLLECTOR) == 5_000
        assert await ledger.native_balance() == 0

        with pytest.raises(StateConflictError, match="already refunded"):
            await ledger.refund_transaction(tx_id, caller=SHOP, value=995_000)

    @pytest.mark.asyncio
    async def test_refund_goes_to_payer_of_record(self, ledger, book):
        tx_id = await ledger.create_transaction("test", 1_000_000, SHOP, NATIVE_TOKEN, caller=PAYER)
        await ledger.pay_transaction(tx_id, caller=OTHER_PAYER, value=1_000_000)

        await ledger.refund_transaction(tx_id, caller=SHOP, value=995_000)

        assert await book.balance_of(NATIVE_TOKEN, OTHER_PAYER) == STARTING_BALANCE - 5_000
        assert await book.balance_of(NATIVE_TOKEN, PAYER) == STARTING_BALANCE

    @pytest.mark.asyncio
    async def test_emits_refund_event(self, ledger):
        tx_id = await ledger.create_transaction("test", 1_000_000, SHOP, NATIVE_TOKEN, caller=PAYER)
        await ledger.pay_transaction(tx_id, caller=PAYER, value=1_000_000)
        await ledger.refund_transaction(tx_id, caller=SHOP, value=995_000)

        events = await ledger.events.query(TransactionRefunded.name)
        assert events == [TransactionRefunded(transaction_id=tx_id, payer=PAYER, refund_amount=995_000)]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value", [1_000_000, 994_999, 0, 995_000.0])
    async def test_native_refund_amount_must_match(self, ledger, value):
        tx_id = await ledger.create_transaction("test", 1_000_000, SHOP, NATIVE_TOKEN, caller=PAYER)
        await ledger.pay_transaction(tx_id, caller=PAYER, value=1_000_000)

        with pytest.raises(ValidationError, match="Incorrect refund amount"):
            await ledger.refund_transaction(tx_id, caller=SHOP, value=value)

        assert (await ledger.get_transaction(tx_id)).is_refunded is False

    @pytest.mark.asyncio
    async def test_only_shop_owner_can_refund(self, ledger):
        tx_id = await ledger.create_transaction("test", 1_000, SHOP, NATIVE_TOKEN, caller=PAYER)
        await ledger.pay_transaction(tx_id, caller=PAYER, value=1_000)

        for caller in (PAYER, OWNER, STRANGER):
            with pytest.raises(AuthorizationError):
                await ledger.refund_transaction(tx_id, caller=caller, value=995)

        assert (await ledger.get_transaction(tx_id)).is_refunded is False

    @pytest.mark.asyncio
    async def test_unpaid_cannot_be_refunded(self, ledger):
        tx_id = await ledger.create_transaction("test", 1_000, SHOP, NATIVE_TOKEN, caller=PAYER)

        with pytest.raises(StateConflictError, match="not paid"):
            await ledger.refund_transaction(tx_id, caller=SHOP, value=995)

    @pytest.mark.asyncio
    async def test_token_refund_uses_shop_owner_allowance(self, ledger, book):
        tx_id = await ledger.create_transaction("test", 1_000_000, SHOP, USDC, caller=PAYER)
        await book.approve(USDC, PAYER, LEDGER_ADDRESS, 1_000_000)
        await ledger.pay_transaction_with_token(tx_id, caller=PAYER)
        await book.approve(USDC, SHOP, LEDGER_ADDRESS, 995_000)

        await ledger.refund_transaction(tx_id, caller=SHOP)

        assert (await ledger.get_transaction(tx_id)).is_refunded is True
        assert await book.balance_of(USDC, SHOP) == 0
        assert await book.balance_of(USDC, PAYER) == STARTING_BALANCE - 5_000
        assert await book.balance_of(USDC, LEDGER_ADDRESS) == 0

    @pytest.mark.asyncio
    async def test_token_refund_without_allowance_rolls_back(self, ledger, book):
        tx_id = await ledger.create_transaction("test", 1_000, SHOP, USDC, caller=PAYER)
        await book.approve(USDC, PAYER, LEDGER_ADDRESS, 1_000)
        await ledger.pay_transaction_with_token(tx_id, caller=PAYER)

        with pytest.raises(InsufficientFundsOrAllowanceError):
            await ledger.refund_transaction(tx_id, caller=SHOP)

        assert (await ledger.get_transaction(tx_id)).is_refunded is False
        assert await book.balance_of(USDC, SHOP) == 995
        assert await ledger.events.query(TransactionRefunded.name) == []

    @pytest.mark.asyncio
    async def test_token_refund_rejects_native_value(self, ledger, book):
        tx_id = await ledger.create_transaction("test", 1_000, SHOP, USDC, caller=PAYER)
        await book.approve(USDC, PAYER, LEDGER_ADDRESS, 1_000)
        await ledger.pay_transaction_with_token(tx_id, caller=PAYER)
        await book.approve(USDC, SHOP, LEDGER_ADDRESS, 995)

        with pytest.raises(ValidationError, match="do not accept native value"):
            await ledger.refund_transaction(tx_id, caller=SHOP, value=995)
        with pytest.raises(ValidationError, match="do not accept native value"):
            await ledger.refund_transaction(tx_id, caller=SHOP, value=0.0)


class TestReads:
    """Tests for read accessors."""

    @pytest.mark.asyncio
    async def test_get_transaction_out_of_range(self, ledger):
        with pytest.raises(ValidationError):
            await ledger.get_transaction(0)
        with pytest.raises(ValidationError):
            await ledger.get_transaction(1)

    @pytest.mark.asyncio
    async def test_empty_indices(self, ledger):
        assert await ledger.get_payer_transactions(STRANGER) == []
        assert await ledger.get_shop_owner_transactions(STRANGER) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("address", [None, 123, b"0x2222"])
    async def test_non_string_addresses_rejected(self, ledger, address):
        with pytest.raises(ValidationError, match="must be an address"):
            await ledger.get_payer_transactions(address)
        with pytest.raises(ValidationError, match="must be an address"):
            await ledger.get_shop_owner_transactions(address)
        with pytest.raises(ValidationError, match="must be an address"):
            await ledger.is_asset_allowed(address)

    @pytest.mark.asyncio
    async def test_index_reads_are_copies(self, ledger):
        await ledger.create_transaction("test", 1_000, SHOP, NATIVE_TOKEN, caller=PAYER)

        ids = await ledger.get_shop_owner_transactions(SHOP)
        ids.append(99)

        assert await ledger.get_shop_owner_transactions(SHOP) == [1]

    @pytest.mark.asyncio
    async def test_native_is_always_allowed(self, ledger):
        assert await ledger.is_asset_allowed(NATIVE_TOKEN) is True
        assert await ledger.is_asset_allowed(USDC) is True
        assert await ledger.is_asset_allowed(CORE_BTC) is False

    @pytest.mark.asyncio
    async def test_settings(self, ledger):
        assert await ledger.get_owner() == OWNER
        assert await ledger.get_tax_address() == TAX_COLLECTOR
        assert ledger.address == LEDGER_ADDRESS
        assert ledger.is_locked is False


class TestDeploy:
    """Tests for Ledger.deploy."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "kwargs",
        [
            {"owner": ZERO_ADDRESS},
            {"tax_address": ZERO_ADDRESS},
            {"allowed_tokens": [USDC, ZERO_ADDRESS]},
        ],
    )
    async def test_rejects_zero_addresses(self, storage, book, kwargs):
        params = {"owner": OWNER, "tax_address": TAX_COLLECTOR, "allowed_tokens": [USDC]}
        params.update(kwargs)

        with pytest.raises(ValidationError):
            await Ledger.deploy(storage, book, LEDGER_ADDRESS, **params)

    @pytest.mark.asyncio
    async def test_rejects_zero_ledger_address(self, storage, book):
        with pytest.raises(ValidationError):
            await Ledger.deploy(storage, book, ZERO_ADDRESS, owner=OWNER, tax_address=TAX_COLLECTOR)

    @pytest.mark.asyncio
    async def test_redeploy_reuses_existing_state(self, ledger, storage, book):
        tx_id = await ledger.create_transaction("test", 1_000, SHOP, NATIVE_TOKEN, caller=PAYER)

        again = await Ledger.deploy(storage, book, LEDGER_ADDRESS, owner=STRANGER, tax_address=STRANGER)

        assert await again.get_transaction_counter() == tx_id
        assert await again.get_owner() == OWNER
        assert await again.get_tax_address() == TAX_COLLECTOR

    @pytest.mark.asyncio
    async def test_reads_before_deploy(self, storage, book):
        ledger = Ledger(storage, book, LEDGER_ADDRESS)

        assert await ledger.get_transaction_counter() == 0
        with pytest.raises(StateConflictError, match="not been deployed"):
            await ledger.get_owner()
