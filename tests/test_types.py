"""Unit tests for core types."""

import pytest

from paygate.core.types import (
    NATIVE_TOKEN,
    ZERO_ADDRESS,
    AssetKind,
    Transaction,
    is_zero_address,
    normalize_address,
)


def _transaction(**overrides) -> Transaction:
    data = {
        "id": 1,
        "payer": "0xpayer",
        "origin_chain": "coreTestnet",
        "total_payment": 1_000_000,
        "shop_owner": "0xshop",
        "payment_token": NATIVE_TOKEN,
        "created_at": 1_700_000_000,
        "tax_amount": 5_000,
        "shop_owner_amount": 995_000,
    }
    data.update(overrides)
    return Transaction(**data)


class TestAddresses:
    def test_native_sentinel_is_zero_address(self):
        assert NATIVE_TOKEN == ZERO_ADDRESS

    def test_normalize_lowercases_and_strips(self):
        assert normalize_address("  0xABCdef  ") == "0xabcdef"

    def test_normalize_rejects_non_strings(self):
        with pytest.raises(TypeError):
            normalize_address(123)  # type: ignore[arg-type]

    @pytest.mark.parametrize("value", [None, "", "   ", ZERO_ADDRESS, ZERO_ADDRESS.upper().replace("0X", "0x")])
    def test_zero_identities(self, value):
        assert is_zero_address(value)

    def test_regular_address_is_not_zero(self):
        assert not is_zero_address("0x2222222222222222222222222222222222222222")


class TestAssetKind:
    def test_native(self):
        assert AssetKind.of(NATIVE_TOKEN) is AssetKind.NATIVE

    def test_token(self):
        assert AssetKind.of("0xf1fcff97118ea87ba99cb5a590d0823651fffdf1") is AssetKind.TOKEN


class TestTransaction:
    def test_defaults_unpaid_and_unrefunded(self):
        tx = _transaction()
        assert tx.is_paid is False
        assert tx.is_refunded is False
        assert tx.is_native
        assert tx.asset_kind is AssetKind.NATIVE

    def test_token_transaction(self):
        tx = _transaction(payment_token="0xf1fcff97118ea87ba99cb5a590d0823651fffdf1")
        assert not tx.is_native
        assert tx.asset_kind is AssetKind.TOKEN

    def test_to_dict_and_back(self):
        tx = _transaction(is_paid=True)
        data = tx.to_dict()

        assert data["total_payment"] == 1_000_000
        assert data["is_paid"] is True
        assert Transaction.from_dict(data) == tx
