import pytest
import pytest_asyncio
from constants import (
    BLOCK_TIME,
    LEDGER_ADDRESS,
    OTHER_PAYER,
    OWNER,
    PAYER,
    STARTING_BALANCE,
    TAX_COLLECTOR,
    USDC,
)

from paygate.assets import InMemoryAssetBook
from paygate.core.types import NATIVE_TOKEN
from paygate.ledger import Ledger
from paygate.storage.memory import InMemoryStorage


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def book() -> InMemoryAssetBook:
    return InMemoryAssetBook()


@pytest_asyncio.fixture
async def ledger(storage, book) -> Ledger:
    """Deployed ledger with USDC allowed and funded payers."""
    for payer in (PAYER, OTHER_PAYER):
        await book.mint(NATIVE_TOKEN, payer, STARTING_BALANCE)
        await book.mint(USDC, payer, STARTING_BALANCE)

    return await Ledger.deploy(
        storage,
        book,
        LEDGER_ADDRESS,
        owner=OWNER,
        tax_address=TAX_COLLECTOR,
        allowed_tokens=[USDC],
        clock=lambda: BLOCK_TIME,
    )
