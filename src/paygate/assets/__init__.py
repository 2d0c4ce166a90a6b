"""
Asset transfer collaborators.

The ledger depends only on AssetTransfer; InMemoryAssetBook is the bundled
implementation used for simulation and tests.
"""

from paygate.assets.base import AssetTransfer, Transfer
from paygate.assets.memory import InMemoryAssetBook, TransferHook

__all__ = [
    "AssetTransfer",
    "InMemoryAssetBook",
    "Transfer",
    "TransferHook",
]
