"""
Blockchain backend implementations.

Available backends:
- BitcoinCoreBackend: Full node via Bitcoin Core RPC (no wallet, uses scantxoutset)
"""

from swapwallet.backends.base import UTXO, BlockchainBackend
from swapwallet.backends.bitcoin_core import BitcoinCoreBackend

__all__ = [
    "BlockchainBackend",
    "BitcoinCoreBackend",
    "UTXO",
]
