"""
Interface every chain backend implements.

Swap addresses are never imported into a node wallet, so backends look
outputs up by address (a UTXO set scan or an address index).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class UTXO:
    txid: str
    vout: int
    value: int  # satoshis
    address: str
    confirmations: int  # 0 while in the mempool
    scriptpubkey: str
    height: int | None = None


class BlockchainBackend(ABC):
    """
    Read-only chain index access plus transaction broadcast.

    Implementations raise swapcore.errors.ChainQueryError when the chain cannot
    be queried, and FeeEstimationUnavailableError when no fee estimate exists.
    """

    @abstractmethod
    async def get_utxos(self, addresses: list[str]) -> list[UTXO]:
        """Unspent outputs paying any of the addresses, mempool included."""

    @abstractmethod
    async def get_block_height(self) -> int:
        """Height of the current chain tip."""

    @abstractmethod
    async def estimate_fee_per_kw(self, target_blocks: int) -> int:
        """Fee rate in sat per 1000 weight units to confirm within target_blocks."""

    @abstractmethod
    async def broadcast_transaction(self, tx_hex: str) -> str:
        """Submit a signed transaction and return its txid."""

    async def close(self) -> None:
        return None
