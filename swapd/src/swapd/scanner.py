"""
Lazy discovery of confirmed outputs paying a swap address.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

from loguru import logger
from pydantic import ValidationError
from swapcore.errors import ChainQueryError
from swapcore.index import SwapIndex
from swapcore.models import Utxo
from swapwallet.backends.base import BlockchainBackend


class UtxoScanner:
    """
    Stateless view over the chain backend.

    Every scan queries the backend afresh, so a scan can be abandoned or
    restarted at any point.
    """

    def __init__(self, backend: BlockchainBackend, index: SwapIndex):
        self.backend = backend
        self.index = index

    async def scan(self, address: str, from_height: int = 0) -> AsyncIterator[Utxo]:
        """
        Yield confirmed unspent outputs paying address, oldest first.

        Outputs are ordered by (height, txid, vout). Unconfirmed outputs and
        outputs confirmed below from_height are skipped.

        Raises:
            ChainQueryError: If the backend cannot be queried
        """
        backend_utxos = await self.backend.get_utxos([address])

        found: list[Utxo] = []
        for utxo in backend_utxos:
            if utxo.address != address:
                continue
            if not utxo.height or utxo.confirmations <= 0:
                logger.debug(f"Skipping unconfirmed output {utxo.txid}:{utxo.vout}")
                continue
            if utxo.height < from_height:
                continue
            try:
                found.append(
                    Utxo(txid=utxo.txid, vout=utxo.vout, value=utxo.value, height=utxo.height)
                )
            except ValidationError as e:
                raise ChainQueryError(f"Backend returned a malformed output: {e}") from e

        found.sort(key=lambda u: (u.height, u.txid, u.vout))
        for utxo in found:
            yield utxo

    async def collect(self, address: str, from_height: int = 0) -> list[Utxo]:
        utxos = [utxo async for utxo in self.scan(address, from_height)]
        logger.debug(
            f"Found {len(utxos)} confirmed output(s) at {address} "
            f"totalling {sum(u.value for u in utxos)} sats"
        )
        return utxos

    def creation_height(self, address: str) -> tuple[int, int]:
        """(creation_height, lock_height) of the swap at address."""
        return self.index.creation_height(address)
