"""
Chain backend talking JSON-RPC to a Bitcoin Core node.

Only node RPCs are used (scantxoutset, getblockchaininfo, estimatesmartfee,
sendrawtransaction); the node's own wallet is never loaded. Swap addresses
are not watched by the node, so every lookup is a UTXO set scan.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Sequence
from typing import Any

import httpx
from loguru import logger
from swapcore.errors import ChainQueryError, FeeEstimationUnavailableError

from swapwallet.backends.base import UTXO, BlockchainBackend

RPC_TIMEOUT = 30.0  # seconds

# A full UTXO set scan takes minutes on mainnet
SCAN_RPC_TIMEOUT = 300.0

# Core runs one scantxoutset at a time; wait this long for a foreign scan
SCAN_MAX_WAITS = 30
SCAN_STATUS_POLL_INTERVAL = 10.0

SATS_PER_BTC = 100_000_000

# Logs raw scan results (addresses and amounts) when set
SENSITIVE_LOGGING = os.environ.get("SENSITIVE_LOGGING", "").lower() in ("1", "true", "yes")


class RpcError(ValueError):
    """Error object returned by the node for a well-formed request."""

    def __init__(self, code: int | str, message: str):
        self.code = code
        super().__init__(f"RPC error {code}: {message}")


def btc_to_sats(amount: float) -> int:
    return round(amount * SATS_PER_BTC)


def _descriptor_address(desc: str) -> str:
    # "addr(ADDRESS)#checksum" -> ADDRESS
    body = desc.split("#", 1)[0]
    if body.startswith("addr(") and body.endswith(")"):
        return body[5:-1]
    if body:
        logger.warning(f"Unexpected descriptor in scan result: '{body}'")
    return ""


class BitcoinCoreBackend(BlockchainBackend):
    def __init__(
        self,
        rpc_url: str = "http://127.0.0.1:8332",
        rpc_user: str = "",
        rpc_password: str = "",
        scan_timeout: float = SCAN_RPC_TIMEOUT,
    ):
        self.rpc_url = rpc_url.rstrip("/")
        auth = (rpc_user, rpc_password)
        self.client = httpx.AsyncClient(timeout=RPC_TIMEOUT, auth=auth)
        # Scans hold the connection far longer than ordinary calls
        self._scan_client = httpx.AsyncClient(timeout=scan_timeout, auth=auth)
        self._next_id = 0

    async def _rpc_call(
        self,
        method: str,
        params: list | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> Any:
        """
        Send one JSON-RPC request and return its result.

        Raises:
            RpcError: The node answered with an error object
            httpx.HTTPError: Transport failure or non-2xx status
        """
        self._next_id += 1
        request = {"jsonrpc": "2.0", "id": self._next_id, "method": method, "params": params or []}

        try:
            response = await (client or self.client).post(self.rpc_url, json=request)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"{method} RPC failed: {e!r}")
            raise

        body = response.json()
        error = body.get("error")
        if error:
            raise RpcError(error.get("code", "unknown"), error.get("message", str(error)))
        return body.get("result")

    async def _wait_for_scan_slot(self) -> None:
        for attempt in range(1, SCAN_MAX_WAITS + 1):
            status = await self._rpc_call("scantxoutset", ["status"])
            if status is None:
                return
            logger.debug(
                f"Node busy with another scan ({status.get('progress', 0)}%), "
                f"waiting ({attempt}/{SCAN_MAX_WAITS})"
            )
            await asyncio.sleep(SCAN_STATUS_POLL_INTERVAL)
        raise ChainQueryError(f"No scan slot after {SCAN_MAX_WAITS} attempts")

    async def _scantxoutset(self, descriptors: Sequence[str]) -> dict[str, Any]:
        await self._wait_for_scan_slot()

        result = await self._rpc_call(
            "scantxoutset", ["start", list(descriptors)], client=self._scan_client
        )
        if not result or not result.get("success", True):
            raise ChainQueryError("scantxoutset did not complete")
        if SENSITIVE_LOGGING:
            logger.debug(f"scantxoutset {list(descriptors)}: {result}")
        return result

    async def get_utxos(self, addresses: list[str]) -> list[UTXO]:
        if not addresses:
            return []

        try:
            tip = await self.get_block_height()
            scan = await self._scantxoutset([f"addr({address})" for address in addresses])
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"UTXO scan of {len(addresses)} address(es) failed: {e}")
            raise ChainQueryError(f"UTXO scan failed: {e}") from e

        utxos = []
        for entry in scan.get("unspents", []):
            height = entry.get("height", 0)
            utxos.append(
                UTXO(
                    txid=entry["txid"],
                    vout=entry["vout"],
                    value=btc_to_sats(entry["amount"]),
                    address=_descriptor_address(entry.get("desc", "")),
                    confirmations=tip - height + 1 if height > 0 else 0,
                    scriptpubkey=entry.get("scriptPubKey", ""),
                    height=height or None,
                )
            )

        logger.debug(f"Scan found {len(utxos)} output(s) for {len(addresses)} address(es)")
        return utxos

    async def get_block_height(self) -> int:
        try:
            info = await self._rpc_call("getblockchaininfo", [])
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"getblockchaininfo failed: {e}")
            raise ChainQueryError(f"Failed to fetch block height: {e}") from e
        return info.get("blocks", 0)

    async def estimate_fee_per_kw(self, target_blocks: int) -> int:
        try:
            estimate = await self._rpc_call("estimatesmartfee", [target_blocks])
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"estimatesmartfee({target_blocks}) failed: {e}")
            raise FeeEstimationUnavailableError(f"Fee estimation failed: {e}") from e

        if not estimate or "feerate" not in estimate:
            reasons = (estimate or {}).get("errors", [])
            raise FeeEstimationUnavailableError(
                f"No fee estimate for {target_blocks} blocks: {reasons}"
            )

        # BTC per 1000 vbytes; one vbyte is four weight units
        sat_per_kw = btc_to_sats(estimate["feerate"]) // 4
        logger.debug(f"Node estimate for {target_blocks} blocks: {sat_per_kw} sat/kw")
        return sat_per_kw

    async def broadcast_transaction(self, tx_hex: str) -> str:
        try:
            txid = await self._rpc_call("sendrawtransaction", [tx_hex])
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Node rejected transaction: {e}")
            raise ChainQueryError(f"Broadcast failed: {e}") from e

        logger.info(f"Broadcast transaction {txid}")
        return txid

    async def close(self) -> None:
        await self.client.aclose()
        await self._scan_client.aclose()
