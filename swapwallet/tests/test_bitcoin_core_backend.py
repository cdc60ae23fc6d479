"""
Tests for the Bitcoin Core RPC backend with the RPC layer mocked.
"""

from unittest.mock import AsyncMock

import httpx
import pytest

from swapcore.errors import ChainQueryError, FeeEstimationUnavailableError
from swapwallet.backends import bitcoin_core
from swapwallet.backends.bitcoin_core import BitcoinCoreBackend, btc_to_sats

SWAP_ADDRESS = "bcrt1qwqdg6squsna38e46795at95yu9atm8azzmyvckulcc7kytlcckxswvvzej"
OTHER_ADDRESS = "bcrt1qs758ursh4q9z627kt3pp5yysm78ddny6txaqgw"


def rpc_router(responses: dict):
    """side_effect for _rpc_call answering by method (and first param for scantxoutset)."""

    async def _call(method, params=None, client=None):
        key = method
        if method == "scantxoutset":
            key = f"scantxoutset:{params[0]}"
        result = responses[key]
        if isinstance(result, Exception):
            raise result
        return result

    return _call


@pytest.fixture
def backend() -> BitcoinCoreBackend:
    return BitcoinCoreBackend(rpc_url="http://127.0.0.1:18443", rpc_user="u", rpc_password="p")


def test_btc_to_sats():
    assert btc_to_sats(0.001) == 100_000
    assert btc_to_sats(0.29) == 29_000_000
    assert btc_to_sats(21_000_000) == 2_100_000_000_000_000


class TestGetUtxos:
    @pytest.mark.asyncio
    async def test_parses_scan_result(self, backend):
        backend._rpc_call = AsyncMock(
            side_effect=rpc_router(
                {
                    "getblockchaininfo": {"blocks": 110},
                    "scantxoutset:status": None,
                    "scantxoutset:start": {
                        "success": True,
                        "unspents": [
                            {
                                "txid": "ab" * 32,
                                "vout": 1,
                                "amount": 0.001,
                                "height": 101,
                                "desc": f"addr({SWAP_ADDRESS})#0abc1234",
                                "scriptPubKey": "0020" + "00" * 32,
                            }
                        ],
                    },
                }
            )
        )

        utxos = await backend.get_utxos([SWAP_ADDRESS])

        assert len(utxos) == 1
        utxo = utxos[0]
        assert utxo.value == 100_000
        assert utxo.address == SWAP_ADDRESS
        assert utxo.confirmations == 10
        assert utxo.height == 101

        scan_call = backend._rpc_call.await_args_list[-1]
        assert scan_call.args[1] == ["start", [f"addr({SWAP_ADDRESS})"]]

    @pytest.mark.asyncio
    async def test_no_addresses_skips_rpc(self, backend):
        backend._rpc_call = AsyncMock()
        assert await backend.get_utxos([]) == []
        backend._rpc_call.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rpc_failure_becomes_chain_query_error(self, backend):
        backend._rpc_call = AsyncMock(
            side_effect=rpc_router(
                {
                    "getblockchaininfo": {"blocks": 110},
                    "scantxoutset:status": None,
                    "scantxoutset:start": httpx.ConnectError("connection refused"),
                }
            )
        )
        with pytest.raises(ChainQueryError):
            await backend.get_utxos([SWAP_ADDRESS, OTHER_ADDRESS])

    @pytest.mark.asyncio
    async def test_waits_for_running_scan(self, backend, monkeypatch):
        monkeypatch.setattr(bitcoin_core, "SCAN_MAX_WAITS", 3)
        monkeypatch.setattr(bitcoin_core, "SCAN_STATUS_POLL_INTERVAL", 0)
        backend._rpc_call = AsyncMock(
            side_effect=rpc_router(
                {"getblockchaininfo": {"blocks": 110}, "scantxoutset:status": {"progress": 40}}
            )
        )
        with pytest.raises(ChainQueryError, match="No scan slot"):
            await backend.get_utxos([SWAP_ADDRESS])


class TestFeeEstimation:
    @pytest.mark.asyncio
    async def test_converts_btc_per_kvb_to_sat_per_kw(self, backend):
        backend._rpc_call = AsyncMock(return_value={"feerate": 0.0001, "blocks": 6})
        assert await backend.estimate_fee_per_kw(6) == 2500
        backend._rpc_call.assert_awaited_once_with("estimatesmartfee", [6])

    @pytest.mark.asyncio
    async def test_no_estimate(self, backend):
        backend._rpc_call = AsyncMock(
            return_value={"errors": ["Insufficient data or no feerate found"], "blocks": 0}
        )
        with pytest.raises(FeeEstimationUnavailableError):
            await backend.estimate_fee_per_kw(6)

    @pytest.mark.asyncio
    async def test_rpc_error(self, backend):
        backend._rpc_call = AsyncMock(side_effect=ValueError("RPC error -32603: boom"))
        with pytest.raises(FeeEstimationUnavailableError):
            await backend.estimate_fee_per_kw(6)


class TestChainQueries:
    @pytest.mark.asyncio
    async def test_block_height(self, backend):
        backend._rpc_call = AsyncMock(return_value={"blocks": 800_000, "chain": "main"})
        assert await backend.get_block_height() == 800_000

    @pytest.mark.asyncio
    async def test_block_height_failure(self, backend):
        backend._rpc_call = AsyncMock(side_effect=httpx.ReadTimeout("timed out"))
        with pytest.raises(ChainQueryError):
            await backend.get_block_height()

    @pytest.mark.asyncio
    async def test_broadcast(self, backend):
        backend._rpc_call = AsyncMock(return_value="cd" * 32)
        assert await backend.broadcast_transaction("0200") == "cd" * 32
        backend._rpc_call.assert_awaited_once_with("sendrawtransaction", ["0200"])

    @pytest.mark.asyncio
    async def test_broadcast_rejected(self, backend):
        backend._rpc_call = AsyncMock(side_effect=ValueError("RPC error -26: dust"))
        with pytest.raises(ChainQueryError, match="Broadcast failed"):
            await backend.broadcast_transaction("0200")

    @pytest.mark.asyncio
    async def test_amounts_in_sats(self, backend):
        backend._rpc_call = AsyncMock(
            side_effect=rpc_router(
                {
                    "getblockchaininfo": {"blocks": 110},
                    "scantxoutset:status": None,
                    "scantxoutset:start": {
                        "success": True,
                        "unspents": [
                            {
                                "txid": "ab" * 32,
                                "vout": 0,
                                "amount": 0.5,
                                "height": 100,
                                "desc": f"addr({SWAP_ADDRESS})",
                            },
                            {
                                "txid": "cd" * 32,
                                "vout": 2,
                                "amount": 0.25,
                                "height": 105,
                                "desc": f"addr({SWAP_ADDRESS})",
                            },
                        ],
                    },
                }
            )
        )
        utxos = await backend.get_utxos([SWAP_ADDRESS])
        assert [u.value for u in utxos] == [50_000_000, 25_000_000]


class TestRpcCall:
    @pytest.mark.asyncio
    async def test_rpc_error_payload_raises_value_error(self, backend):
        request = httpx.Request("POST", backend.rpc_url)
        response = httpx.Response(
            200, json={"result": None, "error": {"code": -8, "message": "bad"}}, request=request
        )
        backend.client.post = AsyncMock(return_value=response)
        with pytest.raises(ValueError, match="RPC error -8: bad"):
            await backend._rpc_call("getblockchaininfo")
