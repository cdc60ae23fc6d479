"""
Pytest configuration and fixtures for swapd tests.
"""

import pytest
from coincurve import PrivateKey

from swapcore.crypto import sha256
from swapcore.errors import ChainQueryError, FeeEstimationUnavailableError
from swapcore.index import MemoryRecordStore, SwapIndex
from swapcore.models import NetworkType
from swapwallet.backends.base import UTXO, BlockchainBackend
from swapwallet.wallet.service import WalletService
from swapwallet.wallet.transaction import deserialize_transaction

from swapd.coordinator import SubmarineSwapper

# Swaps created at this height lock until 800_000 with the default delta
START_HEIGHT = 799_928

TEST_MNEMONIC = (
    "abandon abandon abandon abandon abandon abandon abandon abandon abandon abandon abandon about"
)
CLIENT_MNEMONIC = "legal winner thank year wave sausage worth useful legal winner thank yellow"


class FakeBackend(BlockchainBackend):
    """In-memory chain: a tip height, a fee estimate and a set of unspent outputs."""

    def __init__(self, height: int = START_HEIGHT, fee_per_kw: int | None = 1000):
        self.height = height
        self.fee_per_kw = fee_per_kw
        self.outputs: list[UTXO] = []
        self.broadcasts: list[str] = []
        self.fee_targets: list[int] = []
        self.scan_calls = 0
        self.fail_scans = False
        self._counter = 0

    def fund(self, address: str, value: int, height: int | None = None, vout: int = 0) -> UTXO:
        """Add an output paying address; height None leaves it unconfirmed."""
        self._counter += 1
        utxo = UTXO(
            txid=sha256(f"{address}:{self._counter}".encode()).hex(),
            vout=vout,
            value=value,
            address=address,
            confirmations=0,
            scriptpubkey="",
            height=height,
        )
        self.outputs.append(utxo)
        return utxo

    def spend_all(self) -> None:
        self.outputs.clear()

    async def get_utxos(self, addresses: list[str]) -> list[UTXO]:
        self.scan_calls += 1
        if self.fail_scans:
            raise ChainQueryError("scan failed")
        result = []
        for utxo in self.outputs:
            if utxo.address not in addresses:
                continue
            confirmations = self.height - utxo.height + 1 if utxo.height else 0
            result.append(
                UTXO(
                    txid=utxo.txid,
                    vout=utxo.vout,
                    value=utxo.value,
                    address=utxo.address,
                    confirmations=confirmations,
                    scriptpubkey=utxo.scriptpubkey,
                    height=utxo.height,
                )
            )
        return result

    async def get_block_height(self) -> int:
        return self.height

    async def estimate_fee_per_kw(self, target_blocks: int) -> int:
        self.fee_targets.append(target_blocks)
        if self.fee_per_kw is None:
            raise FeeEstimationUnavailableError(f"No fee estimate for {target_blocks} blocks")
        return self.fee_per_kw

    async def broadcast_transaction(self, tx_hex: str) -> str:
        self.broadcasts.append(tx_hex)
        return deserialize_transaction(bytes.fromhex(tx_hex)).txid()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def wallet() -> WalletService:
    return WalletService(TEST_MNEMONIC, network=NetworkType.REGTEST)


@pytest.fixture
def swapper(backend, wallet) -> SubmarineSwapper:
    return SubmarineSwapper(
        backend=backend,
        wallet=wallet,
        index=SwapIndex(MemoryRecordStore()),
        network=NetworkType.REGTEST,
    )


@pytest.fixture
def client_swapper(backend) -> SubmarineSwapper:
    """The client's own engine: same chain, separate wallet and index."""
    return SubmarineSwapper(
        backend=backend,
        wallet=WalletService(CLIENT_MNEMONIC, network=NetworkType.REGTEST),
        index=SwapIndex(MemoryRecordStore()),
        network=NetworkType.REGTEST,
    )


@pytest.fixture
def preimage() -> bytes:
    return bytes(32)


@pytest.fixture
def payment_hash(preimage) -> bytes:
    return sha256(preimage)


@pytest.fixture
def client_key() -> PrivateKey:
    return PrivateKey((1).to_bytes(32, "big"))


@pytest.fixture
def client_pubkey(client_key) -> bytes:
    return client_key.public_key.format(compressed=True)
