"""
Pytest configuration and fixtures for swapwallet tests.
"""

import pytest
from coincurve import PrivateKey

from swapcore.models import NetworkType
from swapcore.script import derive_swap
from swapwallet.wallet.service import WalletService


@pytest.fixture
def test_mnemonic() -> str:
    """Test mnemonic (BIP39 test vector)"""
    return (
        "abandon abandon abandon abandon abandon abandon "
        "abandon abandon abandon abandon abandon about"
    )


@pytest.fixture
def wallet(test_mnemonic) -> WalletService:
    return WalletService(test_mnemonic, network=NetworkType.MAINNET)


@pytest.fixture
def client_key() -> PrivateKey:
    return PrivateKey((7).to_bytes(32, "big"))


@pytest.fixture
def swap_script(wallet, client_key) -> tuple[bytes, bytes]:
    """(service_pubkey, witness_script) for a swap whose service key lives in the wallet."""
    service_pubkey = wallet.new_swap_key()
    _, script = derive_swap(
        bytes(32),
        client_key.public_key.format(compressed=True),
        service_pubkey,
        800_000,
        799_928,
        NetworkType.MAINNET,
    )
    return service_pubkey, script
