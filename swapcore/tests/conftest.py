"""
Pytest configuration and fixtures for swapcore tests.
"""

import pytest
from coincurve import PrivateKey

from swapcore.crypto import sha256
from swapcore.models import NetworkType, SwapParameters, SwapRecord
from swapcore.script import derive_swap

LOCK_HEIGHT = 800_000
CREATION_HEIGHT = LOCK_HEIGHT - 72


@pytest.fixture
def preimage() -> bytes:
    return bytes(32)


@pytest.fixture
def payment_hash(preimage: bytes) -> bytes:
    return sha256(preimage)


@pytest.fixture
def client_key() -> PrivateKey:
    return PrivateKey((1).to_bytes(32, "big"))


@pytest.fixture
def service_key() -> PrivateKey:
    return PrivateKey((2).to_bytes(32, "big"))


@pytest.fixture
def client_pubkey(client_key: PrivateKey) -> bytes:
    return client_key.public_key.format(compressed=True)


@pytest.fixture
def service_pubkey(service_key: PrivateKey) -> bytes:
    return service_key.public_key.format(compressed=True)


@pytest.fixture
def swap_params(
    payment_hash: bytes, client_pubkey: bytes, service_pubkey: bytes
) -> SwapParameters:
    return SwapParameters(
        payment_hash=payment_hash,
        client_pubkey=client_pubkey,
        service_pubkey=service_pubkey,
        lock_height=LOCK_HEIGHT,
    )


@pytest.fixture
def make_record(client_pubkey: bytes, service_pubkey: bytes):
    """Factory for regtest swap records with a given payment hash."""

    def _make(payment_hash: bytes, lock_height: int = LOCK_HEIGHT) -> SwapRecord:
        creation_height = lock_height - 72
        address, _ = derive_swap(
            payment_hash,
            client_pubkey,
            service_pubkey,
            lock_height,
            creation_height,
            NetworkType.REGTEST,
        )
        return SwapRecord.model_validate(
            {
                "params": {
                    "payment_hash": payment_hash,
                    "client_pubkey": client_pubkey,
                    "service_pubkey": service_pubkey,
                    "lock_height": lock_height,
                },
                "address": address,
                "creation_height": creation_height,
                "network": NetworkType.REGTEST,
            }
        )

    return _make


@pytest.fixture
def swap_record(make_record, payment_hash: bytes) -> SwapRecord:
    return make_record(payment_hash)
