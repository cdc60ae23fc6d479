"""
Cryptographic primitives for submarine swaps.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets

from coincurve import PrivateKey, PublicKey

from swapcore.constants import COMPRESSED_PUBKEY_LENGTH, HASH_LENGTH, PREIMAGE_LENGTH
from swapcore.errors import InvalidParametersError


def sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def ripemd160(data: bytes) -> bytes:
    return hashlib.new("ripemd160", data).digest()


def hash160(data: bytes) -> bytes:
    """RIPEMD160(SHA256(data))"""
    return ripemd160(sha256(data))


def hash256(data: bytes) -> bytes:
    return sha256(sha256(data))


def generate_preimage() -> bytes:
    return secrets.token_bytes(PREIMAGE_LENGTH)


def preimage_matches(preimage: bytes, payment_hash: bytes) -> bool:
    """Constant-time check that SHA256(preimage) equals payment_hash."""
    return hmac.compare_digest(sha256(preimage), payment_hash)


def validate_payment_hash(payment_hash: bytes) -> bytes:
    if not isinstance(payment_hash, bytes | bytearray) or len(payment_hash) != HASH_LENGTH:
        raise InvalidParametersError(f"Payment hash must be exactly {HASH_LENGTH} bytes")
    return bytes(payment_hash)


def validate_pubkey(pubkey: bytes, name: str = "public key") -> bytes:
    """
    Check that pubkey is a compressed secp256k1 point.

    Raises:
        InvalidParametersError: If the bytes do not encode a point on the curve
    """
    if not isinstance(pubkey, bytes | bytearray) or len(pubkey) != COMPRESSED_PUBKEY_LENGTH:
        raise InvalidParametersError(f"Invalid {name}: expected 33-byte compressed key")
    if pubkey[0] not in (0x02, 0x03):
        raise InvalidParametersError(f"Invalid {name}: bad prefix {pubkey[0]:#04x}")
    try:
        PublicKey(bytes(pubkey))
    except ValueError as e:
        raise InvalidParametersError(f"Invalid {name}: not a curve point") from e
    return bytes(pubkey)


class KeyPair:
    def __init__(self, private_key: PrivateKey | None = None):
        if private_key is None:
            private_key = PrivateKey()
        self._private_key = private_key
        self._public_key = private_key.public_key

    @classmethod
    def from_secret(cls, secret: bytes) -> KeyPair:
        if len(secret) != 32:
            raise InvalidParametersError("Private key must be 32 bytes")
        try:
            return cls(PrivateKey(secret))
        except ValueError as e:
            raise InvalidParametersError(f"Invalid private key: {e}") from e

    @property
    def private_key(self) -> PrivateKey:
        return self._private_key

    @property
    def public_key(self) -> PublicKey:
        return self._public_key

    def private_key_bytes(self) -> bytes:
        return self._private_key.secret

    def public_key_bytes(self) -> bytes:
        return self._public_key.format(compressed=True)

    def public_key_hex(self) -> str:
        return self.public_key_bytes().hex()
