"""
BIP32 private-key derivation and BIP39 seeds for the swap wallet.

Only private (xprv-style) derivation is needed: every key the wallet derives
is one it will later sign with.
"""

from __future__ import annotations

import hashlib
import hmac

from coincurve import PrivateKey
from swapcore.address import pubkey_to_p2wpkh_address
from swapcore.models import NetworkType

# secp256k1 group order
CURVE_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

HARDENED_OFFSET = 0x80000000

BIP39_PBKDF2_ROUNDS = 2048


def parse_path(path: str) -> list[int]:
    """
    "m/84'/1'/0'/3/7" -> child indices, hardened ones offset by 2^31.

    Both ' and h mark a hardened step.
    """
    root, *steps = path.split("/")
    if root != "m":
        raise ValueError(f"Derivation path must start with 'm': {path}")

    indices = []
    for step in filter(None, steps):
        hardened = step[-1] in "'h"
        index = int(step[:-1] if hardened else step)
        if not 0 <= index < HARDENED_OFFSET:
            raise ValueError(f"Child index out of range in {path}")
        indices.append(index + HARDENED_OFFSET if hardened else index)
    return indices


class HDKey:
    def __init__(self, private_key: PrivateKey, chain_code: bytes, depth: int = 0):
        self.private_key = private_key
        self.chain_code = chain_code
        self.depth = depth

    @classmethod
    def from_seed(cls, seed: bytes) -> HDKey:
        digest = hmac.new(b"Bitcoin seed", seed, hashlib.sha512).digest()
        return cls(PrivateKey(digest[:32]), digest[32:])

    def derive(self, path: str) -> HDKey:
        key = self
        for index in parse_path(path):
            key = key._derive_child(index)
        return key

    def _derive_child(self, index: int) -> HDKey:
        if index >= HARDENED_OFFSET:
            data = b"\x00" + self.private_key.secret
        else:
            data = self.get_public_key_bytes()
        digest = hmac.new(self.chain_code, data + index.to_bytes(4, "big"), hashlib.sha512).digest()

        tweak = int.from_bytes(digest[:32], "big")
        child = (int.from_bytes(self.private_key.secret, "big") + tweak) % CURVE_ORDER
        # Probability below 2^-127; BIP32 says skip to the next index
        if tweak >= CURVE_ORDER or child == 0:
            raise ValueError(f"Invalid child key at index {index}")

        return HDKey(PrivateKey(child.to_bytes(32, "big")), digest[32:], self.depth + 1)

    def get_private_key_bytes(self) -> bytes:
        return self.private_key.secret

    def get_public_key_bytes(self) -> bytes:
        return self.private_key.public_key.format(compressed=True)

    def get_address(self, network: NetworkType | str = NetworkType.MAINNET) -> str:
        """Native segwit (P2WPKH) address of this key."""
        return pubkey_to_p2wpkh_address(self.get_public_key_bytes(), network)


def mnemonic_to_seed(mnemonic: str, passphrase: str = "") -> bytes:
    """
    BIP39 seed from a mnemonic sentence.

    The word list checksum is not verified.
    """
    sentence = " ".join(mnemonic.split()).encode("utf-8")
    salt = f"mnemonic{passphrase}".encode()
    return hashlib.pbkdf2_hmac("sha512", sentence, salt, BIP39_PBKDF2_ROUNDS)
