"""
Bitcoin address and scriptPubKey conversion.

Supports the output types a swap settlement may pay to:
- P2WPKH (bc1q..., tb1q..., bcrt1q...)
- P2WSH (bc1q... 62 chars)
- P2TR (bc1p...)
- P2PKH (1..., m..., n...)
- P2SH (3..., 2...)
"""

from __future__ import annotations

import base58
from embit import bech32

from swapcore.crypto import hash160, sha256
from swapcore.errors import InvalidParametersError
from swapcore.models import NetworkType

HRP_BY_NETWORK = {
    NetworkType.MAINNET: "bc",
    NetworkType.TESTNET: "tb",
    NetworkType.SIGNET: "tb",
    NetworkType.REGTEST: "bcrt",
}


def network_hrp(network: NetworkType | str) -> str:
    return HRP_BY_NETWORK[NetworkType(network)]


def _encode_segwit(network: NetworkType | str, witver: int, witprog: bytes) -> str:
    result = bech32.encode(network_hrp(network), witver, witprog)
    if result is None:
        raise InvalidParametersError(f"Failed to encode witness program: {witprog.hex()}")
    return result


def script_to_p2wsh_scriptpubkey(script: bytes) -> bytes:
    """P2WSH scriptPubKey: OP_0 <SHA256(witness_script)>"""
    return bytes([0x00, 0x20]) + sha256(script)


def script_to_p2wsh_address(script: bytes, network: NetworkType | str = NetworkType.MAINNET) -> str:
    """Bech32 P2WSH address for a witness script (BIP141/BIP173)."""
    return _encode_segwit(network, 0, sha256(script))


def pubkey_to_p2wpkh_address(
    pubkey: bytes, network: NetworkType | str = NetworkType.MAINNET
) -> str:
    if len(pubkey) != 33:
        raise InvalidParametersError(f"Invalid compressed pubkey length: {len(pubkey)}")
    return _encode_segwit(network, 0, hash160(pubkey))


def address_to_scriptpubkey(address: str) -> bytes:
    """
    Convert a Bitcoin address to scriptPubKey.

    Raises:
        InvalidParametersError: If the address cannot be decoded
    """
    lowered = address.lower()
    if lowered.startswith(("bc1", "tb1", "bcrt1")):
        hrp = "bcrt" if lowered.startswith("bcrt1") else lowered[:2]
        # v0 programs carry a bech32 checksum, v1+ a bech32m one (BIP350)
        witver, witprog_list = bech32.decode(hrp, address)
        if witver is None or witprog_list is None:
            raise InvalidParametersError(f"Invalid bech32 address: {address}")

        witprog = bytes(witprog_list)
        if witver == 0:
            if len(witprog) == 20:
                # P2WPKH: OP_0 <20-byte-pubkeyhash>
                return bytes([0x00, 0x14]) + witprog
            if len(witprog) == 32:
                # P2WSH: OP_0 <32-byte-scripthash>
                return bytes([0x00, 0x20]) + witprog
        elif witver == 1 and len(witprog) == 32:
            # P2TR: OP_1 <32-byte-pubkey>
            return bytes([0x51, 0x20]) + witprog

        raise InvalidParametersError(f"Unsupported witness program in {address}")

    try:
        decoded = base58.b58decode_check(address)
    except ValueError as e:
        raise InvalidParametersError(f"Invalid address: {address}") from e

    version = decoded[0]
    payload = decoded[1:]
    if len(payload) != 20:
        raise InvalidParametersError(f"Invalid address payload length: {address}")

    if version in (0x00, 0x6F):  # Mainnet/Testnet P2PKH
        # OP_DUP OP_HASH160 <20-byte-pubkeyhash> OP_EQUALVERIFY OP_CHECKSIG
        return bytes([0x76, 0xA9, 0x14]) + payload + bytes([0x88, 0xAC])
    if version in (0x05, 0xC4):  # Mainnet/Testnet P2SH
        # OP_HASH160 <20-byte-scripthash> OP_EQUAL
        return bytes([0xA9, 0x14]) + payload + bytes([0x87])

    raise InvalidParametersError(f"Unknown address version: {version}")
