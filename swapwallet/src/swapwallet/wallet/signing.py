"""
Bitcoin transaction signing utilities for segwit v0 inputs (BIP143).
"""

from __future__ import annotations

import struct

from coincurve import PrivateKey, PublicKey
from swapcore.constants import SIGHASH_ALL
from swapcore.crypto import hash256

from swapwallet.wallet.transaction import Transaction, serialize_outpoint, serialize_output, varint


class TransactionSigningError(Exception):
    pass


def compute_sighash_segwit(
    tx: Transaction,
    input_index: int,
    script_code: bytes,
    value: int,
    sighash_type: int = SIGHASH_ALL,
) -> bytes:
    """
    BIP143 signature hash.

    For P2WSH inputs the scriptCode is the full witness script.
    """
    if input_index < 0 or input_index >= len(tx.inputs):
        raise TransactionSigningError("Input index out of range")
    if sighash_type != SIGHASH_ALL:
        raise TransactionSigningError(f"Unsupported sighash type: {sighash_type}")

    hash_prevouts = hash256(b"".join(serialize_outpoint(i.txid, i.vout) for i in tx.inputs))
    hash_sequence = hash256(b"".join(struct.pack("<I", i.sequence) for i in tx.inputs))
    hash_outputs = hash256(b"".join(serialize_output(out) for out in tx.outputs))

    target_input = tx.inputs[input_index]

    preimage = (
        struct.pack("<I", tx.version)
        + hash_prevouts
        + hash_sequence
        + serialize_outpoint(target_input.txid, target_input.vout)
        + varint(len(script_code))
        + script_code
        + struct.pack("<Q", value)
        + struct.pack("<I", target_input.sequence)
        + hash_outputs
        + struct.pack("<I", tx.locktime)
        + struct.pack("<I", sighash_type)
    )

    return hash256(preimage)


def sign_segwit_input(
    tx: Transaction,
    input_index: int,
    script_code: bytes,
    value: int,
    private_key: PrivateKey,
    sighash_type: int = SIGHASH_ALL,
) -> bytes:
    """Sign a segwit v0 input using coincurve.

    Args:
        tx: The transaction to sign
        input_index: Index of the input to sign
        script_code: The scriptCode for signing (witness script for P2WSH)
        value: The value of the input being spent (in satoshis)
        private_key: coincurve PrivateKey instance
        sighash_type: Sighash type (default SIGHASH_ALL = 1)

    Returns:
        DER-encoded low-S signature with sighash type byte appended
    """
    sighash = compute_sighash_segwit(tx, input_index, script_code, value, sighash_type)

    # The sighash is already SHA256d; hasher=None skips hashing again
    signature = private_key.sign(sighash, hasher=None)

    return signature + bytes([sighash_type])


def verify_segwit_signature(
    tx: Transaction,
    input_index: int,
    script_code: bytes,
    value: int,
    signature: bytes,
    pubkey: bytes,
) -> bool:
    """Check a signature produced by sign_segwit_input."""
    if len(signature) < 2:
        return False
    sighash_type = signature[-1]
    try:
        sighash = compute_sighash_segwit(tx, input_index, script_code, value, sighash_type)
        return PublicKey(pubkey).verify(signature[:-1], sighash, hasher=None)
    except (TransactionSigningError, ValueError):
        return False
