"""
Bitcoin and submarine swap constants.

Fee rates are expressed in satoshis per 1000 weight units (sat/kw), the unit
used when settling swap outputs. One vbyte is four weight units.
"""

from __future__ import annotations

# Payment hash and preimage sizes (SHA256)
HASH_LENGTH = 32
PREIMAGE_LENGTH = 32

# Compressed secp256k1 public key
COMPRESSED_PUBKEY_LENGTH = 33

# Blocks between swap creation and the height at which the client may refund
DEFAULT_LOCK_DELTA = 72

# nLockTime values at or above this are interpreted as unix timestamps
LOCKTIME_THRESHOLD = 500_000_000

# Total supply in satoshis; no sum of outputs may exceed it
MAX_MONEY = 21_000_000 * 100_000_000

# Standard P2PKH dust limit in Bitcoin Core
STANDARD_DUST_LIMIT = 546  # satoshis

WITNESS_SCALE_FACTOR = 4

# Minimum relay fee (1 sat/vB) expressed per kw, rounded up
FEE_PER_KW_FLOOR = 253

# Upper bound for caller-supplied fee rates (1000 sat/vB)
DEFAULT_MAX_FEE_PER_KW = 250_000

DEFAULT_CONF_TARGET = 6
MAX_CONF_TARGET = 1008

# DER signature (max 72 bytes) plus the sighash type byte
MAX_SIGNATURE_SIZE = 73

SIGHASH_ALL = 1

SEQUENCE_FINAL = 0xFFFFFFFF
# Non-final sequence so nLockTime is enforced on refunds
SEQUENCE_LOCKTIME = 0xFFFFFFFE

TX_VERSION = 2
