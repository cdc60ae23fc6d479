"""
Swap script derivation.

The swap contract is a P2WSH output locked by:

    OP_HASH160 <RIPEMD160(payment_hash)> OP_EQUAL
    OP_IF
        <service_pubkey>
    OP_ELSE
        <lock_height> OP_CHECKLOCKTIMEVERIFY OP_DROP
        <client_pubkey>
    OP_ENDIF
    OP_CHECKSIG

HASH160(preimage) is RIPEMD160(SHA256(preimage)), so a witness carrying the
preimage selects the service branch and any other second item selects the
client branch, which only validates once nLockTime >= lock_height.

Redeem witness:  <service_sig> <preimage> <script>
Refund witness:  <client_sig> <> <script>

Everything here is a pure function of its inputs so client and service compute
the same deposit address independently.
"""

from __future__ import annotations

from collections.abc import Iterator

from pydantic import ValidationError

from swapcore.address import script_to_p2wsh_address
from swapcore.constants import LOCKTIME_THRESHOLD
from swapcore.crypto import ripemd160, validate_payment_hash, validate_pubkey
from swapcore.errors import InvalidParametersError
from swapcore.models import NetworkType, SwapParameters

OP_0 = 0x00
OP_PUSHDATA1 = 0x4C
OP_PUSHDATA2 = 0x4D
OP_PUSHDATA4 = 0x4E
OP_1NEGATE = 0x4F
OP_1 = 0x51
OP_16 = 0x60
OP_IF = 0x63
OP_ELSE = 0x67
OP_ENDIF = 0x68
OP_DROP = 0x75
OP_EQUAL = 0x87
OP_HASH160 = 0xA9
OP_CHECKSIG = 0xAC
OP_CHECKLOCKTIMEVERIFY = 0xB1


def push_data(data: bytes) -> bytes:
    """Minimal push of arbitrary bytes."""
    length = len(data)
    if length < OP_PUSHDATA1:
        return bytes([length]) + data
    if length <= 0xFF:
        return bytes([OP_PUSHDATA1, length]) + data
    if length <= 0xFFFF:
        return bytes([OP_PUSHDATA2]) + length.to_bytes(2, "little") + data
    return bytes([OP_PUSHDATA4]) + length.to_bytes(4, "little") + data


def script_num_encode(n: int) -> bytes:
    """Minimal little-endian sign-magnitude encoding (CScriptNum)."""
    if n == 0:
        return b""

    negative = n < 0
    magnitude = abs(n)
    result = bytearray()
    while magnitude:
        result.append(magnitude & 0xFF)
        magnitude >>= 8

    # Extra byte when the top bit is taken by the magnitude
    if result[-1] & 0x80:
        result.append(0x80 if negative else 0x00)
    elif negative:
        result[-1] |= 0x80

    return bytes(result)


def script_num_decode(data: bytes) -> int:
    if not data:
        return 0
    value = int.from_bytes(data, "little")
    if data[-1] & 0x80:
        return -(value & ~(0x80 << (8 * (len(data) - 1))))
    return value


def push_int(n: int) -> bytes:
    if n == 0:
        return bytes([OP_0])
    if n == -1:
        return bytes([OP_1NEGATE])
    if 1 <= n <= 16:
        return bytes([OP_1 + n - 1])
    return push_data(script_num_encode(n))


def iter_script_ops(script: bytes) -> Iterator[tuple[int, bytes | None]]:
    """Yield (opcode, pushed_data) pairs; data is None for non-push opcodes."""
    offset = 0
    while offset < len(script):
        op = script[offset]
        offset += 1
        if 0 < op < OP_PUSHDATA1:
            size = op
        elif op == OP_PUSHDATA1:
            size = script[offset]
            offset += 1
        elif op == OP_PUSHDATA2:
            size = int.from_bytes(script[offset : offset + 2], "little")
            offset += 2
        elif op == OP_PUSHDATA4:
            size = int.from_bytes(script[offset : offset + 4], "little")
            offset += 4
        else:
            yield op, None
            continue

        data = script[offset : offset + size]
        if len(data) != size:
            raise InvalidParametersError("Script push exceeds script length")
        offset += size
        yield op, data


def build_swap_script(params: SwapParameters) -> bytes:
    """Witness script for already-validated parameters."""
    script = bytes([OP_HASH160])
    script += push_data(ripemd160(params.hash_bytes))
    script += bytes([OP_EQUAL, OP_IF])
    script += push_data(params.service_pubkey_bytes)
    script += bytes([OP_ELSE])
    script += push_int(params.lock_height)
    script += bytes([OP_CHECKLOCKTIMEVERIFY, OP_DROP])
    script += push_data(params.client_pubkey_bytes)
    script += bytes([OP_ENDIF, OP_CHECKSIG])
    return script


def swap_address(params: SwapParameters, network: NetworkType | str = NetworkType.MAINNET) -> str:
    return script_to_p2wsh_address(build_swap_script(params), network)


def make_swap_parameters(
    payment_hash: bytes,
    client_pubkey: bytes,
    service_pubkey: bytes,
    lock_height: int,
    current_height: int,
) -> SwapParameters:
    """
    Validate raw swap inputs and build SwapParameters.

    Raises:
        InvalidParametersError: On a malformed hash or key, or a lock height
            that is not a block height strictly above current_height
    """
    validate_payment_hash(payment_hash)
    validate_pubkey(client_pubkey, "client public key")
    validate_pubkey(service_pubkey, "service public key")

    if isinstance(lock_height, bool) or not isinstance(lock_height, int):
        raise InvalidParametersError("Lock height must be an integer")
    if lock_height <= 0 or lock_height >= LOCKTIME_THRESHOLD:
        raise InvalidParametersError(f"Lock height {lock_height} is not a valid block height")
    if lock_height <= current_height:
        raise InvalidParametersError(
            f"Lock height {lock_height} must be above current height {current_height}"
        )

    try:
        return SwapParameters(
            payment_hash=payment_hash,
            client_pubkey=client_pubkey,
            service_pubkey=service_pubkey,
            lock_height=lock_height,
        )
    except ValidationError as e:
        raise InvalidParametersError(str(e)) from e


def derive_swap(
    payment_hash: bytes,
    client_pubkey: bytes,
    service_pubkey: bytes,
    lock_height: int,
    current_height: int,
    network: NetworkType | str = NetworkType.MAINNET,
) -> tuple[str, bytes]:
    """
    Derive the swap deposit address and witness script.

    Args:
        payment_hash: 32-byte SHA256 of the client's preimage
        client_pubkey: Compressed key controlling the refund path
        service_pubkey: Compressed key controlling the redeem path
        lock_height: Absolute height from which refund is valid
        current_height: Chain height as seen by the caller
        network: Network used for the bech32 prefix

    Returns:
        (address, script)
    """
    params = make_swap_parameters(
        payment_hash, client_pubkey, service_pubkey, lock_height, current_height
    )
    script = build_swap_script(params)
    return script_to_p2wsh_address(script, network), script


def parse_swap_script(script: bytes) -> tuple[bytes, bytes, int, bytes]:
    """
    Split a swap script into its components.

    Returns:
        (hash160_of_preimage, service_pubkey, lock_height, client_pubkey)

    Raises:
        InvalidParametersError: If the script does not have the swap layout
    """
    ops = list(iter_script_ops(script))
    if len(ops) != 12:
        raise InvalidParametersError("Not a swap script: unexpected length")

    fixed = {
        0: OP_HASH160,
        2: OP_EQUAL,
        3: OP_IF,
        5: OP_ELSE,
        7: OP_CHECKLOCKTIMEVERIFY,
        8: OP_DROP,
        10: OP_ENDIF,
        11: OP_CHECKSIG,
    }
    for index, opcode in fixed.items():
        if ops[index] != (opcode, None):
            raise InvalidParametersError(f"Not a swap script: bad opcode at position {index}")

    hash_push = ops[1][1]
    service_push = ops[4][1]
    client_push = ops[9][1]
    if hash_push is None or len(hash_push) != 20:
        raise InvalidParametersError("Not a swap script: bad hash push")
    if service_push is None or client_push is None:
        raise InvalidParametersError("Not a swap script: missing public key")

    lock_op, lock_data = ops[6]
    if lock_data is not None:
        lock_height = script_num_decode(lock_data)
    elif OP_1 <= lock_op <= OP_16:
        lock_height = lock_op - OP_1 + 1
    else:
        raise InvalidParametersError("Not a swap script: bad lock height")

    return (
        hash_push,
        validate_pubkey(service_push, "service public key"),
        lock_height,
        validate_pubkey(client_push, "client public key"),
    )


def redeem_witness(signature: bytes, preimage: bytes, script: bytes) -> list[bytes]:
    return [signature, preimage, script]


def refund_witness(signature: bytes, script: bytes) -> list[bytes]:
    # Empty item fails the hash check and selects the timelocked branch
    return [signature, b"", script]
