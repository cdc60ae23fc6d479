"""
Segwit transaction model and serialization.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field

from swapcore.constants import SEQUENCE_FINAL, TX_VERSION, WITNESS_SCALE_FACTOR
from swapcore.crypto import hash256


class TransactionParseError(Exception):
    pass


@dataclass
class TxInput:
    txid: str
    vout: int
    value: int
    sequence: int = SEQUENCE_FINAL
    witness: list[bytes] = field(default_factory=list)


@dataclass
class TxOutput:
    value: int
    script: bytes


@dataclass
class Transaction:
    inputs: list[TxInput]
    outputs: list[TxOutput]
    version: int = TX_VERSION
    locktime: int = 0

    def has_witness(self) -> bool:
        return any(inp.witness for inp in self.inputs)

    def serialize(self, include_witness: bool = True) -> bytes:
        with_witness = include_witness and self.has_witness()

        result = struct.pack("<I", self.version)
        if with_witness:
            result += bytes([0x00, 0x01])  # SegWit marker and flag

        result += varint(len(self.inputs))
        for inp in self.inputs:
            result += serialize_outpoint(inp.txid, inp.vout)
            result += bytes([0x00])  # empty scriptSig
            result += struct.pack("<I", inp.sequence)

        result += varint(len(self.outputs))
        for out in self.outputs:
            result += serialize_output(out)

        if with_witness:
            for inp in self.inputs:
                result += serialize_witness(inp.witness)

        result += struct.pack("<I", self.locktime)
        return result

    def txid(self) -> str:
        """Double SHA256 of the non-witness serialization, in RPC byte order."""
        return hash256(self.serialize(include_witness=False))[::-1].hex()

    def weight(self) -> int:
        base_size = len(self.serialize(include_witness=False))
        total_size = len(self.serialize(include_witness=True))
        return base_size * (WITNESS_SCALE_FACTOR - 1) + total_size

    def vsize(self) -> int:
        return (self.weight() + WITNESS_SCALE_FACTOR - 1) // WITNESS_SCALE_FACTOR

    def hex(self) -> str:
        return self.serialize().hex()


def varint(n: int) -> bytes:
    """Encode integer as Bitcoin varint."""
    if n < 0xFD:
        return bytes([n])
    elif n <= 0xFFFF:
        return bytes([0xFD]) + struct.pack("<H", n)
    elif n <= 0xFFFFFFFF:
        return bytes([0xFE]) + struct.pack("<I", n)
    else:
        return bytes([0xFF]) + struct.pack("<Q", n)


def read_varint(data: bytes, offset: int) -> tuple[int, int]:
    """Read varint at offset. Returns (value, new_offset)."""
    first = data[offset]
    offset += 1

    if first < 0xFD:
        return first, offset
    if first == 0xFD:
        return struct.unpack("<H", data[offset : offset + 2])[0], offset + 2
    if first == 0xFE:
        return struct.unpack("<I", data[offset : offset + 4])[0], offset + 4
    return struct.unpack("<Q", data[offset : offset + 8])[0], offset + 8


def serialize_outpoint(txid: str, vout: int) -> bytes:
    """Serialize outpoint (txid:vout)."""
    # txid is in RPC format (big-endian), need to reverse for raw tx
    return bytes.fromhex(txid)[::-1] + struct.pack("<I", vout)


def serialize_output(out: TxOutput) -> bytes:
    return struct.pack("<Q", out.value) + varint(len(out.script)) + out.script


def serialize_witness(items: list[bytes]) -> bytes:
    result = varint(len(items))
    for item in items:
        result += varint(len(item)) + item
    return result


def deserialize_transaction(tx_bytes: bytes) -> Transaction:
    """
    Parse a serialized transaction.

    Input values are not part of the serialization and are set to 0.

    Raises:
        TransactionParseError: If the bytes are not a well-formed transaction
    """
    try:
        offset = 0
        version = struct.unpack("<I", tx_bytes[offset : offset + 4])[0]
        offset += 4

        has_witness = False
        if tx_bytes[offset] == 0x00 and tx_bytes[offset + 1] == 0x01:
            has_witness = True
            offset += 2

        input_count, offset = read_varint(tx_bytes, offset)
        inputs: list[TxInput] = []
        for _ in range(input_count):
            txid = tx_bytes[offset : offset + 32][::-1].hex()
            offset += 32
            vout = struct.unpack("<I", tx_bytes[offset : offset + 4])[0]
            offset += 4
            script_len, offset = read_varint(tx_bytes, offset)
            offset += script_len
            sequence = struct.unpack("<I", tx_bytes[offset : offset + 4])[0]
            offset += 4
            inputs.append(TxInput(txid=txid, vout=vout, value=0, sequence=sequence))

        output_count, offset = read_varint(tx_bytes, offset)
        outputs: list[TxOutput] = []
        for _ in range(output_count):
            value = struct.unpack("<Q", tx_bytes[offset : offset + 8])[0]
            offset += 8
            script_len, offset = read_varint(tx_bytes, offset)
            outputs.append(TxOutput(value=value, script=tx_bytes[offset : offset + script_len]))
            offset += script_len

        if has_witness:
            for inp in inputs:
                item_count, offset = read_varint(tx_bytes, offset)
                for _ in range(item_count):
                    item_len, offset = read_varint(tx_bytes, offset)
                    inp.witness.append(tx_bytes[offset : offset + item_len])
                    offset += item_len

        locktime = struct.unpack("<I", tx_bytes[offset : offset + 4])[0]
        offset += 4
        if offset != len(tx_bytes):
            raise ValueError(f"{len(tx_bytes) - offset} trailing bytes")

        return Transaction(inputs=inputs, outputs=outputs, version=version, locktime=locktime)

    except (IndexError, ValueError, struct.error) as e:
        raise TransactionParseError(f"Failed to parse transaction: {e}") from e
