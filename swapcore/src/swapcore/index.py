"""
Swap index: durable mapping from payment hash to swap record.

The payment hash is the only canonical key. Lookups by address are answered
from the stored records; the address cache is filled from records that are
read-only after creation, so it can never disagree with the store.
"""

from __future__ import annotations

import os
import tempfile
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterator
from pathlib import Path

from loguru import logger
from pydantic import ValidationError

from swapcore.constants import HASH_LENGTH
from swapcore.errors import (
    CorruptRecordError,
    DuplicateSwapError,
    InvalidParametersError,
    SwapNotFoundError,
)
from swapcore.models import SwapRecord


class RecordStore(ABC):
    """Durable key-value storage keyed by 32-byte payment hash."""

    @abstractmethod
    def get(self, key: bytes) -> bytes | None:
        """Return the stored value or None"""

    @abstractmethod
    def put_new(self, key: bytes, value: bytes) -> bool:
        """Store value if key is absent. Returns False without blocking if present."""

    @abstractmethod
    def iter_items(self) -> Iterator[tuple[bytes, bytes]]:
        """Iterate over all (key, value) pairs"""


class MemoryRecordStore(RecordStore):
    def __init__(self) -> None:
        self._data: dict[bytes, bytes] = {}
        self._lock = threading.Lock()

    def get(self, key: bytes) -> bytes | None:
        return self._data.get(key)

    def put_new(self, key: bytes, value: bytes) -> bool:
        with self._lock:
            if key in self._data:
                return False
            self._data[key] = value
            return True

    def iter_items(self) -> Iterator[tuple[bytes, bytes]]:
        yield from list(self._data.items())


class FileRecordStore(RecordStore):
    """
    One file per record under a directory, named by hex key.

    Records are written to a temporary file and hard-linked into place;
    os.link fails if the target exists, so two writers for the same key
    cannot both succeed and a half-written record is never visible.
    """

    SUFFIX = ".json"

    def __init__(self, directory: Path | str):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: bytes) -> Path:
        return self.directory / f"{key.hex()}{self.SUFFIX}"

    def get(self, key: bytes) -> bytes | None:
        try:
            return self._path(key).read_bytes()
        except FileNotFoundError:
            return None

    def put_new(self, key: bytes, value: bytes) -> bool:
        target = self._path(key)
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=".tmp-")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(value)
                f.flush()
                os.fsync(f.fileno())
            try:
                os.link(tmp_name, target)
            except FileExistsError:
                return False
            return True
        finally:
            os.unlink(tmp_name)

    def iter_items(self) -> Iterator[tuple[bytes, bytes]]:
        for path in sorted(self.directory.glob(f"*{self.SUFFIX}")):
            try:
                key = bytes.fromhex(path.stem)
            except ValueError:
                logger.warning(f"Ignoring unexpected file in record store: {path.name}")
                continue
            yield key, path.read_bytes()


class SwapIndex:
    def __init__(self, store: RecordStore):
        self.store = store
        self._address_cache: dict[str, str] = {}

    @staticmethod
    def _key(payment_hash: bytes | str) -> bytes:
        if isinstance(payment_hash, str):
            try:
                payment_hash = bytes.fromhex(payment_hash)
            except ValueError as e:
                raise InvalidParametersError("Payment hash is not valid hex") from e
        if len(payment_hash) != HASH_LENGTH:
            raise InvalidParametersError(f"Payment hash must be exactly {HASH_LENGTH} bytes")
        return bytes(payment_hash)

    @staticmethod
    def _decode(value: bytes) -> SwapRecord:
        try:
            return SwapRecord.model_validate_json(value)
        except ValidationError as e:
            raise CorruptRecordError(f"Corrupt swap record: {e}") from e

    def put(self, record: SwapRecord) -> None:
        """
        Insert a record keyed by its payment hash.

        Raises:
            DuplicateSwapError: If any record already exists for the hash,
                whether or not its contents differ
        """
        key = self._key(record.payment_hash)
        if not self.store.put_new(key, record.model_dump_json().encode("utf-8")):
            logger.warning(f"Rejected duplicate swap for hash {record.payment_hash}")
            raise DuplicateSwapError(record.payment_hash)

        self._address_cache[record.address] = record.payment_hash
        logger.info(
            f"Stored swap {record.payment_hash} at {record.address} "
            f"(created {record.creation_height}, locked until {record.lock_height})"
        )

    def get(self, payment_hash: bytes | str) -> SwapRecord:
        key = self._key(payment_hash)
        value = self.store.get(key)
        if value is None:
            logger.debug(f"No swap for hash {key.hex()}")
            raise SwapNotFoundError(f"No swap for hash {key.hex()}")
        record = self._decode(value)
        self._address_cache.setdefault(record.address, record.payment_hash)
        return record

    def get_by_address(self, address: str) -> SwapRecord:
        payment_hash = self._address_cache.get(address)
        if payment_hash is not None:
            return self.get(payment_hash)

        for _, value in self.store.iter_items():
            record = self._decode(value)
            self._address_cache.setdefault(record.address, record.payment_hash)
            if record.address == address:
                return record

        logger.debug(f"No swap for address {address}")
        raise SwapNotFoundError(f"No swap for address {address}")

    def creation_height(self, address: str) -> tuple[int, int]:
        """Returns (creation_height, lock_height) for the swap paying to address."""
        record = self.get_by_address(address)
        return record.creation_height, record.lock_height

    def __contains__(self, payment_hash: bytes | str) -> bool:
        return self.store.get(self._key(payment_hash)) is not None
