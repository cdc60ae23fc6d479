"""
Tests for the swap index and its record stores.
"""

import threading

import pytest

from swapcore.crypto import sha256
from swapcore.errors import (
    CorruptRecordError,
    DuplicateSwapError,
    InvalidParametersError,
    SwapNotFoundError,
)
from swapcore.index import FileRecordStore, MemoryRecordStore, SwapIndex


@pytest.fixture(params=["memory", "file"])
def index(request, tmp_path) -> SwapIndex:
    if request.param == "memory":
        return SwapIndex(MemoryRecordStore())
    return SwapIndex(FileRecordStore(tmp_path / "swaps"))


class TestSwapIndex:
    def test_put_then_get(self, index, swap_record):
        index.put(swap_record)
        assert index.get(swap_record.params.hash_bytes) == swap_record
        assert index.get(swap_record.payment_hash) == swap_record

    def test_second_put_fails_even_when_identical(self, index, swap_record):
        index.put(swap_record)
        with pytest.raises(DuplicateSwapError) as exc_info:
            index.put(swap_record)
        assert exc_info.value.payment_hash == swap_record.payment_hash

    def test_second_put_with_different_payload_fails(self, index, make_record, swap_record):
        index.put(swap_record)
        other = make_record(swap_record.params.hash_bytes, lock_height=900_000)
        with pytest.raises(DuplicateSwapError):
            index.put(other)
        assert index.get(swap_record.payment_hash).lock_height == swap_record.lock_height

    def test_get_unknown_hash(self, index):
        with pytest.raises(SwapNotFoundError):
            index.get(bytes(32))

    def test_get_malformed_hash(self, index):
        with pytest.raises(InvalidParametersError):
            index.get(b"short")
        with pytest.raises(InvalidParametersError):
            index.get("not hex")

    def test_get_by_address(self, index, make_record):
        records = [make_record(sha256(bytes([i]))) for i in range(3)]
        for record in records:
            index.put(record)
        for record in records:
            assert index.get_by_address(record.address) == record

    def test_get_by_unknown_address(self, index, swap_record):
        index.put(swap_record)
        with pytest.raises(SwapNotFoundError):
            index.get_by_address("bcrt1qunknown")

    def test_creation_height(self, index, swap_record):
        index.put(swap_record)
        assert index.creation_height(swap_record.address) == (
            swap_record.creation_height,
            swap_record.lock_height,
        )

    def test_contains(self, index, swap_record):
        assert swap_record.payment_hash not in index
        index.put(swap_record)
        assert swap_record.payment_hash in index
        assert swap_record.params.hash_bytes in index

    def test_concurrent_puts_for_same_hash(self, index, swap_record):
        """Exactly one of many racing writers wins."""
        results: list[bool] = []
        lock = threading.Lock()
        barrier = threading.Barrier(8)

        def writer():
            barrier.wait()
            try:
                index.put(swap_record)
                ok = True
            except DuplicateSwapError:
                ok = False
            with lock:
                results.append(ok)

        threads = [threading.Thread(target=writer) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(True) == 1
        assert results.count(False) == 7


class TestFileRecordStore:
    def test_records_survive_restart(self, tmp_path, swap_record):
        SwapIndex(FileRecordStore(tmp_path)).put(swap_record)

        reopened = SwapIndex(FileRecordStore(tmp_path))
        assert reopened.get(swap_record.payment_hash) == swap_record
        assert reopened.get_by_address(swap_record.address) == swap_record

    def test_duplicate_across_instances(self, tmp_path, swap_record):
        SwapIndex(FileRecordStore(tmp_path)).put(swap_record)
        with pytest.raises(DuplicateSwapError):
            SwapIndex(FileRecordStore(tmp_path)).put(swap_record)

    def test_no_temporary_files_left(self, tmp_path, swap_record):
        index = SwapIndex(FileRecordStore(tmp_path))
        index.put(swap_record)
        with pytest.raises(DuplicateSwapError):
            index.put(swap_record)
        assert [p.name for p in tmp_path.iterdir()] == [f"{swap_record.payment_hash}.json"]

    def test_ignores_foreign_files(self, tmp_path, swap_record):
        (tmp_path / "notes.json").write_text("{}")
        SwapIndex(FileRecordStore(tmp_path)).put(swap_record)

        reopened = SwapIndex(FileRecordStore(tmp_path))
        assert reopened.get_by_address(swap_record.address) == swap_record

    def test_corrupt_record(self, tmp_path, swap_record):
        store = FileRecordStore(tmp_path)
        store.put_new(swap_record.params.hash_bytes, b"{not json")
        with pytest.raises(CorruptRecordError, match="Corrupt") as exc_info:
            SwapIndex(store).get(swap_record.payment_hash)
        # Storage damage is not reported as bad caller input
        assert not isinstance(exc_info.value, InvalidParametersError)
