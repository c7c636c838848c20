"""Tests for the store coordinator."""

import io
import threading

import pytest

from chunkstore.exceptions import InvalidStateError, NotFoundError, StorageIOError
from chunkstore.checksum import compute_checksum
from chunkstore.store import Store
from chunkstore.types import FileStatus


def failing_pieces(good_pieces, error):
    """Iterable source that raises `error` after yielding `good_pieces`."""
    for piece in good_pieces:
        yield piece
    raise error


class TestOpen:
    """Test store construction."""

    def test_open_creates_database(self, tmp_path):
        store = Store.open(tmp_path / "db" / "files.db", chunk_size=16)

        assert (tmp_path / "db" / "files.db").exists()
        assert store.chunk_size == 16

    def test_open_rejects_bad_chunk_size(self, tmp_path):
        with pytest.raises(ValueError):
            Store.open(tmp_path / "files.db", chunk_size=0)

    def test_reopen_sees_existing_files(self, tmp_path):
        path = tmp_path / "files.db"
        Store.open(path).upload("a.txt", "text/plain", io.BytesIO(b"hello"))

        reopened = Store.open(path)
        assert reopened.fetch_metadata("a.txt").length == 5


class TestUpload:
    """Test the upload lifecycle."""

    def test_upload_completes_record(self, store, payload):
        record = store.upload("data.bin", "application/octet-stream", io.BytesIO(payload))

        assert record.status == FileStatus.COMPLETE
        assert record.length == len(payload)
        assert record.chunk_size == 8
        assert record.checksum == compute_checksum(payload)

    def test_zero_byte_upload(self, store, chunk_repo):
        record = store.upload("empty.txt", "text/plain", io.BytesIO(b""))

        assert record.status == FileStatus.COMPLETE
        assert record.length == 0
        assert chunk_repo.count_chunks(record.file_id) == 0

    def test_exact_and_one_over_chunk_size(self, store, chunk_repo):
        exact = store.upload("exact.bin", "application/octet-stream", io.BytesIO(b"a" * 8))
        over = store.upload("over.bin", "application/octet-stream", io.BytesIO(b"a" * 9))

        assert chunk_repo.get_sequence_numbers(exact.file_id) == [0]
        assert chunk_repo.get_chunk(exact.file_id, 0).size == 8
        assert chunk_repo.get_sequence_numbers(over.file_id) == [0, 1]
        assert chunk_repo.get_chunk(over.file_id, 1).size == 1

    def test_per_upload_chunk_size_override(self, store, chunk_repo, payload):
        record = store.upload("big.bin", "application/octet-stream", io.BytesIO(payload), chunk_size=50)

        assert record.chunk_size == 50
        assert chunk_repo.count_chunks(record.file_id) == 2

    def test_explicit_zero_chunk_size_is_rejected(self, store, file_repo):
        with pytest.raises(ValueError):
            store.upload("zero.bin", "application/octet-stream", io.BytesIO(b"abc"), chunk_size=0)

        assert file_repo.list_all() == []

    def test_source_failure_marks_record_failed(self, store, file_repo, chunk_repo):
        with pytest.raises(ConnectionError):
            store.upload(
                "broken.bin",
                "application/octet-stream",
                failing_pieces([b"a" * 20], ConnectionError("reset"))
            )

        record = file_repo.find_by_filename("broken.bin")
        assert record.status == FileStatus.FAILED
        assert record.length is None
        assert chunk_repo.count_chunks(record.file_id) == 2

    def test_interrupt_marks_record_failed(self, store, file_repo):
        with pytest.raises(KeyboardInterrupt):
            store.upload(
                "interrupted.bin",
                "application/octet-stream",
                failing_pieces([b"abc"], KeyboardInterrupt())
            )

        assert file_repo.find_by_filename("interrupted.bin").status == FileStatus.FAILED

    def test_storage_failure_marks_record_failed(self, store, file_repo, monkeypatch):
        def reject(chunk):
            raise StorageIOError("disk full")

        monkeypatch.setattr(store.chunk_repo, "put_chunk", reject)

        with pytest.raises(StorageIOError):
            store.upload("full.bin", "application/octet-stream", io.BytesIO(b"abc"))

        assert file_repo.find_by_filename("full.bin").status == FileStatus.FAILED

    def test_failed_upload_is_never_readable(self, store):
        with pytest.raises(ConnectionError):
            store.upload(
                "broken.bin",
                "application/octet-stream",
                failing_pieces([b"a" * 20], ConnectionError("reset"))
            )

        with pytest.raises(NotFoundError):
            store.fetch_metadata("broken.bin")
        with pytest.raises(NotFoundError):
            store.fetch_content("broken.bin")
        assert store.list_files() == []

    def test_concurrent_uploads_with_same_name(self, store):
        results = []
        errors = []

        def worker(data):
            try:
                results.append(store.upload("same.png", "image/png", io.BytesIO(data)))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(bytes([i]) * 40,)) for i in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(results) == 2
        names = {r.filename for r in results}
        assert len(names) == 2
        assert "same.png" in names
        for record in results:
            assert record.status == FileStatus.COMPLETE
            _, stream = store.fetch_content(record.file_id)
            assert len(b"".join(stream)) == 40


class TestFetch:
    """Test metadata and content resolution."""

    def test_fetch_metadata_by_id_and_filename(self, store):
        record = store.upload("a.txt", "text/plain", io.BytesIO(b"hello"))

        assert store.fetch_metadata(record.file_id) == record
        assert store.fetch_metadata("a.txt") == record

    def test_fetch_metadata_unknown(self, store):
        with pytest.raises(NotFoundError):
            store.fetch_metadata("nope.txt")

    def test_uploading_record_is_hidden(self, store, file_repo):
        record = file_repo.create("pending.txt", "text/plain", 8)

        with pytest.raises(NotFoundError):
            store.fetch_metadata(record.file_id)
        with pytest.raises(NotFoundError):
            store.fetch_metadata("pending.txt")

    def test_fetch_content_range(self, store, payload):
        store.upload("data.bin", "application/octet-stream", io.BytesIO(payload))

        record, stream = store.fetch_content("data.bin", offset=10, limit=5)
        assert record.filename == "data.bin"
        assert b"".join(stream) == payload[10:15]

    def test_list_files_only_complete_in_order(self, store, file_repo):
        store.upload("one.txt", "text/plain", io.BytesIO(b"1"))
        file_repo.create("pending.txt", "text/plain", 8)
        store.upload("two.txt", "text/plain", io.BytesIO(b"2"))

        assert [r.filename for r in store.list_files()] == ["one.txt", "two.txt"]

    def test_example_scenario(self, tmp_path):
        store = Store.open(tmp_path / "files.db", chunk_size=255000)
        data = bytes(i % 251 for i in range(600000))

        store.upload("cat.png", "image/png", io.BytesIO(data))

        record = store.fetch_metadata("cat.png")
        assert record.filename == "cat.png"
        assert record.content_type == "image/png"
        assert record.length == 600000
        assert record.status == FileStatus.COMPLETE
        assert record.chunk_count == 3

        _, stream = store.fetch_content("cat.png")
        buffers = list(stream)
        assert [len(b) for b in buffers] == [255000, 255000, 90000]
        assert b"".join(buffers) == data


class TestDelete:
    """Test tombstoning and chunk removal."""

    def test_delete_hides_file_and_removes_chunks(self, store, chunk_repo, file_repo):
        record = store.upload("a.txt", "text/plain", io.BytesIO(b"hello world"))

        deleted = store.delete(record.file_id)

        assert deleted.status == FileStatus.TOMBSTONED
        assert chunk_repo.count_chunks(record.file_id) == 0
        assert file_repo.find_by_id(record.file_id).status == FileStatus.TOMBSTONED
        with pytest.raises(NotFoundError):
            store.fetch_metadata(record.file_id)
        with pytest.raises(NotFoundError):
            store.fetch_content("a.txt")

    def test_second_delete_is_not_found(self, store):
        record = store.upload("a.txt", "text/plain", io.BytesIO(b"hello"))
        store.delete(record.file_id)

        with pytest.raises(NotFoundError):
            store.delete(record.file_id)

    def test_delete_unknown_is_not_found(self, store):
        with pytest.raises(NotFoundError):
            store.delete("missing")

    def test_delete_uploading_is_not_found(self, store, file_repo):
        record = file_repo.create("pending.txt", "text/plain", 8)

        with pytest.raises(NotFoundError):
            store.delete(record.file_id)
        assert file_repo.find_by_id(record.file_id).status == FileStatus.UPLOADING

    def test_chunk_cleanup_failure_keeps_tombstone(self, store, chunk_repo, monkeypatch):
        record = store.upload("a.txt", "text/plain", io.BytesIO(b"hello world"))

        def reject(file_id):
            raise StorageIOError("database is locked")

        monkeypatch.setattr(store.chunk_repo, "delete_chunks", reject)
        store.delete(record.file_id)
        monkeypatch.undo()

        with pytest.raises(NotFoundError):
            store.fetch_metadata(record.file_id)
        assert chunk_repo.count_chunks(record.file_id) == 2
        assert store.sweep() == 2

    def test_deleted_name_is_reusable(self, store):
        first = store.upload("a.txt", "text/plain", io.BytesIO(b"first"))
        store.delete(first.file_id)

        second = store.upload("a.txt", "text/plain", io.BytesIO(b"second"))
        assert second.filename == "a.txt"
        assert store.fetch_metadata("a.txt").file_id == second.file_id

    def test_finalize_after_terminal_state_is_rejected(self, store, file_repo):
        record = store.upload("a.txt", "text/plain", io.BytesIO(b"x"))

        with pytest.raises(InvalidStateError):
            file_repo.finalize(record.file_id, 1)
