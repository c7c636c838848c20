"""Store coordinator: ties file records and chunk data together."""

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Tuple, Union

from common.constants import DEFAULT_CHUNK_SIZE_BYTES
from common.logging_config import get_logger
from chunkstore.chunk_reader import ChunkReader
from chunkstore.chunk_writer import ByteSource, ChunkWriter
from chunkstore.database import Database, open_database
from chunkstore.exceptions import InvalidStateError, NotFoundError, StoreException
from chunkstore.garbage_collector import DEFAULT_GRACE_PERIOD_SECONDS, GarbageCollector
from chunkstore.repositories.chunk_repository import ChunkRepository
from chunkstore.repositories.file_repository import FileRepository
from chunkstore.types import FileRecord, FileStatus

logger = get_logger(__name__)


class Store:
    """
    Single entry point for uploading, reading and deleting files.

    Only 'complete' records are visible through fetch_metadata, fetch_content,
    list_files and delete.
    """

    def __init__(
        self,
        db: Database,
        chunk_size: int = DEFAULT_CHUNK_SIZE_BYTES,
        gc_grace_period_seconds: float = DEFAULT_GRACE_PERIOD_SECONDS,
    ):
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")

        self.db = db
        self.chunk_size = chunk_size
        self.file_repo = FileRepository(db)
        self.chunk_repo = ChunkRepository(db)
        self.writer = ChunkWriter(self.chunk_repo)
        self.reader = ChunkReader(self.file_repo, self.chunk_repo)
        self.gc = GarbageCollector(self.file_repo, self.chunk_repo, gc_grace_period_seconds)

    @classmethod
    def open(
        cls,
        database_path: Union[str, Path],
        chunk_size: int = DEFAULT_CHUNK_SIZE_BYTES,
        gc_grace_period_seconds: float = DEFAULT_GRACE_PERIOD_SECONDS,
    ) -> "Store":
        """
        Open (creating if needed) the database at `database_path` and return a ready store.
        """
        return cls(open_database(database_path), chunk_size, gc_grace_period_seconds)

    def upload(
        self,
        filename: str,
        content_type: str,
        source: ByteSource,
        chunk_size: Optional[int] = None,
    ) -> FileRecord:
        """
        Store a payload under `filename`.

        The record is created as 'uploading', the payload is written chunk by
        chunk, and the record is finalized as 'complete'. Any failure,
        including interruption, leaves the record 'failed' and re-raises.

        Args:
            filename: Requested filename; replaced by a random name on collision
            content_type: MIME type, stored as given
            source: Payload as a binary file-like object or iterable of bytes
            chunk_size: Override of the store's default chunk size

        Returns:
            The complete FileRecord

        Raises:
            StorageIOError: If the database rejects a write
        """
        record = self.file_repo.create(
            filename=filename,
            content_type=content_type,
            chunk_size=self.chunk_size if chunk_size is None else chunk_size,
        )
        logger.info(
            f"Upload started [file_id={record.file_id}] [filename={record.filename}] "
            f"[content_type={content_type}]"
        )

        with self._completion_guard(record.file_id):
            result = self.writer.write(record.file_id, source, record.chunk_size)
            record = self.file_repo.finalize(record.file_id, result.total_length, result.checksum)

        logger.info(
            f"Upload complete [file_id={record.file_id}] [bytes={record.length}] "
            f"[chunks={result.chunk_count}]"
        )
        return record

    @contextmanager
    def _completion_guard(self, file_id: str):
        """
        Mark the upload failed on any abnormal exit from the block.
        """
        try:
            yield
        except BaseException as e:
            logger.error(f"Upload failed [file_id={file_id}]: {e!r}")
            try:
                self.file_repo.mark_failed(file_id)
            except StoreException as mark_error:
                logger.error(f"Could not mark upload failed [file_id={file_id}]: {mark_error}")
            raise

    def fetch_metadata(self, id_or_filename: str) -> FileRecord:
        """
        Resolve a file by id, then by filename.

        Raises:
            NotFoundError: If nothing resolves or the record is not complete
        """
        try:
            record = self.file_repo.find_by_id(id_or_filename)
        except NotFoundError:
            record = self.file_repo.find_by_filename(id_or_filename)

        if record.status != FileStatus.COMPLETE:
            raise NotFoundError(f"File {id_or_filename} not found")
        return record

    def fetch_content(
        self,
        id_or_filename: str,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> Tuple[FileRecord, Iterator[bytes]]:
        record = self.fetch_metadata(id_or_filename)
        return record, self.reader.read(record.file_id, offset, limit)

    def list_files(self) -> List[FileRecord]:
        return self.file_repo.list_all([FileStatus.COMPLETE])

    def delete(self, file_id: str) -> FileRecord:
        """
        Tombstone a complete file, then delete its chunks.

        Chunk deletion is best-effort: if it fails the record stays
        tombstoned and the chunks are left for the garbage collector.

        Raises:
            NotFoundError: If the file does not exist or is not complete
        """
        try:
            record = self.file_repo.tombstone(file_id)
        except InvalidStateError:
            raise NotFoundError(f"File {file_id} not found") from None

        try:
            self.chunk_repo.delete_chunks(file_id)
        except StoreException as e:
            logger.warning(f"Chunk cleanup deferred to GC [file_id={file_id}]: {e}")

        logger.info(f"Deleted file [file_id={file_id}] [filename={record.filename}]")
        return record

    def sweep(self) -> int:
        return self.gc.sweep()
