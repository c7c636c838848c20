"""Reassembles a stored file as a lazy, ordered sequence of byte buffers."""

from typing import Iterator, Optional

from common.logging_config import get_logger
from chunkstore.checksum import verify_chunk
from chunkstore.exceptions import CorruptStoreError, NotFoundError
from chunkstore.repositories.chunk_repository import ChunkRepository
from chunkstore.repositories.file_repository import FileRepository
from chunkstore.types import FileRecord, FileStatus

logger = get_logger(__name__)


class ChunkReader:
    def __init__(self, file_repo: FileRepository, chunk_repo: ChunkRepository):
        self.file_repo = file_repo
        self.chunk_repo = chunk_repo

    def read(self, file_id: str, offset: int = 0, limit: Optional[int] = None) -> Iterator[bytes]:
        """
        Open a lazy byte stream over a complete file.

        The record is resolved immediately, so a missing file fails here rather
        than on first iteration. Chunks are fetched one at a time as the
        returned iterator is consumed; abandoning it part-way has no side effects.

        Args:
            file_id: Id of the file record
            offset: First byte to return
            limit: Maximum number of bytes to return (default: to end of file)

        Returns:
            Iterator of byte buffers in file order, trimmed to the requested range

        Raises:
            NotFoundError: If the record is absent or not complete
            ValueError: If offset or limit is negative
        """
        if offset < 0:
            raise ValueError(f"offset must be non-negative, got {offset}")
        if limit is not None and limit < 0:
            raise ValueError(f"limit must be non-negative, got {limit}")

        record = self.file_repo.find_by_id(file_id)
        if record.status != FileStatus.COMPLETE:
            raise NotFoundError(f"File {file_id} not found")

        end = record.length if limit is None else min(record.length, offset + limit)
        return self._stream(record, offset, end)

    def _stream(self, record: FileRecord, start: int, end: int) -> Iterator[bytes]:
        if start >= end:
            return

        chunk_size = record.chunk_size
        first_seq = start // chunk_size
        last_seq = (end - 1) // chunk_size

        for seq in range(first_seq, last_seq + 1):
            chunk = self.chunk_repo.get_chunk(record.file_id, seq)
            if chunk is None:
                self._raise_missing(record, seq)

            chunk_start = seq * chunk_size
            expected_size = min(chunk_size, record.length - chunk_start)
            verify_chunk(chunk, expected_size)

            lo = max(start - chunk_start, 0)
            hi = min(end - chunk_start, expected_size)
            if lo == 0 and hi == expected_size:
                yield chunk.data
            else:
                yield chunk.data[lo:hi]

    def _raise_missing(self, record: FileRecord, seq: int) -> None:
        # A delete that raced this read shows up as a missing chunk
        try:
            current = self.file_repo.find_by_id(record.file_id)
        except NotFoundError:
            raise NotFoundError(f"File {record.file_id} was removed during read") from None
        if current.status != FileStatus.COMPLETE:
            raise NotFoundError(f"File {record.file_id} was deleted during read")

        logger.error(f"Missing chunk {seq} [file_id={record.file_id}] [length={record.length}]")
        raise CorruptStoreError(f"Chunk {seq} of file {record.file_id} is missing")
