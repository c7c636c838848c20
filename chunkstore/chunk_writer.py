"""Splits an incoming byte stream into fixed-size chunks and persists them in order."""

from typing import BinaryIO, Iterable, Iterator, Union

from common.constants import UPLOAD_READ_SIZE_BYTES
from common.logging_config import get_logger
from chunkstore.checksum import PayloadDigest, compute_checksum
from chunkstore.repositories.chunk_repository import Chunk, ChunkRepository
from chunkstore.types import ChunkWriteResult

logger = get_logger(__name__)

ByteSource = Union[BinaryIO, Iterable[bytes]]


def iter_source(source: ByteSource, read_size: int = UPLOAD_READ_SIZE_BYTES) -> Iterator[bytes]:
    """
    Yield pieces of a binary file-like object or an iterable of bytes.

    Args:
        source: Object with a read(n) method, or an iterable of bytes pieces
        read_size: Bytes requested per read() call

    Yields:
        Non-empty bytes pieces of arbitrary size
    """
    if hasattr(source, "read"):
        while True:
            piece = source.read(read_size)
            if not piece:
                break
            yield piece
    else:
        for piece in source:
            if piece:
                yield bytes(piece)


class ChunkWriter:
    def __init__(self, chunk_repo: ChunkRepository):
        self.chunk_repo = chunk_repo

    def write(self, file_id: str, source: ByteSource, chunk_size: int) -> ChunkWriteResult:
        """
        Consume `source` and persist it as sequential chunks of `chunk_size` bytes.

        Each chunk is committed before more input is read. The last chunk may
        be shorter; an empty source writes no chunks. Chunks committed before
        a failure are left in place for the garbage collector.

        Args:
            file_id: Id of the owning file record
            source: Payload as a binary file-like object or iterable of bytes
            chunk_size: Bytes per chunk

        Returns:
            ChunkWriteResult with total length, chunk count and SHA-256 of the payload

        Raises:
            StorageIOError: If a chunk write is rejected
        """
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")

        buffer = bytearray()
        sequence_number = 0
        digest = PayloadDigest()

        for piece in iter_source(source, min(chunk_size, UPLOAD_READ_SIZE_BYTES)):
            buffer.extend(piece)
            digest.add(piece)

            while len(buffer) >= chunk_size:
                self._persist(file_id, sequence_number, bytes(buffer[:chunk_size]))
                del buffer[:chunk_size]
                sequence_number += 1

        if buffer:
            self._persist(file_id, sequence_number, bytes(buffer))
            sequence_number += 1

        logger.info(
            f"Wrote {sequence_number} chunks [file_id={file_id}] [bytes={digest.length}]"
        )

        return ChunkWriteResult(
            total_length=digest.length,
            chunk_count=sequence_number,
            checksum=digest.hexdigest,
        )

    def _persist(self, file_id: str, sequence_number: int, data: bytes) -> None:
        self.chunk_repo.put_chunk(
            Chunk(
                file_id=file_id,
                sequence_number=sequence_number,
                size=len(data),
                checksum=compute_checksum(data),
                data=data,
            )
        )
        logger.debug(f"Wrote chunk {sequence_number} [file_id={file_id}] [size={len(data)}]")
