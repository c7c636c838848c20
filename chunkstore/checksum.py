"""SHA-256 digests for chunks and whole payloads."""

import hashlib

from chunkstore.exceptions import CorruptStoreError
from chunkstore.repositories.chunk_repository import Chunk


def compute_checksum(data: bytes) -> str:
    """Hex SHA-256 of `data`, as stored in the chunks table."""
    return hashlib.sha256(data).hexdigest()


def verify_chunk(chunk: Chunk, expected_size: int) -> None:
    """
    Check a chunk read back from storage against its stored size and digest.

    Args:
        chunk: Chunk row as loaded by ChunkRepository
        expected_size: Size the owning record implies for this sequence number

    Raises:
        CorruptStoreError: If the size or the checksum does not match
    """
    if chunk.size != expected_size or len(chunk.data) != expected_size:
        raise CorruptStoreError(
            f"Chunk {chunk.sequence_number} of file {chunk.file_id} has "
            f"{len(chunk.data)} bytes, expected {expected_size}"
        )
    if compute_checksum(chunk.data) != chunk.checksum:
        raise CorruptStoreError(
            f"Checksum mismatch for chunk {chunk.sequence_number} of file {chunk.file_id}"
        )


class PayloadDigest:
    """
    Running length and SHA-256 of an upload, fed piece by piece as it streams in.
    """

    def __init__(self):
        self._hasher = hashlib.sha256()
        self.length = 0

    def add(self, piece: bytes) -> None:
        self._hasher.update(piece)
        self.length += len(piece)

    @property
    def hexdigest(self) -> str:
        return self._hasher.hexdigest()
