"""Repository layer for data access."""

from chunkstore.repositories.file_repository import FileRepository
from chunkstore.repositories.chunk_repository import Chunk, ChunkRepository

__all__ = [
    "FileRepository",
    "Chunk",
    "ChunkRepository",
]
