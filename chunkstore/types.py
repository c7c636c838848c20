"""Chunk store data type definitions (FileRecord, FileStatus, ChunkWriteResult)."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class FileStatus(str, Enum):
    UPLOADING = "uploading"
    COMPLETE = "complete"
    FAILED = "failed"
    TOMBSTONED = "tombstoned"


@dataclass(frozen=True)
class FileRecord:
    """
    Metadata for one logical file.
    """
    file_id: str
    filename: str
    content_type: str
    length: Optional[int]
    chunk_size: int
    status: FileStatus
    created_at: datetime
    updated_at: datetime
    checksum: Optional[str] = None

    @property
    def chunk_count(self) -> int:
        """Number of chunks a complete file of this length occupies."""
        if not self.length:
            return 0
        return -(-self.length // self.chunk_size)


@dataclass(frozen=True)
class ChunkWriteResult:
    total_length: int
    chunk_count: int
    checksum: str
