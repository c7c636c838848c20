"""Pydantic schemas for file endpoints."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from chunkstore.types import FileRecord
from fileserver.utils import is_image


class FileRecordResponse(BaseModel):
    """Response model for file metadata."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    filename: str
    content_type: str
    length: int
    chunk_size: int
    status: str
    created_at: datetime
    checksum: Optional[str] = None

    @classmethod
    def from_record(cls, record: FileRecord) -> "FileRecordResponse":
        return cls(
            id=record.file_id,
            filename=record.filename,
            content_type=record.content_type,
            length=record.length,
            chunk_size=record.chunk_size,
            status=record.status.value,
            created_at=record.created_at,
            checksum=record.checksum,
        )


class ListingEntry(FileRecordResponse):
    """File metadata annotated for the index page."""
    is_image: bool

    @classmethod
    def from_record(cls, record: FileRecord) -> "ListingEntry":
        base = FileRecordResponse.from_record(record)
        return cls(**base.model_dump(), is_image=is_image(record.content_type))


class ListingResponse(BaseModel):
    """Response model for the index page."""
    files: List[ListingEntry]


class SweepResponse(BaseModel):
    """Response model for an on-demand GC sweep."""
    reclaimed: int
