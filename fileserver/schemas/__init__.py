"""Pydantic schemas for API requests and responses."""

from fileserver.schemas.files import (
    FileRecordResponse,
    ListingEntry,
    ListingResponse,
    SweepResponse
)
from fileserver.schemas.common import ErrorResponse

__all__ = [
    "FileRecordResponse",
    "ListingEntry",
    "ListingResponse",
    "SweepResponse",
    "ErrorResponse"
]
