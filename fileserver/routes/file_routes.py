"""File operation API routes."""

from typing import List, Optional

from fastapi import APIRouter, Depends, File, Header, UploadFile, status
from fastapi.responses import JSONResponse, RedirectResponse, StreamingResponse

from common.logging_config import get_logger
from chunkstore.exceptions import NotAnImageError
from chunkstore.store import Store
from fileserver.schemas.common import ErrorResponse
from fileserver.schemas.files import FileRecordResponse, ListingEntry, ListingResponse
from fileserver.service_locator import get_store
from fileserver.utils import RangeNotSatisfiableError, is_image, parse_range_header

logger = get_logger(__name__)

router = APIRouter(tags=["Files"])


@router.get("/", response_model=ListingResponse)
def index(store: Store = Depends(get_store)):
    """
    List complete files with an isImage flag for each.
    """
    files = [ListingEntry.from_record(record) for record in store.list_files()]
    return ListingResponse(files=files)


@router.post("/upload")
def upload_file(
    file: UploadFile = File(...),
    store: Store = Depends(get_store)
):
    """
    Upload a file and redirect to the listing.

    Parameters:
        - file: File to upload (multipart/form-data field 'file')

    Raises:
        - 500: Storage rejected a chunk or metadata write
    """
    record = store.upload(
        filename=file.filename or "upload",
        content_type=file.content_type or "application/octet-stream",
        source=file.file,
    )
    logger.info(f"Stored upload [file_id={record.file_id}] [filename={record.filename}]")
    return RedirectResponse(url="/", status_code=status.HTTP_303_SEE_OTHER)


@router.get("/files", response_model=List[FileRecordResponse])
def list_files(store: Store = Depends(get_store)):
    """
    Display all files as JSON.

    Raises:
        - 404: No files exist
    """
    records = store.list_files()
    if not records:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content=ErrorResponse(err="No files exist", code="NO_FILES").model_dump(exclude_none=True)
        )
    return [FileRecordResponse.from_record(record) for record in records]


@router.get("/files/{filename}", response_model=FileRecordResponse)
def get_file(filename: str, store: Store = Depends(get_store)):
    """
    Display a single file's metadata as JSON.

    Raises:
        - 404: File not found
    """
    return FileRecordResponse.from_record(store.fetch_metadata(filename))


@router.get("/image/{filename}")
def stream_image(
    filename: str,
    range_header: Optional[str] = Header(None, alias="Range"),
    store: Store = Depends(get_store)
):
    """
    Stream an image file, honouring a single-range Range header.

    Raises:
        - 404: File not found or not an image
        - 416: Range outside the file
    """
    record = store.fetch_metadata(filename)
    if not is_image(record.content_type):
        raise NotAnImageError(f"File {filename} has content type {record.content_type}")

    try:
        byte_range = parse_range_header(range_header, record.length)
    except RangeNotSatisfiableError:
        return JSONResponse(
            status_code=status.HTTP_416_REQUESTED_RANGE_NOT_SATISFIABLE,
            content=ErrorResponse(err="Range not satisfiable", code="RANGE_NOT_SATISFIABLE").model_dump(exclude_none=True),
            headers={"Content-Range": f"bytes */{record.length}"}
        )

    if byte_range is None:
        _, stream = store.fetch_content(record.file_id)
        return StreamingResponse(
            stream,
            media_type=record.content_type,
            headers={
                "Content-Length": str(record.length),
                "Accept-Ranges": "bytes",
            }
        )

    start, end = byte_range
    _, stream = store.fetch_content(record.file_id, offset=start, limit=end - start)
    return StreamingResponse(
        stream,
        status_code=status.HTTP_206_PARTIAL_CONTENT,
        media_type=record.content_type,
        headers={
            "Content-Length": str(end - start),
            "Content-Range": f"bytes {start}-{end - 1}/{record.length}",
            "Accept-Ranges": "bytes",
        }
    )


@router.delete("/files/{file_id}")
def delete_file(file_id: str, store: Store = Depends(get_store)):
    """
    Delete a file and redirect to the listing.

    Raises:
        - 404: File not found
    """
    store.delete(file_id)
    return RedirectResponse(url="/", status_code=status.HTTP_303_SEE_OTHER)
