"""Entry point for the file server."""

import time
import uuid
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from common.logging_config import setup_logging
from chunkstore.exceptions import (
    StoreException,
    NotFoundError,
    InvalidStateError,
    StorageIOError,
    CorruptStoreError,
    NotAnImageError,
    StoreNotReadyError
)
from chunkstore.store import Store
from fileserver.cleanup_task import ChunkGCTask
from fileserver.config import (
    DATABASE_PATH,
    SERVER_HOST,
    SERVER_PORT,
    CHUNK_SIZE_BYTES,
    GC_INTERVAL_SECONDS,
    GC_GRACE_PERIOD_SECONDS
)
from fileserver.routes.file_routes import router as file_router
from fileserver.routes.internal_routes import router as internal_router
from fileserver.schemas.common import ErrorResponse
from fileserver.service_locator import set_store

logger = setup_logging('fileserver')
setup_logging('chunkstore')

app = FastAPI(
    title="Chunked File Store",
    description="File hosting server backed by a chunked binary store",
    version="1.0.0"
)

app.include_router(file_router)
app.include_router(internal_router)

gc_task: Optional[ChunkGCTask] = None


def _error_response(status_code: int, err: str, code: str, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(err=err, code=code, detail=str(exc)).model_dump(exclude_none=True)
    )


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Middleware to log all HTTP requests and responses.

    HTML forms cannot send DELETE, so POST requests carrying `_method=DELETE`
    in the query string are routed as DELETE.
    """
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id

    if request.method == "POST" and request.query_params.get("_method", "").upper() == "DELETE":
        request.scope["method"] = "DELETE"

    start_time = time.time()

    logger.info(
        f"Request started: {request.method} {request.url.path} [request_id={request_id}]"
    )

    response = await call_next(request)

    duration = time.time() - start_time

    logger.info(
        f"Request completed: {request.method} {request.url.path} "
        f"status={response.status_code} duration={duration:.3f}s [request_id={request_id}]"
    )

    response.headers["X-Request-ID"] = request_id

    return response


@app.on_event("startup")
async def startup_event():
    """
    Open the store and start the background GC task.
    """
    global gc_task

    logger.info("File server starting up...")

    store = Store.open(
        DATABASE_PATH,
        chunk_size=CHUNK_SIZE_BYTES,
        gc_grace_period_seconds=GC_GRACE_PERIOD_SECONDS
    )
    set_store(store)
    logger.info(f"Store opened [path={DATABASE_PATH}] [chunk_size={CHUNK_SIZE_BYTES}]")

    if GC_INTERVAL_SECONDS > 0:
        gc_task = ChunkGCTask(store, GC_INTERVAL_SECONDS)
        await gc_task.start()


@app.on_event("shutdown")
async def shutdown_event():
    """
    Stop background tasks and release the store.
    """
    global gc_task

    logger.info("File server shutting down...")

    if gc_task is not None:
        await gc_task.stop()
        gc_task = None

    set_store(None)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(
        f"File not found error: {exc} [request_id={request_id}] path={request.url.path}"
    )
    return _error_response(status.HTTP_404_NOT_FOUND, "No file exist", "FILE_NOT_FOUND", exc)


@app.exception_handler(NotAnImageError)
async def not_an_image_handler(request: Request, exc: NotAnImageError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(
        f"Not an image error: {exc} [request_id={request_id}] path={request.url.path}"
    )
    return _error_response(status.HTTP_404_NOT_FOUND, "Not an image", "NOT_AN_IMAGE", exc)


@app.exception_handler(InvalidStateError)
async def invalid_state_handler(request: Request, exc: InvalidStateError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(
        f"Invalid state error: {exc} [request_id={request_id}] path={request.url.path}"
    )
    return _error_response(status.HTTP_409_CONFLICT, str(exc), "INVALID_STATE", exc)


@app.exception_handler(StorageIOError)
async def storage_io_handler(request: Request, exc: StorageIOError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(
        f"Storage I/O error: {exc} [request_id={request_id}] path={request.url.path}",
        exc_info=True
    )
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Storage failure", "STORAGE_IO_ERROR", exc)


@app.exception_handler(CorruptStoreError)
async def corrupt_store_handler(request: Request, exc: CorruptStoreError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(
        f"Corrupt store error: {exc} [request_id={request_id}] path={request.url.path}",
        exc_info=True
    )
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Corrupt file data", "CORRUPT_STORE", exc)


@app.exception_handler(StoreNotReadyError)
async def store_not_ready_handler(request: Request, exc: StoreNotReadyError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(
        f"Store not ready: {exc} [request_id={request_id}] path={request.url.path}"
    )
    return _error_response(status.HTTP_503_SERVICE_UNAVAILABLE, "Store not ready", "STORE_NOT_READY", exc)


@app.exception_handler(StoreException)
async def store_exception_handler(request: Request, exc: StoreException):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(
        f"Store exception: {exc} [request_id={request_id}] path={request.url.path}",
        exc_info=True
    )
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal error", "INTERNAL_ERROR", exc)


@app.get("/health")
async def health_check():
    """
    Health check endpoint.
    Returns 200 if service is alive.
    """
    return {"status": "healthy", "service": "fileserver"}


def main() -> None:
    """
    Start the FastAPI server with uvicorn.
    """
    uvicorn.run(
        "fileserver.main:app",
        host=SERVER_HOST,
        port=SERVER_PORT
    )


if __name__ == "__main__":
    main()
