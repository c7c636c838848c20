"""Project-wide constants (chunk sizes, read sizes, content types)."""

import os

DEFAULT_CHUNK_SIZE_BYTES: int = int(os.environ.get("FILESTORE_CHUNK_SIZE", str(255 * 1024)))  # 255 KiB

UPLOAD_READ_SIZE_BYTES: int = 64 * 1024

SQLITE_BUSY_TIMEOUT_SECONDS: float = 30.0

RANDOM_FILENAME_BYTES: int = 16

IMAGE_CONTENT_TYPES = frozenset({"image/jpeg", "image/png"})
