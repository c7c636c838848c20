"""Configuration settings for the file server."""

import os
from common.constants import DEFAULT_CHUNK_SIZE_BYTES


DATABASE_PATH = os.environ.get("FILESTORE_DATABASE_PATH", "./data/filestore.db")

SERVER_HOST = os.environ.get("FILESTORE_HOST", "0.0.0.0")

SERVER_PORT = int(os.environ.get("FILESTORE_PORT", "5000"))

CHUNK_SIZE_BYTES = DEFAULT_CHUNK_SIZE_BYTES

GC_INTERVAL_SECONDS = float(os.environ.get("FILESTORE_GC_INTERVAL_SECONDS", "600"))

GC_GRACE_PERIOD_SECONDS = float(os.environ.get("FILESTORE_GC_GRACE_PERIOD_SECONDS", "3600"))
