"""Database schema and connection management for SQLite."""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Union

from common.constants import SQLITE_BUSY_TIMEOUT_SECONDS
from common.logging_config import get_logger

logger = get_logger(__name__)


class Database:
    """
    Handle on an initialized SQLite database file.

    The schema is created when the handle is constructed, so every
    Database instance is ready for use.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._create_schema()

    def _create_schema(self) -> None:
        with self.connection() as conn:
            cursor = conn.cursor()

            cursor.execute("PRAGMA journal_mode=WAL")

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS files (
                    file_id TEXT PRIMARY KEY,
                    filename TEXT NOT NULL,
                    content_type TEXT NOT NULL,
                    length INTEGER,
                    chunk_size INTEGER NOT NULL,
                    status TEXT NOT NULL,
                    checksum TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS chunks (
                    file_id TEXT NOT NULL,
                    sequence_number INTEGER NOT NULL,
                    size INTEGER NOT NULL,
                    checksum TEXT NOT NULL,
                    data BLOB NOT NULL,
                    PRIMARY KEY(file_id, sequence_number)
                )
            """)

            cursor.execute("""
                CREATE UNIQUE INDEX IF NOT EXISTS idx_files_live_filename
                ON files(filename) WHERE status != 'tombstoned'
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_files_status ON files(status)
            """)

            conn.commit()

        logger.info(f"Database initialized [path={self.path}]")

    @contextmanager
    def connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Context manager for database connections.
        """
        conn = sqlite3.connect(str(self.path), timeout=SQLITE_BUSY_TIMEOUT_SECONDS)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()


def open_database(path: Union[str, Path]) -> Database:
    """
    Create tables if they don't exist and return a ready database handle.
    """
    return Database(path)
