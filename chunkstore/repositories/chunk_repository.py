"""Chunk repository: one row per (file_id, sequence_number)."""

import sqlite3
from dataclasses import dataclass
from typing import Iterable, List, Optional

from common.logging_config import get_logger
from chunkstore.database import Database
from chunkstore.exceptions import StorageIOError

logger = get_logger(__name__)


@dataclass
class Chunk:
    file_id: str
    sequence_number: int
    size: int
    checksum: str
    data: bytes


class ChunkRepository:
    def __init__(self, db: Database):
        self.db = db

    def put_chunk(self, chunk: Chunk) -> None:
        """
        Persist a single chunk and commit it.

        Raises:
            StorageIOError: If the write is rejected, including a key collision
        """
        try:
            with self.db.connection() as conn:
                conn.execute(
                    """
                    INSERT INTO chunks (file_id, sequence_number, size, checksum, data)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (chunk.file_id, chunk.sequence_number, chunk.size, chunk.checksum, chunk.data)
                )
                conn.commit()
        except sqlite3.Error as e:
            logger.error(
                f"Failed to write chunk [file_id={chunk.file_id}] [seq={chunk.sequence_number}]: {e}",
                exc_info=True
            )
            raise StorageIOError(
                f"Could not write chunk {chunk.sequence_number} of file {chunk.file_id}: {e}"
            ) from e

    def get_chunk(self, file_id: str, sequence_number: int) -> Optional[Chunk]:
        try:
            with self.db.connection() as conn:
                row = conn.execute(
                    """
                    SELECT file_id, sequence_number, size, checksum, data
                    FROM chunks
                    WHERE file_id = ? AND sequence_number = ?
                    """,
                    (file_id, sequence_number)
                ).fetchone()
        except sqlite3.Error as e:
            logger.error(f"Failed to read chunk [file_id={file_id}] [seq={sequence_number}]: {e}", exc_info=True)
            raise StorageIOError(f"Could not read chunk {sequence_number} of file {file_id}: {e}") from e

        if row is None:
            return None

        return Chunk(
            file_id=row["file_id"],
            sequence_number=row["sequence_number"],
            size=row["size"],
            checksum=row["checksum"],
            data=bytes(row["data"]),
        )

    def get_sequence_numbers(self, file_id: str) -> List[int]:
        try:
            with self.db.connection() as conn:
                rows = conn.execute(
                    "SELECT sequence_number FROM chunks WHERE file_id = ? ORDER BY sequence_number",
                    (file_id,)
                ).fetchall()
        except sqlite3.Error as e:
            raise StorageIOError(f"Could not list chunks of file {file_id}: {e}") from e
        return [row["sequence_number"] for row in rows]

    def delete_chunks(self, file_id: str) -> int:
        """
        Delete every chunk of a file.

        Returns:
            Number of chunks deleted
        """
        logger.debug(f"Deleting chunks [file_id={file_id}]")
        try:
            with self.db.connection() as conn:
                cursor = conn.execute("DELETE FROM chunks WHERE file_id = ?", (file_id,))
                conn.commit()
                deleted = cursor.rowcount
        except sqlite3.Error as e:
            logger.error(f"Failed to delete chunks [file_id={file_id}]: {e}", exc_info=True)
            raise StorageIOError(f"Could not delete chunks of file {file_id}: {e}") from e

        logger.info(f"Deleted {deleted} chunks [file_id={file_id}]")
        return deleted

    def find_orphaned_file_ids(self, dead_statuses: Iterable[str]) -> List[str]:
        """
        File ids that own chunks but whose record is missing or in one of `dead_statuses`.
        """
        statuses = list(dead_statuses)
        placeholders = ",".join("?" for _ in statuses) or "NULL"
        try:
            with self.db.connection() as conn:
                rows = conn.execute(
                    f"""
                    SELECT DISTINCT c.file_id
                    FROM chunks c
                    LEFT JOIN files f ON f.file_id = c.file_id
                    WHERE f.file_id IS NULL OR f.status IN ({placeholders})
                    """,
                    statuses
                ).fetchall()
        except sqlite3.Error as e:
            logger.error(f"Failed to scan for orphaned chunks: {e}", exc_info=True)
            raise StorageIOError(f"Could not scan for orphaned chunks: {e}") from e
        return [row["file_id"] for row in rows]

    def count_chunks(self, file_id: Optional[str] = None) -> int:
        try:
            with self.db.connection() as conn:
                if file_id is None:
                    row = conn.execute("SELECT COUNT(*) FROM chunks").fetchone()
                else:
                    row = conn.execute("SELECT COUNT(*) FROM chunks WHERE file_id = ?", (file_id,)).fetchone()
        except sqlite3.Error as e:
            raise StorageIOError(f"Could not count chunks: {e}") from e
        return row[0]
