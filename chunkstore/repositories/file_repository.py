"""File metadata index: one record per logical file, keyed by id and by filename."""

import secrets
import sqlite3
from datetime import datetime, timezone
from pathlib import PurePosixPath
from typing import Iterable, List, Optional

from common.constants import RANDOM_FILENAME_BYTES
from common.logging_config import get_logger
from chunkstore.database import Database
from chunkstore.exceptions import InvalidStateError, NotFoundError, StorageIOError
from chunkstore.types import FileRecord, FileStatus
from chunkstore.utils import generate_uuid

logger = get_logger(__name__)

MAX_CREATE_ATTEMPTS = 5

_FILE_COLUMNS = (
    "file_id, filename, content_type, length, chunk_size, status, checksum, created_at, updated_at"
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _timestamp(value: datetime) -> str:
    # Fixed-width so stored timestamps compare correctly as strings
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def generate_random_filename(original_name: str) -> str:
    """
    Build a random hex filename that keeps the original extension.

    Args:
        original_name: Filename requested by the client

    Returns:
        Filename like '3f9a...e1.png'
    """
    return secrets.token_hex(RANDOM_FILENAME_BYTES) + PurePosixPath(original_name).suffix


def _row_to_record(row: sqlite3.Row) -> FileRecord:
    return FileRecord(
        file_id=row["file_id"],
        filename=row["filename"],
        content_type=row["content_type"],
        length=row["length"],
        chunk_size=row["chunk_size"],
        status=FileStatus(row["status"]),
        checksum=row["checksum"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


class FileRepository:
    def __init__(self, db: Database):
        self.db = db

    def create(
        self,
        filename: str,
        content_type: str,
        chunk_size: int,
    ) -> FileRecord:
        """
        Create a record in the 'uploading' state.

        If the requested filename is held by a record that is not tombstoned,
        a random hex filename with the same extension is used instead, so an
        upload never fails because of a name collision.

        Raises:
            StorageIOError: If the database rejects the insert
        """
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")

        file_id = generate_uuid()

        now = _timestamp(_utcnow())
        name = filename

        for _ in range(MAX_CREATE_ATTEMPTS):
            try:
                with self.db.connection() as conn:
                    conn.execute(
                        f"""
                        INSERT INTO files ({_FILE_COLUMNS})
                        VALUES (?, ?, ?, NULL, ?, ?, NULL, ?, ?)
                        """,
                        (file_id, name, content_type, chunk_size, FileStatus.UPLOADING.value, now, now)
                    )
                    conn.commit()
            except sqlite3.IntegrityError as e:
                if "files.filename" not in str(e):
                    logger.error(f"Failed to create file record [file_id={file_id}]: {e}", exc_info=True)
                    raise StorageIOError(f"Could not create file record {file_id}: {e}") from e
                renamed = generate_random_filename(filename)
                logger.info(f"Filename collision, renaming [requested={filename}] [renamed={renamed}]")
                name = renamed
                continue
            except sqlite3.Error as e:
                logger.error(f"Failed to create file record [file_id={file_id}]: {e}", exc_info=True)
                raise StorageIOError(f"Could not create file record {file_id}: {e}") from e

            logger.debug(f"Created file record [file_id={file_id}] [filename={name}]")
            return self.find_by_id(file_id)

        raise StorageIOError(
            f"Could not find a free filename for {filename} after {MAX_CREATE_ATTEMPTS} attempts"
        )

    def finalize(self, file_id: str, length: int, checksum: Optional[str] = None) -> FileRecord:
        """
        Transition a record from 'uploading' to 'complete' and set its length.
        """
        self._transition(
            file_id,
            FileStatus.UPLOADING,
            FileStatus.COMPLETE,
            length=length,
            checksum=checksum,
        )
        return self.find_by_id(file_id)

    def mark_failed(self, file_id: str) -> FileRecord:
        """
        Transition a record from 'uploading' to 'failed'.
        """
        self._transition(file_id, FileStatus.UPLOADING, FileStatus.FAILED)
        return self.find_by_id(file_id)

    def tombstone(self, file_id: str) -> FileRecord:
        """
        Transition a record from 'complete' to 'tombstoned'.

        Raises:
            NotFoundError: If the record does not exist or is already tombstoned
            InvalidStateError: If the record is still uploading or has failed
        """
        self._transition(file_id, FileStatus.COMPLETE, FileStatus.TOMBSTONED)
        return self.find_by_id(file_id)

    def _transition(
        self,
        file_id: str,
        expected: FileStatus,
        target: FileStatus,
        length: Optional[int] = None,
        checksum: Optional[str] = None,
    ) -> None:
        """
        Conditional status update; only succeeds while the record is in `expected`.
        """
        try:
            with self.db.connection() as conn:
                cursor = conn.execute(
                    """
                    UPDATE files
                    SET status = ?,
                        length = COALESCE(?, length),
                        checksum = COALESCE(?, checksum),
                        updated_at = ?
                    WHERE file_id = ? AND status = ?
                    """,
                    (target.value, length, checksum, _timestamp(_utcnow()), file_id, expected.value)
                )
                conn.commit()
                updated = cursor.rowcount
        except sqlite3.Error as e:
            logger.error(
                f"Failed to update file status [file_id={file_id}] [target={target.value}]: {e}",
                exc_info=True
            )
            raise StorageIOError(f"Could not update file {file_id}: {e}") from e

        if updated == 1:
            logger.info(f"File status changed [file_id={file_id}] [{expected.value} -> {target.value}]")
            return

        current = self.find_by_id(file_id)
        if current.status == FileStatus.TOMBSTONED and target == FileStatus.TOMBSTONED:
            raise NotFoundError(f"File {file_id} not found")
        raise InvalidStateError(
            f"File {file_id} is {current.status.value}, expected {expected.value}"
        )

    def find_by_id(self, file_id: str) -> FileRecord:
        row = self._fetch_one(
            f"SELECT {_FILE_COLUMNS} FROM files WHERE file_id = ?",
            (file_id,)
        )
        if row is None:
            raise NotFoundError(f"File {file_id} not found")
        return _row_to_record(row)

    def find_by_filename(self, filename: str) -> FileRecord:
        row = self._fetch_one(
            f"SELECT {_FILE_COLUMNS} FROM files WHERE filename = ? AND status != ?",
            (filename, FileStatus.TOMBSTONED.value)
        )
        if row is None:
            raise NotFoundError(f"File {filename} not found")
        return _row_to_record(row)

    def list_all(self, statuses: Optional[Iterable[FileStatus]] = None) -> List[FileRecord]:
        """
        List records in insertion order.

        Args:
            statuses: Statuses to include. Defaults to every status except 'tombstoned'.
        """
        if statuses is None:
            statuses = [s for s in FileStatus if s != FileStatus.TOMBSTONED]
        values = [FileStatus(s).value for s in statuses]
        if not values:
            return []

        placeholders = ",".join("?" for _ in values)
        rows = self._fetch_all(
            f"SELECT {_FILE_COLUMNS} FROM files WHERE status IN ({placeholders}) ORDER BY rowid",
            values
        )
        return [_row_to_record(row) for row in rows]

    def find_stale_uploads(self, older_than: datetime) -> List[FileRecord]:
        """
        Records still 'uploading' that were created before `older_than`.
        """
        rows = self._fetch_all(
            f"SELECT {_FILE_COLUMNS} FROM files WHERE status = ? AND created_at < ? ORDER BY rowid",
            (FileStatus.UPLOADING.value, _timestamp(older_than))
        )
        return [_row_to_record(row) for row in rows]

    def _fetch_one(self, query: str, params) -> Optional[sqlite3.Row]:
        try:
            with self.db.connection() as conn:
                return conn.execute(query, params).fetchone()
        except sqlite3.Error as e:
            logger.error(f"File index query failed: {e}", exc_info=True)
            raise StorageIOError(f"File index query failed: {e}") from e

    def _fetch_all(self, query: str, params) -> List[sqlite3.Row]:
        try:
            with self.db.connection() as conn:
                return conn.execute(query, params).fetchall()
        except sqlite3.Error as e:
            logger.error(f"File index query failed: {e}", exc_info=True)
            raise StorageIOError(f"File index query failed: {e}") from e
