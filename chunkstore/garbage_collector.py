"""
Chunk garbage collection.

Reclaims chunks left behind by failed uploads, deletes whose chunk cleanup
did not finish, and uploads that never reached a terminal state.
"""

from datetime import datetime, timedelta, timezone

from common.logging_config import get_logger
from chunkstore.exceptions import InvalidStateError
from chunkstore.repositories.chunk_repository import ChunkRepository
from chunkstore.repositories.file_repository import FileRepository
from chunkstore.types import FileStatus

logger = get_logger(__name__)

DEFAULT_GRACE_PERIOD_SECONDS = 3600

DEAD_STATUSES = (FileStatus.FAILED.value, FileStatus.TOMBSTONED.value)


class GarbageCollector:
    """
    Deletes orphaned chunks.

    A chunk is orphaned when its file record is failed, tombstoned, or
    missing. Uploads older than the grace period are first marked failed;
    chunks of younger uploads are never touched.
    """

    def __init__(
        self,
        file_repo: FileRepository,
        chunk_repo: ChunkRepository,
        grace_period_seconds: float = DEFAULT_GRACE_PERIOD_SECONDS,
    ):
        self.file_repo = file_repo
        self.chunk_repo = chunk_repo
        self.grace_period = timedelta(seconds=grace_period_seconds)

    def sweep(self) -> int:
        """
        Run one collection pass.

        Returns:
            Number of chunks reclaimed
        """
        self._expire_stale_uploads()

        orphaned_file_ids = self.chunk_repo.find_orphaned_file_ids(DEAD_STATUSES)
        if not orphaned_file_ids:
            logger.debug("No orphaned chunks found")
            return 0

        reclaimed = 0
        for file_id in orphaned_file_ids:
            reclaimed += self.chunk_repo.delete_chunks(file_id)

        logger.info(
            f"GC sweep reclaimed {reclaimed} chunks from {len(orphaned_file_ids)} files"
        )
        return reclaimed

    def _expire_stale_uploads(self) -> None:
        cutoff = datetime.now(timezone.utc) - self.grace_period
        for record in self.file_repo.find_stale_uploads(cutoff):
            try:
                self.file_repo.mark_failed(record.file_id)
                logger.warning(
                    f"Expired stale upload [file_id={record.file_id}] [created_at={record.created_at.isoformat()}]"
                )
            except InvalidStateError:
                # Finalized between the scan and the update
                logger.debug(f"Stale upload finished meanwhile [file_id={record.file_id}]")
