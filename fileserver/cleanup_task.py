"""Background task that periodically sweeps orphaned chunks."""

import asyncio
import logging
from typing import Optional

from chunkstore.store import Store

logger = logging.getLogger(__name__)


class ChunkGCTask:
    """
    Runs Store.sweep() on a fixed interval.
    """

    def __init__(self, store: Store, interval_seconds: float):
        """
        Initialize GC task.

        Args:
            store: Opened store to sweep
            interval_seconds: Time between sweeps
        """
        self.store = store
        self.interval_seconds = interval_seconds
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the background GC task."""
        if self._running:
            logger.warning("GC task already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run())
        logger.info(f"Started chunk GC task (interval: {self.interval_seconds}s)")

    async def stop(self) -> None:
        """Stop the background GC task."""
        if not self._running:
            return

        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info("Stopped chunk GC task")

    async def run_once(self) -> int:
        """Run one sweep off the event loop."""
        return await asyncio.to_thread(self.store.sweep)

    async def _run(self) -> None:
        """Main loop for GC task."""
        while self._running:
            try:
                await asyncio.sleep(self.interval_seconds)

                if not self._running:
                    break

                reclaimed = await self.run_once()
                logger.debug(f"Periodic GC sweep reclaimed {reclaimed} chunks")

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in GC task: {e}", exc_info=True)
