"""
Fire-and-Forget Persistence.

Completed records are handed to the persistence collaborator (anything with
a synchronous ``save(record)``) as detached tasks. A done-callback
supervises each task: failures are logged and counted, never propagated,
so a failed write never changes a record's status.
"""

import asyncio
from functools import partial
from typing import Any, Optional, Set

from receipt_extraction.models.extraction_record import ExtractionRecord
from receipt_extraction.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)


class PersistenceSupervisor:
    """
    Runs record saves in the background and supervises their outcome.

    Attributes:
        record_store: Collaborator with ``save(record)``; None disables
            persistence
        saved_count: Successful saves so far
        failure_count: Failed saves so far

    Example:
        >>> supervisor = PersistenceSupervisor(SQLiteRecordStore())
        >>> supervisor.persist(record)
        >>> await supervisor.drain()
    """

    def __init__(self, record_store: Optional[Any] = None) -> None:
        self.record_store = record_store
        self.saved_count = 0
        self.failure_count = 0
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        """Saves still running."""
        return len(self._tasks)

    def persist(self, record: ExtractionRecord) -> Optional[asyncio.Task]:
        """
        Start saving a record without waiting for it.

        Must be called from inside the running event loop.

        Returns:
            The detached task, or None when persistence is disabled.
        """
        if self.record_store is None:
            return None

        task = asyncio.create_task(asyncio.to_thread(self.record_store.save, record))
        self._tasks.add(task)
        task.add_done_callback(partial(self._on_done, record))
        return task

    def _on_done(self, record: ExtractionRecord, task: asyncio.Task) -> None:
        self._tasks.discard(task)

        if task.cancelled():
            logger.warning(f"Save of record #{record.number} was cancelled")
            return

        error = task.exception()
        if error is not None:
            self.failure_count += 1
            logger.error(f"Could not persist record #{record.number} ({record.id}): {error}")
            return

        self.saved_count += 1
        logger.debug(f"Record #{record.number} persisted")

    async def drain(self) -> None:
        """Wait for every running save to settle."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
