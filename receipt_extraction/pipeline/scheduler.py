"""
Batch Scheduler Module.

Consumes the work queue in fixed-size batches. Items of one batch are
extracted concurrently and joined before the next batch starts; batches
are paced by an inter-batch delay.

Progress is published after every batch as ``processed * 100 // total``,
where ``total`` is the queue size when the run started plus everything
enqueued while it was running. When the queue is empty after a batch the
run ends with one summary notification and the counters reset.

A run starts automatically when items are enqueued while no run is
active. Clearing the queue stops further dispatch; extractions already in
flight finish normally.

Author: ML Engineering Team
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional

from receipt_extraction.config import get_config
from receipt_extraction.input_handler.gate import QueueItem
from receipt_extraction.models.extraction_record import ExtractionMethod, RecordStatus
from receipt_extraction.utils.logger import get_logger
from receipt_extraction.utils.notifications import Notifier
from .work_queue import WorkQueue

# Initialize module logger
logger = get_logger(__name__)

Worker = Callable[[QueueItem], Awaitable[Any]]
ProgressListener = Callable[[int], None]


@dataclass
class RunSummary:
    """Outcome of one scheduler run."""
    processed: int = 0
    total: int = 0
    batches: int = 0
    errors: int = 0
    ai_used: bool = False


class BatchScheduler:
    """
    Runs queued extractions in concurrent, paced batches.

    Attributes:
        queue: WorkQueue consumed from the head
        worker: Coroutine function extracting one QueueItem; it should
            return the resulting record (or None when the result was
            discarded)
        notifier: Receives the per-run summary
        batch_size: Items dispatched together
        batch_delay: Seconds between batches
        progress: Last published progress (0-100)

    Example:
        >>> scheduler = BatchScheduler(queue, session.process_item, notifier)
        >>> scheduler.subscribe(lambda p: print(f"{p}%"))
        >>> summary = await scheduler.run()
    """

    def __init__(
        self,
        queue: WorkQueue,
        worker: Worker,
        notifier: Notifier,
        batch_size: Optional[int] = None,
        batch_delay_ms: Optional[int] = None
    ) -> None:
        self.queue = queue
        self.worker = worker
        self.notifier = notifier

        self.batch_size = max(1, int(
            batch_size if batch_size is not None else get_config("scheduler.batch_size", 5)
        ))
        delay_ms = batch_delay_ms if batch_delay_ms is not None else get_config(
            "scheduler.batch_delay_ms", 1000
        )
        self.batch_delay = max(0, int(delay_ms)) / 1000.0

        self.progress = 0
        self._listeners: List[ProgressListener] = []
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._total = 0
        self._processed = 0

        logger.info(
            f"BatchScheduler initialized (batch_size={self.batch_size}, "
            f"delay={self.batch_delay:g}s)"
        )

    @property
    def is_running(self) -> bool:
        return self._running

    def subscribe(self, listener: ProgressListener) -> None:
        """Register a callable receiving progress after each batch."""
        self._listeners.append(listener)

    def enqueued(self, count: int) -> Optional[asyncio.Task]:
        """
        Account for items just added to the queue.

        Grows the active run's total, or starts a run when none is active.

        Returns:
            The task of a newly started run, if one was started.
        """
        if count <= 0:
            return None
        if self._running:
            self._total += count
            logger.debug(f"{count} item(s) joined the active run (total={self._total})")
            return None
        return self.start()

    def start(self) -> Optional[asyncio.Task]:
        """
        Start a background run if the queue has work and no run is active.

        Requires a running event loop; without one the queue is left for
        an explicit ``run()``.
        """
        if self._running or not self.queue:
            return None

        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, queue left for an explicit run()")
            return None

        self._running = True
        self._task = asyncio.create_task(self._run())
        return self._task

    async def run(self) -> Optional[RunSummary]:
        """
        Process the queue until it is empty.

        Returns:
            RunSummary, or None when a run was already active or there
            was nothing to do.
        """
        if self._running or not self.queue:
            return None
        self._running = True
        return await self._run()

    async def wait(self) -> None:
        """Wait for the background run, if any, to finish."""
        while self._task is not None and not self._task.done():
            await asyncio.shield(self._task)

    async def _run(self) -> RunSummary:
        self._total = len(self.queue)
        self._processed = 0
        self.progress = 0
        summary = RunSummary()

        logger.info(f"Batch run started ({self._total} queued)")
        try:
            while True:
                batch = self.queue.take(self.batch_size)
                if not batch:
                    break

                summary.batches += 1
                logger.info(f"Batch {summary.batches}: dispatching {len(batch)} item(s)")

                results = await asyncio.gather(*(self._process(item) for item in batch))
                for record in results:
                    if record is None:
                        continue
                    if record.status == RecordStatus.ERROR:
                        summary.errors += 1
                    if record.extraction_method == ExtractionMethod.AI:
                        summary.ai_used = True

                self._processed += len(batch)
                self._publish_progress()

                if not self.queue:
                    break
                await asyncio.sleep(self.batch_delay)

            summary.processed = self._processed
            summary.total = self._total
            self._notify_summary(summary)
            return summary
        finally:
            self._running = False
            self._total = 0
            self._processed = 0

    async def _process(self, item: QueueItem) -> Any:
        try:
            return await self.worker(item)
        except Exception as e:
            logger.exception(f"Worker failed for record {item.record_id}: {e}")
            return None

    def _publish_progress(self) -> None:
        total = max(self._total, self._processed, 1)
        self.progress = min(self._processed * 100 // total, 100)
        logger.info(f"Progress: {self.progress}% ({self._processed}/{total})")

        for listener in list(self._listeners):
            try:
                listener(self.progress)
            except Exception as e:
                logger.exception(f"Progress listener failed: {e}")

    def _notify_summary(self, summary: RunSummary) -> None:
        engine = "AI" if summary.ai_used else "OCR"
        self.notifier.success(
            "Processing finished",
            f"{summary.processed} receipt(s) processed using {engine}"
        )
        if summary.errors:
            self.notifier.warning(
                "Some receipts failed",
                f"{summary.errors} receipt(s) could not be extracted"
            )
