"""
Receipt Session Module.

The ReceiptSession is the single owner of a working session's state: the
record collection, the work queue and the fingerprint store. It wires the
ingestion gate, the batch scheduler and the extraction orchestrator
together and exposes the user operations:

    - submit files
    - edit fields, mark records submitted, delete records
    - reprocess a record, clear the queue
    - confirm corrections (feeds the learning corrector)

Extraction results are applied against the latest record snapshot. A
result is discarded when its record was deleted or re-dispatched in the
meantime, and field edits made while a record was processing win over the
extracted values.

Usage:
    session = ReceiptSession()
    session.submit([SourceFile.from_path("scan.jpg")])
    await session.wait_idle()
    for record in session.records:
        print(record)

Author: ML Engineering Team
"""

from typing import Any, Dict, Iterable, List, Optional

from receipt_extraction.ai_service import GeminiClient
from receipt_extraction.config import get_config
from receipt_extraction.input_handler import IngestionGate, QueueItem
from receipt_extraction.models.extraction_record import (
    FIELD_NAMES,
    ExtractionRecord,
    RecordStatus,
)
from receipt_extraction.models.source_file import SourceFile
from receipt_extraction.postprocessor import FieldValidator, LearningCorrector
from receipt_extraction.storage import FingerprintStore, KeyValueStore, create_kv_store
from receipt_extraction.utils.exceptions import RecordStateError
from receipt_extraction.utils.logger import get_logger
from receipt_extraction.utils.notifications import Notifier
from .orchestrator import ExtractionOrchestrator
from .persistence import PersistenceSupervisor
from .scheduler import BatchScheduler
from .work_queue import WorkQueue

# Initialize module logger
logger = get_logger(__name__)


class ReceiptSession:
    """
    Controller owning records, queue and fingerprints for one session.

    Attributes:
        kv_store: Durable key-value store (fingerprints, learning entries)
        notifier: User-facing notifications
        fingerprints: FingerprintStore shared with the gate
        learning: LearningCorrector fed by confirmed corrections
        gate: IngestionGate
        orchestrator: ExtractionOrchestrator
        queue: WorkQueue
        scheduler: BatchScheduler
        auto_start: Whether submissions start a background run

    Example:
        >>> session = ReceiptSession(kv_store=MemoryKeyValueStore(), orchestrator=orchestrator)
        >>> session.submit(files)
        >>> await session.wait_idle()
        >>> [r.status for r in session.records]
        ['completed', 'pending']
    """

    def __init__(
        self,
        kv_store: Optional[KeyValueStore] = None,
        orchestrator: Optional[ExtractionOrchestrator] = None,
        notifier: Optional[Notifier] = None,
        record_store: Optional[Any] = None,
        gate: Optional[IngestionGate] = None,
        batch_size: Optional[int] = None,
        batch_delay_ms: Optional[int] = None,
        auto_start: bool = True,
        use_ai: Optional[bool] = None,
        preview_dir: Optional[str] = None
    ) -> None:
        """
        Initialize the session.

        Args:
            kv_store: Durable key-value store. If None, created from
                configuration.
            orchestrator: Extraction orchestrator. If None, one is built
                with the Gemini client, the OCR engine and this session's
                learning corrector.
            notifier: Notification sink. If None, a new Notifier is used.
            record_store: Persistence collaborator for the default
                orchestrator (ignored when an orchestrator is given).
            gate: Ingestion gate. If None, one is built on this session's
                fingerprint store.
            batch_size: Scheduler batch size override.
            batch_delay_ms: Scheduler inter-batch delay override.
            auto_start: Start a background run on submit.
            use_ai: Whether the default orchestrator tries the AI service.
                If None, uses configuration.
            preview_dir: Preview directory for the default gate.
        """
        self.kv_store = kv_store or create_kv_store()
        self.notifier = notifier or Notifier()
        self.fingerprints = FingerprintStore(self.kv_store)
        self.learning = LearningCorrector(self.kv_store)
        self.validator = FieldValidator()
        self.gate = gate or IngestionGate(
            self.fingerprints, self.notifier, preview_dir=preview_dir
        )

        if orchestrator is None:
            if use_ai is None:
                use_ai = get_config("ai.enabled", True)
            orchestrator = ExtractionOrchestrator(
                ai_service=GeminiClient() if use_ai else None,
                learning=self.learning,
                persistence=PersistenceSupervisor(record_store),
                use_ai=use_ai
            )
        self.orchestrator = orchestrator

        self.queue = WorkQueue()
        self.scheduler = BatchScheduler(
            self.queue,
            self.process_item,
            self.notifier,
            batch_size=batch_size,
            batch_delay_ms=batch_delay_ms
        )
        self.auto_start = auto_start

        self._records: Dict[str, ExtractionRecord] = {}
        # record id -> fingerprint of its source file
        self._fingerprints: Dict[str, str] = {}

        logger.info("ReceiptSession initialized")

    # =========================================================================
    # Records
    # =========================================================================

    @property
    def records(self) -> List[ExtractionRecord]:
        """Records ordered by session number."""
        return sorted(self._records.values(), key=lambda r: r.number)

    def get_record(self, record_id: str) -> Optional[ExtractionRecord]:
        return self._records.get(record_id)

    def _require(self, record_id: str) -> ExtractionRecord:
        record = self._records.get(record_id)
        if record is None:
            raise KeyError(f"Unknown record: {record_id}")
        return record

    def _store(self, record: ExtractionRecord) -> None:
        self._records = {**self._records, record.id: record}

    # =========================================================================
    # Ingestion and processing
    # =========================================================================

    def submit(self, files: Iterable[SourceFile]) -> List[ExtractionRecord]:
        """
        Submit files for extraction.

        Accepted files get a pending record and a queue entry; a background
        run starts when ``auto_start`` is set and an event loop is running.

        Returns:
            The new records, in submission order.
        """
        accepted = self.gate.submit(files)
        if not accepted:
            return []

        for entry in accepted:
            self._store(entry.record)
            self._fingerprints[entry.record.id] = entry.item.fingerprint
        added = self.queue.extend(entry.item for entry in accepted)

        if self.auto_start:
            self.scheduler.enqueued(added)

        return [entry.record for entry in accepted]

    async def run(self) -> None:
        """Process the queue now and wait for the run to finish."""
        await self.scheduler.wait()
        await self.scheduler.run()

    async def wait_idle(self) -> None:
        """Wait until no run is active and every save has settled."""
        await self.scheduler.wait()
        await self.orchestrator.persistence.drain()

    async def process_item(self, item: QueueItem) -> Optional[ExtractionRecord]:
        """
        Extract one queued item and apply the result.

        Returns:
            The applied record, or None when the result was discarded.
        """
        record = self._records.get(item.record_id)
        if record is None:
            logger.debug(f"Record {item.record_id} was deleted before dispatch")
            self.gate.release(item.fingerprint)
            return None

        dispatched = self.orchestrator.begin(record)
        self._store(dispatched)

        result = await self.orchestrator.extract(item.file, dispatched)
        applied = self._apply_result(dispatched, result)

        if applied is None or applied.status == RecordStatus.ERROR:
            self.gate.release(item.fingerprint)
        else:
            self._remember(applied)
        return applied

    def _remember(self, record: ExtractionRecord) -> None:
        """Write the record's fingerprint to the durable store."""
        fingerprint = self._fingerprints.get(record.id)
        if fingerprint is not None:
            self.gate.complete(
                fingerprint,
                {'record_id': record.id, 'file_name': record.file_name}
            )

    def _apply_result(
        self,
        dispatched: ExtractionRecord,
        result: ExtractionRecord
    ) -> Optional[ExtractionRecord]:
        current = self._records.get(result.id)
        if current is None:
            logger.info(f"Discarding result for deleted record {result.id}")
            return None
        if current.processing_id != result.processing_id:
            logger.info(f"Discarding stale result for record #{current.number}")
            return None

        edited = {
            name: value for name, value in current.fields.items()
            if value != getattr(dispatched, name)
        }
        if edited:
            logger.debug(f"Keeping fields edited during processing: {sorted(edited)}")
            result = result.with_updates(submitted=current.submitted, **edited)

        self._store(result)
        if result.status == RecordStatus.ERROR:
            self.notifier.error(f"Receipt #{result.number} failed", result.error or "")
        return result

    async def reprocess(self, record_id: str) -> Optional[ExtractionRecord]:
        """
        Run extraction again for a record.

        Raises:
            KeyError: If the record does not exist.
            RecordStateError: If the record is queued, processing or has
                no image.
        """
        record = self._require(record_id)
        if record_id in self.queue:
            raise RecordStateError(record_id, "queued", "reprocess")
        if record.file is None:
            raise RecordStateError(record_id, record.status, "reprocess without an image")

        result = await self.orchestrator.reprocess(record.file, record, on_begin=self._store)
        applied = self._apply_result(record, result)
        # A failed first attempt released the fingerprint
        if applied is not None and applied.status != RecordStatus.ERROR:
            self._remember(applied)
        return applied

    def clear_queue(self) -> int:
        """
        Drop every queued item. Extractions already running finish.

        Returns:
            Number of items removed.
        """
        cleared = self.queue.clear()
        for item in cleared:
            self.gate.release(item.fingerprint)

        if cleared:
            self.notifier.info("Queue cleared", f"{len(cleared)} receipt(s) removed from the queue")
        return len(cleared)

    # =========================================================================
    # User edits
    # =========================================================================

    def update_fields(self, record_id: str, **fields: Any) -> ExtractionRecord:
        """
        Edit shipment fields of a record.

        The record becomes completed as soon as code, sender and phone are
        all filled.

        Raises:
            KeyError: If the record does not exist.
            ValueError: If a name is not a shipment field.
        """
        unknown = set(fields) - set(FIELD_NAMES)
        if unknown:
            raise ValueError(f"Not editable: {sorted(unknown)}")

        previous = self._require(record_id)
        record = previous.with_updates(**fields)
        self._store(record)
        if previous.status == RecordStatus.ERROR and record.status == RecordStatus.COMPLETED:
            self._remember(record)
        return record

    def mark_submitted(self, record_id: str) -> ExtractionRecord:
        """
        Flag a completed record as sent onwards. The flag never reverts.

        Raises:
            RecordStateError: If the record is not completed.
            ValidationError: If the phone number is not a valid mobile
                number.
        """
        record = self._require(record_id)
        if record.status != RecordStatus.COMPLETED:
            raise RecordStateError(record_id, record.status, "submit")
        self.validator.ensure_submittable(record.fields)

        record = record.with_updates(submitted=True)
        self._store(record)
        return record

    def delete(self, record_id: str) -> bool:
        """
        Remove a record and its queue entry.

        Returns:
            True if the record existed.
        """
        if record_id not in self._records:
            return False

        for item in self.queue.remove(record_id):
            self.gate.release(item.fingerprint)

        self._records = {rid: r for rid, r in self._records.items() if rid != record_id}
        self._fingerprints.pop(record_id, None)
        logger.info(f"Record {record_id} deleted")
        return True

    def confirm_corrections(self, record_id: str) -> bool:
        """
        Teach the learning corrector from the record's current fields.

        The fields as extracted are compared with the fields as they are
        now; an entry is stored only when something changed.

        Returns:
            True if a learning entry was stored.
        """
        record = self._require(record_id)
        if not record.extracted_text:
            return False

        stored = self.learning.add_correction(
            record.extracted_text,
            record.parsed_fields,
            record.fields
        )
        if stored:
            self.notifier.success("Correction learned", f"Receipt #{record.number}")
        return stored

    async def close(self) -> None:
        """Wait for pending work and release network resources."""
        await self.wait_idle()
        close = getattr(self.orchestrator.ai_service, 'close', None)
        if close is not None:
            await close()
