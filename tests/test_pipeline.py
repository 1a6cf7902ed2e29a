"""
Unit tests for the pipeline: race combinators, fire-and-forget
persistence, the extraction orchestrator and the batch scheduler.
"""
import asyncio

import pytest

from receipt_extraction.input_handler import QueueItem
from receipt_extraction.models.extraction_record import (
    ExtractionMethod,
    ExtractionRecord,
    RecordStatus,
)
from receipt_extraction.pipeline import (
    BatchScheduler,
    ExtractionOrchestrator,
    PersistenceSupervisor,
    WorkQueue,
    race,
    race_timeout,
)
from receipt_extraction.pipeline.orchestrator import EXTRACTION_FAILED_MESSAGE
from receipt_extraction.postprocessor import FieldParser, LearningCorrector
from receipt_extraction.storage import MemoryKeyValueStore
from receipt_extraction.utils.exceptions import (
    AIServiceError,
    AIServiceTimeoutError,
    OCRProcessingError,
    RecordStateError,
)

from conftest import (
    PARTIAL_TEXT,
    RECEIPT_TEXT,
    FakeAIService,
    FakeOCREngine,
    FakeRecordStore,
    ai_result,
    make_source,
)

AI_FIELDS = {
    'code': '555',
    'sender_name': 'علي حسن',
    'phone_number': '7701234567',
    'province': 'بقداد',
}


async def _extract(orchestrator, record=None, source=None):
    source = source or make_source()
    record = record or ExtractionRecord(number=1, file=source, file_name=source.name)
    result = await orchestrator.extract(source, record)
    await orchestrator.persistence.drain()
    return result


# =====================================================================
# Races
# =====================================================================
class TestRace:
    def test_first_to_finish_wins_and_loser_is_cancelled(self):
        cancelled = []

        async def slow():
            try:
                await asyncio.sleep(5)
            except asyncio.CancelledError:
                cancelled.append("slow")
                raise

        async def fast():
            return "fast"

        assert asyncio.run(race(slow(), fast())) == "fast"
        assert cancelled == ["slow"]

    def test_timeout_raises_given_error(self):
        with pytest.raises(AIServiceTimeoutError):
            asyncio.run(race_timeout(asyncio.sleep(5), 0.01, AIServiceTimeoutError(0.01)))

    def test_work_beats_timer(self):
        async def work():
            return 42

        assert asyncio.run(race_timeout(work(), 5, AIServiceTimeoutError(5))) == 42

    def test_work_error_propagates(self):
        async def work():
            raise AIServiceError("boom")

        with pytest.raises(AIServiceError):
            asyncio.run(race_timeout(work(), 5, AIServiceTimeoutError(5)))


# =====================================================================
# Persistence
# =====================================================================
class TestPersistenceSupervisor:
    def test_saves_in_background(self):
        store = FakeRecordStore()
        supervisor = PersistenceSupervisor(store)
        record = ExtractionRecord(number=1)

        async def scenario():
            task = supervisor.persist(record)
            assert task is not None
            await supervisor.drain()

        asyncio.run(scenario())
        assert store.saved == [record]
        assert supervisor.saved_count == 1
        assert supervisor.pending == 0

    def test_failures_are_counted_not_raised(self):
        supervisor = PersistenceSupervisor(FakeRecordStore(fail=True))

        async def scenario():
            supervisor.persist(ExtractionRecord(number=1))
            await supervisor.drain()

        asyncio.run(scenario())
        assert supervisor.failure_count == 1
        assert supervisor.saved_count == 0

    def test_disabled(self):
        async def scenario():
            return PersistenceSupervisor(None).persist(ExtractionRecord())

        assert asyncio.run(scenario()) is None


# =====================================================================
# Orchestrator
# =====================================================================
class TestOrchestrator:
    def test_ai_fields_override_and_are_normalized(self, make_orchestrator, record_store):
        ai = FakeAIService(result=ai_result(AI_FIELDS, text="كود: 111"))
        orchestrator = make_orchestrator(ai_service=ai)

        record = asyncio.run(_extract(orchestrator))

        assert record.status == RecordStatus.COMPLETED
        assert record.extraction_method == ExtractionMethod.AI
        assert record.confidence == 95
        assert record.code == '555'
        assert record.phone_number == '07701234567'
        assert record.province == 'بغداد'
        assert record.parsed_fields['sender_name'] == 'علي حسن'
        assert record_store.saved == [record]

    def test_ai_timeout_falls_back_to_ocr(self, make_orchestrator, ocr_engine):
        ai = FakeAIService(result=ai_result(AI_FIELDS), delay=5)
        orchestrator = make_orchestrator(ai_service=ai, ai_timeout=0.05)

        record = asyncio.run(_extract(orchestrator))

        assert record.extraction_method == ExtractionMethod.OCR
        assert record.status == RecordStatus.COMPLETED
        assert record.code == '4521'
        assert record.confidence == 88
        assert ai.cancelled == 1
        assert ocr_engine.calls == 1

    @pytest.mark.parametrize("error", [AIServiceError("quota"), RuntimeError("bug")])
    def test_ai_failure_falls_back_to_ocr(self, make_orchestrator, error):
        orchestrator = make_orchestrator(ai_service=FakeAIService(error=error))
        record = asyncio.run(_extract(orchestrator))
        assert record.extraction_method == ExtractionMethod.OCR
        assert record.sender_name == 'محمد علي'

    def test_ai_disabled(self, record_store, ocr_engine):
        ai = FakeAIService(result=ai_result(AI_FIELDS))
        orchestrator = ExtractionOrchestrator(
            ai_service=ai, ocr_engine=ocr_engine,
            persistence=PersistenceSupervisor(record_store), use_ai=False
        )
        record = asyncio.run(_extract(orchestrator))
        assert record.extraction_method == ExtractionMethod.OCR
        assert ai.calls == []

    def test_both_engines_fail(self, make_orchestrator, record_store):
        orchestrator = make_orchestrator(
            ai_service=FakeAIService(error=AIServiceError("down")),
            ocr=FakeOCREngine(error=OCRProcessingError("a.png", "tesseract crashed"))
        )
        source = make_source()
        record = asyncio.run(_extract(orchestrator, source=source))

        assert record.status == RecordStatus.ERROR
        assert record.error == EXTRACTION_FAILED_MESSAGE
        assert record.processing_id is not None
        assert record.file is source
        assert record_store.saved == []

    def test_empty_ocr_text_is_an_error(self, make_orchestrator):
        orchestrator = make_orchestrator(ocr=FakeOCREngine(text="  \n"))
        assert asyncio.run(_extract(orchestrator)).status == RecordStatus.ERROR

    def test_missing_required_fields_stay_pending(self, make_orchestrator, record_store):
        orchestrator = make_orchestrator(ocr=FakeOCREngine(text=PARTIAL_TEXT, confidence=0))
        record = asyncio.run(_extract(orchestrator))

        assert record.status == RecordStatus.PENDING
        assert record.code == '9876'
        assert record.confidence == 20
        assert record.missing_required_fields == ['sender_name', 'phone_number']
        assert record_store.saved == []

    def test_values_not_found_keep_existing(self, make_orchestrator):
        orchestrator = make_orchestrator(ocr=FakeOCREngine(text=PARTIAL_TEXT))
        source = make_source()
        existing = ExtractionRecord(
            number=1, file=source, sender_name='قديم', phone_number='07801234567'
        )
        record = asyncio.run(_extract(orchestrator, record=existing, source=source))

        assert record.sender_name == 'قديم'
        assert record.code == '9876'
        assert record.status == RecordStatus.COMPLETED

    def test_persistence_failure_keeps_completed(self, make_orchestrator):
        orchestrator = make_orchestrator(store=FakeRecordStore(fail=True))
        record = asyncio.run(_extract(orchestrator))

        assert record.status == RecordStatus.COMPLETED
        assert orchestrator.persistence.failure_count == 1

    def test_learned_corrections_are_applied(self, make_orchestrator):
        learning = LearningCorrector(MemoryKeyValueStore())
        parsed = FieldParser().parse(RECEIPT_TEXT)
        learning.add_correction(RECEIPT_TEXT, parsed, {**parsed, 'sender_name': 'محمد علي الحسني'})

        record = asyncio.run(_extract(make_orchestrator(learning=learning)))
        assert record.sender_name == 'محمد علي الحسني'

    def test_reprocess(self, make_orchestrator):
        orchestrator = make_orchestrator()
        failed = ExtractionRecord(number=1, status=RecordStatus.ERROR, processing_id="old")
        published = []

        async def scenario():
            result = await orchestrator.reprocess(make_source(), failed, on_begin=published.append)
            await orchestrator.persistence.drain()
            return result

        record = asyncio.run(scenario())

        assert published[0].status == RecordStatus.PROCESSING
        assert published[0].processing_id != "old"
        assert record.processing_id == published[0].processing_id
        assert record.status == RecordStatus.COMPLETED

    def test_reprocess_refuses_processing_record(self, make_orchestrator):
        processing = ExtractionRecord(status=RecordStatus.PROCESSING)
        with pytest.raises(RecordStateError):
            asyncio.run(make_orchestrator().reprocess(make_source(), processing))


# =====================================================================
# Batch scheduler
# =====================================================================
def _queue(count):
    source = make_source()
    queue = WorkQueue()
    queue.extend(
        QueueItem(record_id=f"r{i}", file=source, fingerprint=f"fp{i}")
        for i in range(count)
    )
    return queue


class Worker:
    def __init__(self, results=None):
        self.results = results or {}
        self.calls = []
        self.active = 0
        self.max_active = 0

    async def __call__(self, item):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        await asyncio.sleep(0.01)
        self.active -= 1
        self.calls.append(item.record_id)
        result = self.results.get(item.record_id)
        if isinstance(result, Exception):
            raise result
        return result


class TestBatchScheduler:
    def test_batches_and_progress(self, notifier):
        worker = Worker()
        scheduler = BatchScheduler(_queue(12), worker, notifier, batch_size=5, batch_delay_ms=0)
        progress, sizes = [], []
        scheduler.subscribe(progress.append)
        scheduler.subscribe(lambda _: sizes.append(len(worker.calls)))

        summary = asyncio.run(scheduler.run())

        assert progress == [41, 83, 100]
        assert sizes == [5, 10, 12]
        assert worker.max_active == 5
        assert summary.processed == 12
        assert summary.batches == 3
        assert not scheduler.is_running

    def test_summary_notification(self, notifier):
        results = {
            'r0': ExtractionRecord(status=RecordStatus.COMPLETED, extraction_method=ExtractionMethod.AI),
            'r1': ExtractionRecord(status=RecordStatus.ERROR),
            'r2': RuntimeError("worker bug"),
        }
        scheduler = BatchScheduler(_queue(3), Worker(results), notifier, batch_delay_ms=0)

        summary = asyncio.run(scheduler.run())

        assert summary.errors == 1
        assert summary.ai_used
        assert notifier.last("success").title == "Processing finished"
        assert notifier.last("success").message == "3 receipt(s) processed using AI"
        assert notifier.last("warning").title == "Some receipts failed"

    def test_ocr_summary(self, notifier):
        scheduler = BatchScheduler(_queue(2), Worker(), notifier, batch_delay_ms=0)
        asyncio.run(scheduler.run())
        assert notifier.last("success").message == "2 receipt(s) processed using OCR"
        assert notifier.last("warning") is None

    def test_empty_queue(self, notifier):
        scheduler = BatchScheduler(WorkQueue(), Worker(), notifier)
        assert asyncio.run(scheduler.run()) is None
        assert notifier.history == []

    def test_items_added_during_run_grow_total(self, notifier):
        queue = _queue(5)
        extra = _queue(7).items[5:]
        progress = []

        async def worker(item):
            if item.record_id == "r0":
                queue.extend(extra)
                scheduler.enqueued(len(extra))
            await asyncio.sleep(0)

        scheduler = BatchScheduler(queue, worker, notifier, batch_size=5, batch_delay_ms=0)
        scheduler.subscribe(progress.append)
        summary = asyncio.run(scheduler.run())

        assert progress == [71, 100]
        assert summary.total == 7

    def test_start_needs_running_loop(self, notifier):
        scheduler = BatchScheduler(_queue(1), Worker(), notifier)
        assert scheduler.start() is None

    def test_background_start(self, notifier):
        worker = Worker()
        scheduler = BatchScheduler(_queue(3), worker, notifier, batch_delay_ms=0)

        async def scenario():
            assert scheduler.enqueued(3) is not None
            assert scheduler.is_running
            assert scheduler.start() is None
            await scheduler.wait()

        asyncio.run(scenario())
        assert sorted(worker.calls) == ["r0", "r1", "r2"]
        assert scheduler.progress == 100
