"""
Integration tests for ReceiptSession: ingestion, batch processing, user
edits, learning and deduplication across sessions.
"""
import asyncio

import pytest

from receipt_extraction.models.extraction_record import ExtractionMethod, RecordStatus
from receipt_extraction.postprocessor import LearningCorrector
from receipt_extraction.utils.exceptions import (
    OCRProcessingError,
    RecordStateError,
    ValidationError,
)

from conftest import (
    PARTIAL_TEXT,
    FakeAIService,
    FakeOCREngine,
    ai_result,
    make_source,
)

AI_FIELDS = {
    'code': '555',
    'sender_name': 'علي حسن',
    'phone_number': '07701234567',
    'province': 'بابل',
}


async def _until(predicate, attempts=200):
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0.005)
    raise AssertionError("condition not reached")


async def _process(session, files):
    records = session.submit(files)
    await session.run()
    await session.wait_idle()
    return records


# =====================================================================
# Processing
# =====================================================================
class TestSessionProcessing:
    def test_submit_and_run(self, make_session, notifier, record_store, kv_store):
        session = make_session()
        submitted = asyncio.run(_process(session, [make_source("a.png"), make_source("b.png")]))

        assert [r.number for r in submitted] == [1, 2]
        records = session.records
        assert [r.status for r in records] == [RecordStatus.COMPLETED] * 2
        assert all(r.extraction_method == ExtractionMethod.OCR for r in records)
        assert len(record_store.saved) == 2
        assert notifier.last("success").message == "2 receipt(s) processed using OCR"
        assert len(kv_store.get_all("fingerprint:")) == 2

    def test_auto_start(self, make_session):
        session = make_session(auto_start=True)

        async def scenario():
            session.submit([make_source()])
            assert session.scheduler.is_running
            await session.wait_idle()

        asyncio.run(scenario())
        assert session.records[0].status == RecordStatus.COMPLETED

    def test_without_loop_queue_waits_for_run(self, make_session):
        session = make_session(auto_start=True)
        record = session.submit([make_source()])[0]
        assert record.id in session.queue
        assert not session.scheduler.is_running

    def test_duplicate_across_sessions(self, make_session, notifier):
        asyncio.run(_process(make_session(), [make_source("a.png")]))

        later = make_session()
        assert later.submit([make_source("a.png")]) == []
        assert notifier.last("info").title == "Duplicate skipped"

    def test_pending_outcome_is_remembered(self, make_session, make_orchestrator):
        orchestrator = make_orchestrator(ocr=FakeOCREngine(text=PARTIAL_TEXT))
        session = make_session(orchestrator=orchestrator)
        asyncio.run(_process(session, [make_source("a.png")]))

        assert session.records[0].status == RecordStatus.PENDING
        assert session.submit([make_source("a.png")]) == []

    def test_failed_file_can_be_resubmitted(self, make_session, make_orchestrator, notifier):
        orchestrator = make_orchestrator(ocr=FakeOCREngine(error=OCRProcessingError("a.png")))
        session = make_session(orchestrator=orchestrator)
        asyncio.run(_process(session, [make_source("a.png")]))

        assert session.records[0].status == RecordStatus.ERROR
        assert notifier.last("error").title == "Receipt #1 failed"
        assert notifier.last("warning").title == "Some receipts failed"
        assert len(session.submit([make_source("a.png")])) == 1

    def test_failed_file_completed_by_reprocess_is_remembered(
        self, make_session, make_orchestrator
    ):
        ocr = FakeOCREngine(error=OCRProcessingError("a.png"))
        session = make_session(orchestrator=make_orchestrator(ocr=ocr))
        record = asyncio.run(_process(session, [make_source("a.png")]))[0]
        assert session.get_record(record.id).status == RecordStatus.ERROR

        ocr.error = None

        async def scenario():
            result = await session.reprocess(record.id)
            await session.wait_idle()
            return result

        assert asyncio.run(scenario()).status == RecordStatus.COMPLETED
        assert session.submit([make_source("a.png")]) == []

        later = make_session(orchestrator=make_orchestrator(ocr=ocr))
        assert later.submit([make_source("a.png")]) == []

    def test_deleted_while_processing_is_discarded(self, make_session, make_orchestrator):
        async def scenario():
            release = asyncio.Event()
            ai = FakeAIService(result=ai_result(AI_FIELDS), gate=release)
            session = make_session(orchestrator=make_orchestrator(ai_service=ai, ai_timeout=5))
            record = session.submit([make_source("a.png")])[0]

            run = asyncio.create_task(session.run())
            await _until(lambda: session.get_record(record.id).status == RecordStatus.PROCESSING)
            assert session.delete(record.id)
            release.set()
            await run
            await session.wait_idle()
            return session

        session = asyncio.run(scenario())
        assert session.records == []
        assert session.gate.in_flight == frozenset()
        assert len(session.submit([make_source("a.png")])) == 1

    def test_edit_during_processing_wins(self, make_session, make_orchestrator):
        async def scenario():
            release = asyncio.Event()
            ai = FakeAIService(result=ai_result(AI_FIELDS), gate=release)
            session = make_session(orchestrator=make_orchestrator(ai_service=ai, ai_timeout=5))
            record = session.submit([make_source()])[0]

            run = asyncio.create_task(session.run())
            await _until(lambda: session.get_record(record.id).status == RecordStatus.PROCESSING)
            session.update_fields(record.id, sender_name="مصطفى")
            release.set()
            await run
            await session.wait_idle()
            return session.get_record(record.id)

        record = asyncio.run(scenario())
        assert record.sender_name == "مصطفى"
        assert record.code == "555"
        assert record.province == "بابل"
        assert record.status == RecordStatus.COMPLETED
        assert record.extraction_method == ExtractionMethod.AI

    def test_clear_queue(self, make_session, notifier):
        session = make_session()
        records = session.submit([make_source(f"{i}.png", last_modified=i) for i in range(3)])

        assert session.clear_queue() == 3
        assert len(session.queue) == 0
        assert notifier.last("info").title == "Queue cleared"
        assert [r.status for r in session.records] == [RecordStatus.PENDING] * 3
        assert asyncio.run(session.scheduler.run()) is None
        assert len(session.submit([make_source("0.png", last_modified=0)])) == 1
        assert records[0].id != session.records[-1].id

    def test_reprocess(self, make_session):
        session = make_session()
        first = asyncio.run(_process(session, [make_source()]))[0]
        before = session.get_record(first.id)

        async def scenario():
            result = await session.reprocess(first.id)
            await session.wait_idle()
            return result

        again = asyncio.run(scenario())
        assert again.status == RecordStatus.COMPLETED
        assert again.processing_id != before.processing_id
        assert session.get_record(first.id) == again

    def test_reprocess_queued_record_is_refused(self, make_session):
        session = make_session()
        record = session.submit([make_source()])[0]
        with pytest.raises(RecordStateError):
            asyncio.run(session.reprocess(record.id))

    def test_close_releases_ai_client(self, make_session, make_orchestrator):
        ai = FakeAIService(result=ai_result(AI_FIELDS))
        session = make_session(orchestrator=make_orchestrator(ai_service=ai))
        asyncio.run(session.close())
        assert ai.closed


# =====================================================================
# User edits
# =====================================================================
class TestSessionEdits:
    def test_update_fields_completes_record(self, make_session):
        session = make_session()
        record = session.submit([make_source()])[0]
        session.clear_queue()

        record = session.update_fields(
            record.id, code="1", sender_name="علي", phone_number="07701234567"
        )
        assert record.status == RecordStatus.COMPLETED

    def test_edits_completing_failed_record_are_remembered(
        self, make_session, make_orchestrator
    ):
        orchestrator = make_orchestrator(ocr=FakeOCREngine(error=OCRProcessingError("a.png")))
        session = make_session(orchestrator=orchestrator)
        record = asyncio.run(_process(session, [make_source("a.png")]))[0]

        record = session.update_fields(
            record.id, code="1", sender_name="علي", phone_number="07701234567"
        )
        assert record.status == RecordStatus.COMPLETED
        assert session.submit([make_source("a.png")]) == []

    def test_update_fields_rejects_unknown_names(self, make_session):
        session = make_session()
        record = session.submit([make_source()])[0]
        with pytest.raises(ValueError):
            session.update_fields(record.id, status="completed")
        with pytest.raises(KeyError):
            session.update_fields("missing", code="1")

    def test_mark_submitted(self, make_session):
        session = make_session()
        record = session.submit([make_source()])[0]
        with pytest.raises(RecordStateError):
            session.mark_submitted(record.id)

        asyncio.run(_process(session, []))
        record = session.mark_submitted(record.id)
        assert record.submitted

        record = session.update_fields(record.id, phone_number="")
        assert record.status == RecordStatus.PENDING
        assert record.submitted

    def test_mark_submitted_rejects_bad_phone(self, make_session):
        session = make_session()
        record = session.submit([make_source()])[0]
        session.clear_queue()
        record = session.update_fields(
            record.id, code="1", sender_name="علي", phone_number="0770123"
        )
        assert record.status == RecordStatus.COMPLETED

        with pytest.raises(ValidationError):
            session.mark_submitted(record.id)
        assert not session.get_record(record.id).submitted

    def test_delete(self, make_session):
        session = make_session()
        record = session.submit([make_source()])[0]

        assert session.delete(record.id) is True
        assert record.id not in session.queue
        assert session.delete(record.id) is False
        assert len(session.submit([make_source()])) == 1


# =====================================================================
# Learning from corrections
# =====================================================================
class TestSessionLearning:
    def test_confirmed_correction_improves_next_receipt(
        self, make_session, make_orchestrator, kv_store, notifier
    ):
        learning = LearningCorrector(kv_store)
        session = make_session(orchestrator=make_orchestrator(learning=learning))
        first = asyncio.run(_process(session, [make_source("a.png")]))[0]

        assert session.confirm_corrections(first.id) is False

        session.update_fields(first.id, sender_name="محمد علي الحسني")
        assert session.confirm_corrections(first.id) is True
        assert notifier.last("success").title == "Correction learned"

        second = asyncio.run(_process(session, [make_source("b.png")]))[0]
        assert session.get_record(second.id).sender_name == "محمد علي الحسني"

    def test_nothing_to_learn_without_extracted_text(self, make_session):
        session = make_session()
        record = session.submit([make_source()])[0]
        assert session.confirm_corrections(record.id) is False
