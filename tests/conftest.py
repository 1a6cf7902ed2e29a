"""
Shared pytest fixtures: in-memory stores, generated receipt images and
fake extraction engines.
"""
import asyncio
import io

import pytest
from PIL import Image

from receipt_extraction.ai_service import AIExtractionResult
from receipt_extraction.config import ConfigurationManager
from receipt_extraction.input_handler import IngestionGate
from receipt_extraction.models.source_file import SourceFile
from receipt_extraction.ocr_engine import OCRResult
from receipt_extraction.pipeline import (
    ExtractionOrchestrator,
    PersistenceSupervisor,
    ReceiptSession,
)
from receipt_extraction.storage import FingerprintStore, MemoryKeyValueStore
from receipt_extraction.utils.exceptions import DatabaseError
from receipt_extraction.utils.notifications import Notifier

# A receipt as Tesseract would read it: every required field present,
# misspelled province, shorthand price
RECEIPT_TEXT = (
    "شركة النور للتوصيل\n"
    "كود: 4521\n"
    "اسم المرسل: محمد علي\n"
    "هاتف: 0770 123 4567\n"
    "المحافظة: بقداد\n"
    "السعر: 25 الف\n"
)

# Only the code can be read
PARTIAL_TEXT = "كود: 9876\n"


def make_image_bytes(color="white", fmt="PNG", size=(40, 30)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format=fmt)
    return buffer.getvalue()


def make_source(name="receipt.png", color="white", last_modified=1700000000000) -> SourceFile:
    fmt = "JPEG" if name.lower().endswith((".jpg", ".jpeg")) else "PNG"
    return SourceFile.from_bytes(
        make_image_bytes(color, fmt),
        name,
        last_modified=last_modified
    )


class FakeAIService:
    """Stands in for GeminiClient.extract_structured."""

    def __init__(self, result=None, error=None, delay=0.0, gate=None):
        self.result = result
        self.error = error
        self.delay = delay
        self.gate = gate
        self.calls = []
        self.cancelled = 0
        self.closed = False

    async def extract_structured(self, source_file):
        self.calls.append(source_file.name)
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        if self.error is not None:
            raise self.error
        return self.result

    async def close(self):
        self.closed = True


class FakeOCREngine:
    """Stands in for OCREngine.recognize."""

    def __init__(self, text=RECEIPT_TEXT, confidence=88.4, error=None):
        self.text = text
        self.confidence = confidence
        self.error = error
        self.calls = 0

    async def recognize(self, image_bytes, language=None, quality=None):
        self.calls += 1
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return OCRResult(text=self.text, confidence=self.confidence, engine="fake")


class FakeRecordStore:
    """Collects saved records, or fails every save."""

    def __init__(self, fail=False):
        self.fail = fail
        self.saved = []

    def save(self, record):
        if self.fail:
            raise DatabaseError("save", "disk full")
        self.saved.append(record)
        return True


def ai_result(fields=None, text="كود: 555", confidence=95):
    return AIExtractionResult(
        text=text,
        confidence=confidence,
        fields=dict(fields or {}),
        model_name="fake-model"
    )


@pytest.fixture(autouse=True)
def _reset_config():
    ConfigurationManager.reset()
    yield
    ConfigurationManager.reset()


@pytest.fixture()
def kv_store():
    return MemoryKeyValueStore()


@pytest.fixture()
def notifier():
    return Notifier()


@pytest.fixture()
def source():
    return make_source()


@pytest.fixture()
def record_store():
    return FakeRecordStore()


@pytest.fixture()
def gate(kv_store, notifier, tmp_path):
    return IngestionGate(
        FingerprintStore(kv_store),
        notifier,
        preview_dir=tmp_path / "previews"
    )


@pytest.fixture()
def ocr_engine():
    return FakeOCREngine()


@pytest.fixture()
def make_orchestrator(record_store, ocr_engine):
    def _make(ai_service=None, ocr=None, store=None, ai_timeout=1.0, learning=None):
        return ExtractionOrchestrator(
            ai_service=ai_service,
            ocr_engine=ocr or ocr_engine,
            learning=learning,
            persistence=PersistenceSupervisor(store if store is not None else record_store),
            ai_timeout=ai_timeout,
            use_ai=ai_service is not None
        )
    return _make


@pytest.fixture()
def make_session(kv_store, notifier, make_orchestrator, tmp_path):
    def _make(orchestrator=None, store=None, auto_start=False, batch_size=5, **kwargs):
        return ReceiptSession(
            kv_store=store if store is not None else kv_store,
            orchestrator=orchestrator or make_orchestrator(),
            notifier=notifier,
            batch_size=batch_size,
            batch_delay_ms=0,
            auto_start=auto_start,
            preview_dir=str(tmp_path / "previews"),
            **kwargs
        )
    return _make
