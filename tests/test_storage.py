"""
Unit tests for the record model, configuration and the storage layer.
"""
import pytest

from receipt_extraction.config import ConfigurationManager, get_config
from receipt_extraction.models.extraction_record import ExtractionRecord, RecordStatus
from receipt_extraction.models.source_file import SourceFile
from receipt_extraction.storage import (
    FingerprintStore,
    MemoryKeyValueStore,
    SQLiteKeyValueStore,
    SQLiteRecordStore,
    compute_fingerprint,
    create_kv_store,
)


# =====================================================================
# Extraction record
# =====================================================================
class TestExtractionRecord:
    def test_completes_when_required_fields_are_filled(self):
        record = ExtractionRecord(number=1).with_updates(code="1", sender_name="علي")
        assert record.status == RecordStatus.PENDING
        assert record.missing_required_fields == ['phone_number']

        record = record.with_updates(phone_number="07701234567")
        assert record.status == RecordStatus.COMPLETED
        assert record.is_ready

    def test_clearing_a_required_field_demotes(self):
        record = ExtractionRecord().with_updates(
            code="1", sender_name="علي", phone_number="07701234567"
        )
        record = record.with_updates(phone_number="  ")
        assert record.status == RecordStatus.PENDING
        assert record.phone_number == ""

    def test_processing_is_not_promoted(self):
        record = ExtractionRecord(status=RecordStatus.PROCESSING).with_updates(
            code="1", sender_name="علي", phone_number="07701234567"
        )
        assert record.status == RecordStatus.PROCESSING

    def test_editing_failed_record_completes_it(self):
        record = ExtractionRecord(status=RecordStatus.ERROR, error="failed")
        record = record.with_updates(code="1", sender_name="علي", phone_number="07701234567")
        assert record.status == RecordStatus.COMPLETED
        assert record.error is None

    def test_submitted_is_one_way(self):
        record = ExtractionRecord().with_updates(submitted=True)
        assert record.with_updates(submitted=False).submitted is True
        assert record.with_updates(code="5").submitted is True

    def test_rejects_unknown_attributes_and_status(self):
        with pytest.raises(ValueError):
            ExtractionRecord().with_updates(colour="red")
        with pytest.raises(ValueError):
            ExtractionRecord().with_updates(status="done")

    def test_dict_round_trip_drops_the_file(self, source):
        record = ExtractionRecord(number=3, file=source, file_name=source.name, code="77")
        restored = ExtractionRecord.from_dict(record.to_dict())
        assert restored == record
        assert restored.file is None
        assert 'file' not in record.to_dict()


# =====================================================================
# Configuration
# =====================================================================
class TestConfiguration:
    def test_defaults(self):
        assert get_config("scheduler.batch_size") == 5
        assert get_config("scheduler.batch_delay_ms") == 1000
        assert get_config("ai.timeout_seconds") == 15
        assert get_config("ingestion.max_files_per_submit") == 10
        assert get_config("missing.key", "fallback") == "fallback"

    def test_relative_paths_are_resolved(self):
        assert get_config("paths.kv_database").endswith("data/pipeline_state.db")
        assert get_config("paths.kv_database").startswith("/")

    def test_custom_file(self, tmp_path):
        custom = tmp_path / "settings.yaml"
        custom.write_text("scheduler:\n  batch_size: 2\n", encoding="utf-8")
        config = ConfigurationManager(str(custom))
        assert config.get("scheduler.batch_size") == 2
        # untouched keys keep the bundled values
        assert config.get("scheduler.batch_delay_ms") == 1000
        assert config.get("ai.timeout_seconds") == 15

    def test_invalid_level_name(self):
        from receipt_extraction.utils.logger import setup_logger
        with pytest.raises(ValueError):
            setup_logger(level="LOUD")

    def test_env_var(self, tmp_path, monkeypatch):
        custom = tmp_path / "env.yaml"
        custom.write_text("ai:\n  enabled: false\n", encoding="utf-8")
        monkeypatch.setenv("RECEIPT_EXTRACTION_CONFIG", str(custom))
        assert get_config("ai.enabled") is False

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ConfigurationManager(str(tmp_path / "nope.yaml"))


# =====================================================================
# Key-value stores
# =====================================================================
class TestKeyValueStores:
    @pytest.mark.parametrize("backend", ["memory", "sqlite"])
    def test_get_set_and_prefix(self, backend, tmp_path):
        if backend == "memory":
            store = MemoryKeyValueStore()
        else:
            store = SQLiteKeyValueStore(tmp_path / "kv.db")

        store.set("fingerprint:a", {"file_name": "a.jpg"})
        store.set("fingerprint:b", {"file_name": "b.jpg"})
        store.set("learning:1", {"code": "1"})

        assert store.get("fingerprint:a") == {"file_name": "a.jpg"}
        assert store.get("missing") is None
        assert list(store.get_all("fingerprint:")) == ["fingerprint:a", "fingerprint:b"]
        assert len(store.get_all()) == 3

    def test_sqlite_survives_reopen(self, tmp_path):
        SQLiteKeyValueStore(tmp_path / "kv.db").set("k", ["v", 1])
        assert SQLiteKeyValueStore(tmp_path / "kv.db").get("k") == ["v", 1]

    def test_memory_store_returns_copies(self):
        store = MemoryKeyValueStore()
        value = {"n": 1}
        store.set("k", value)
        value["n"] = 2
        assert store.get("k") == {"n": 1}

    def test_factory(self):
        assert isinstance(create_kv_store("memory"), MemoryKeyValueStore)
        with pytest.raises(ValueError):
            create_kv_store("redis")


# =====================================================================
# Fingerprints
# =====================================================================
class TestFingerprints:
    def test_identity_priority(self):
        data = b"1234"
        assert compute_fingerprint(SourceFile.from_bytes(data, "a.jpg", last_modified=5)) == "a.jpg:4:5"
        assert compute_fingerprint(
            SourceFile.from_bytes(data, "a.jpg", storage_path="bucket/a.jpg")
        ) == "bucket/a.jpg"
        assert compute_fingerprint(
            SourceFile.from_bytes(data, "a.jpg").with_preview("file:///p/a.jpg")
        ) == "file:///p/a.jpg"
        assert compute_fingerprint(None, "rec-1") == "rec-1"

    def test_unidentifiable(self):
        with pytest.raises(ValueError):
            compute_fingerprint(None)

    def test_store_persists_across_instances(self):
        kv = MemoryKeyValueStore()
        FingerprintStore(kv).add("a.jpg:4:5", {"record_id": "r1"})

        reloaded = FingerprintStore(kv)
        assert "a.jpg:4:5" in reloaded
        assert len(reloaded) == 1
        assert kv.get("fingerprint:a.jpg:4:5")["record_id"] == "r1"

    def test_contains_sees_writes_from_another_store(self):
        kv = MemoryKeyValueStore()
        first, second = FingerprintStore(kv), FingerprintStore(kv)
        first.add("x")
        assert second.contains("x")
        assert "x" in second.snapshot

    def test_merge_is_idempotent(self):
        store = FingerprintStore(MemoryKeyValueStore())
        store.merge(["a", "b"])
        store.merge(["b"])
        assert store.snapshot == frozenset({"a", "b"})


# =====================================================================
# Record store
# =====================================================================
class TestRecordStore:
    def test_save_and_load(self, tmp_path):
        store = SQLiteRecordStore(tmp_path / "receipts.db")
        record = ExtractionRecord(number=1, file_name="a.jpg").with_updates(
            code="4521", sender_name="محمد", phone_number="07701234567",
            confidence=88, extraction_method="ocr", submitted=True
        )
        assert store.save(record) is True
        store.save(record)

        assert store.get_count() == 1
        loaded = store.get(record.id)
        assert loaded.status == RecordStatus.COMPLETED
        assert loaded.sender_name == "محمد"
        assert loaded.submitted is True
        assert store.get("missing") is None

    def test_get_all_orders_by_number(self, tmp_path):
        store = SQLiteRecordStore(tmp_path / "receipts.db")
        store.save(ExtractionRecord(number=2))
        store.save(ExtractionRecord(number=1))
        assert [r.number for r in store.get_all()] == [1, 2]
        assert len(store.get_all(limit=1)) == 1
