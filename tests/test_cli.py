"""
Tests for the command-line entry point.
"""
import asyncio
import json
import logging

import pytest

from main import collect_files, main, parse_arguments, run_extraction
from receipt_extraction.config import ConfigurationManager
from receipt_extraction.ocr_engine import OCRResult
from receipt_extraction.utils.logger import ROOT_LOGGER_NAME

from conftest import RECEIPT_TEXT, make_image_bytes


@pytest.fixture()
def memory_config(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text(
        "storage:\n"
        "  backend: memory\n"
        "logging:\n"
        "  level: WARNING\n"
        "  console:\n"
        "    colorize: false\n",
        encoding="utf-8"
    )
    yield str(path)
    logging.getLogger(ROOT_LOGGER_NAME).handlers.clear()


class TestArguments:
    def test_input_is_required(self):
        with pytest.raises(SystemExit):
            parse_arguments([])

    def test_defaults(self):
        args = parse_arguments(["-i", "scans"])
        assert args.input == "scans"
        assert args.output == "outputs/records.json"
        assert not args.no_ai
        assert args.batch_size is None

    def test_learning_stats_needs_no_input(self):
        assert parse_arguments(["--learning-stats"]).learning_stats


class TestCollectFiles:
    def test_directory(self, tmp_path):
        for name in ("b.png", "a.JPG", "notes.txt"):
            (tmp_path / name).write_bytes(b"x")
        assert [p.name for p in collect_files(tmp_path)] == ["a.JPG", "b.png"]

    def test_single_file(self, tmp_path):
        path = tmp_path / "scan.pdf"
        path.write_bytes(b"x")
        assert collect_files(path) == [path]

    def test_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            collect_files(tmp_path / "missing")


class TestMain:
    def test_learning_stats(self, memory_config, capsys):
        assert main(["--learning-stats", "--config", memory_config]) == 0
        stats = json.loads(capsys.readouterr().out)
        assert stats["total_corrections"] == 0

    def test_missing_input(self, memory_config, tmp_path):
        assert main(["-i", str(tmp_path / "missing"), "--config", memory_config]) == 1

    def test_no_images(self, memory_config, tmp_path):
        (tmp_path / "notes.txt").write_text("x")
        assert main(["-i", str(tmp_path), "--config", memory_config]) == 1


class ReceiptBackend:
    """Tesseract stand-in that reads every image as a full receipt."""

    def __init__(self, language=None):
        self.language = language

    def extract(self, image, language=None):
        return OCRResult(text=RECEIPT_TEXT, confidence=90.0, engine="fake")


class TestRunExtraction:
    def test_directory_larger_than_submit_cap(self, tmp_path, monkeypatch):
        config = tmp_path / "settings.yaml"
        config.write_text(
            "storage:\n"
            "  backend: memory\n"
            "scheduler:\n"
            "  batch_delay_ms: 0\n"
            "ingestion:\n"
            "  max_files_per_submit: 5\n"
            "paths:\n"
            f"  preview_dir: \"{tmp_path / 'previews'}\"\n",
            encoding="utf-8"
        )
        ConfigurationManager(str(config))
        monkeypatch.setattr(
            "receipt_extraction.ocr_engine.engine.TesseractBackend", ReceiptBackend
        )

        scans = tmp_path / "scans"
        scans.mkdir()
        for i in range(12):
            (scans / f"{i:02d}.png").write_bytes(make_image_bytes())

        records = asyncio.run(
            run_extraction(collect_files(scans), use_ai=False, persist=False)
        )
        assert len(records) == 12
        assert [r['file_name'] for r in records] == [f"{i:02d}.png" for i in range(12)]
        assert all(r['status'] == 'completed' for r in records)
