#!/usr/bin/env python3
"""
Receipt Extraction Pipeline - Main Entry Point.

Runs the extraction pipeline over receipt images from the command line.
Every image goes through the ingestion gate, the batch scheduler and the
extraction orchestrator (Gemini first, Tesseract as fallback); the
resulting records are written to a JSON file and, when completed, to the
SQLite record store.

Usage:
    Command Line:
        python main.py --input receipt.jpg
        python main.py --input ./receipts/ --output results.json --no-ai

    Python:
        from main import run_extraction
        records = asyncio.run(run_extraction(["receipt.jpg"]))

Author: ML Engineering Team
Version: 1.0.0
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from receipt_extraction.config import ConfigurationManager, get_config
from receipt_extraction.models.source_file import SourceFile
from receipt_extraction.pipeline import ReceiptSession
from receipt_extraction.postprocessor import FieldValidator, LearningCorrector
from receipt_extraction.storage import SQLiteRecordStore, create_kv_store
from receipt_extraction.utils.helpers import ensure_directory
from receipt_extraction.utils.logger import ROOT_LOGGER_NAME, get_logger, setup_logger_from_config

SUPPORTED_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.webp', '.bmp', '.tif', '.tiff'}


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed argument namespace.
    """
    parser = argparse.ArgumentParser(
        description="Receipt Extraction Pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    Process a single receipt:
        python main.py --input receipt.jpg

    Process a directory with OCR only:
        python main.py --input ./receipts/ --no-ai --output results.json

    Show what was learned from corrections:
        python main.py --learning-stats
        """
    )

    parser.add_argument(
        "--input", "-i",
        type=str,
        help="Receipt image or directory of images"
    )

    parser.add_argument(
        "--output", "-o",
        type=str,
        default="outputs/records.json",
        help="JSON file the records are written to (default: outputs/records.json)"
    )

    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to custom configuration file"
    )

    parser.add_argument(
        "--no-ai",
        action="store_true",
        help="Skip the AI service and use OCR only"
    )

    parser.add_argument(
        "--no-database",
        action="store_true",
        help="Do not persist completed records"
    )

    parser.add_argument(
        "--db",
        type=str,
        default=None,
        help="Record database path (default: paths.records_database)"
    )

    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Receipts extracted concurrently (default: scheduler.batch_size)"
    )

    parser.add_argument(
        "--learning-stats",
        action="store_true",
        help="Print learning statistics and exit"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    args = parser.parse_args(argv)
    if not args.input and not args.learning_stats:
        parser.error("--input is required")
    return args


def collect_files(input_path: Path) -> List[Path]:
    """
    List the receipt images under a file or directory path.

    Raises:
        FileNotFoundError: If the path does not exist.
    """
    if not input_path.exists():
        raise FileNotFoundError(f"Input path not found: {input_path}")

    if input_path.is_file():
        return [input_path]

    return sorted(
        path for path in input_path.iterdir()
        if path.is_file() and path.suffix.lower() in SUPPORTED_EXTENSIONS
    )


async def run_extraction(
    files: List[Path],
    use_ai: bool = True,
    persist: bool = True,
    db_path: Optional[str] = None,
    batch_size: Optional[int] = None
) -> List[Dict[str, Any]]:
    """
    Run the pipeline over image files.

    Args:
        files: Image paths.
        use_ai: Try the AI service before OCR.
        persist: Save completed records to the record store.
        db_path: Record database path override.
        batch_size: Scheduler batch size override.

    Returns:
        The session's records as dictionaries, each with its validation
        report.
    """
    logger = get_logger(__name__)

    session = ReceiptSession(
        kv_store=create_kv_store(),
        record_store=SQLiteRecordStore(db_path) if persist else None,
        batch_size=batch_size,
        auto_start=False,
        use_ai=use_ai and get_config("ai.enabled", True)
    )

    # The gate caps each submission, so a directory goes in slices
    step = max(1, session.gate.max_files)
    accepted = []
    for start in range(0, len(files), step):
        accepted.extend(session.submit(
            SourceFile.from_path(path) for path in files[start:start + step]
        ))
    logger.info(f"{len(accepted)} of {len(files)} file(s) queued")

    try:
        await session.run()
    finally:
        await session.close()

    validator = FieldValidator()
    results = []
    for record in session.records:
        data = record.to_dict()
        data['validation'] = validator.validate_all(record.fields).to_dict()
        results.append(data)
    return results


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main function - entry point for command-line execution.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    try:
        args = parse_arguments(argv)

        config = ConfigurationManager(args.config)
        logger = setup_logger_from_config()
        if args.debug:
            logging.getLogger(ROOT_LOGGER_NAME).setLevel(logging.DEBUG)

        logger.info("=" * 60)
        logger.info("RECEIPT EXTRACTION PIPELINE")
        logger.info("=" * 60)
        logger.info(f"Version: {config.get('project.version', '1.0.0')}")

        if args.learning_stats:
            stats = LearningCorrector(create_kv_store()).get_learning_stats()
            print(json.dumps(stats, indent=2, ensure_ascii=False))
            return 0

        files = collect_files(Path(args.input))
        if not files:
            logger.error("No receipt images to process")
            return 1

        records = asyncio.run(run_extraction(
            files,
            use_ai=not args.no_ai,
            persist=not args.no_database,
            db_path=args.db,
            batch_size=args.batch_size
        ))

        output_path = Path(args.output)
        ensure_directory(output_path.parent)
        output_path.write_text(
            json.dumps(records, indent=2, ensure_ascii=False),
            encoding="utf-8"
        )

        completed = sum(1 for r in records if r['status'] == 'completed')
        logger.info("=" * 60)
        logger.info(
            f"Extraction complete: {completed}/{len(records)} completed. "
            f"Records written to {output_path}"
        )
        logger.info("=" * 60)
        return 0

    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
