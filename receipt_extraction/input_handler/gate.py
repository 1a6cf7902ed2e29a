"""
Ingestion Gate Module.

This module provides the IngestionGate, the entry point for receipt images.
For every submitted batch of files it:

    1. rejects non-image MIME types (one notification per file)
    2. caps the number of files accepted per call (one aggregate notice)
    3. drops duplicates, known from earlier sessions, in flight, or repeated
       within the same call
    4. rejects images that cannot be decoded
    5. writes a preview thumbnail and creates a pending ExtractionRecord

Accepted files are returned as AcceptedFile values; the caller appends
their records to its collection and their queue items to the queue.

Fingerprints of accepted files stay in the in-flight set until extraction
finishes: ``complete()`` moves them into the durable FingerprintStore,
``release()`` forgets them so a failed file can be submitted again.

Usage:
    gate = IngestionGate(fingerprint_store, notifier)
    accepted = gate.submit([SourceFile.from_path("scan.jpg")])
"""

from dataclasses import dataclass
from pathlib import Path
from typing import FrozenSet, Iterable, List, Optional, Union

from receipt_extraction.config import get_config
from receipt_extraction.models.extraction_record import ExtractionRecord
from receipt_extraction.models.source_file import SourceFile
from receipt_extraction.storage.fingerprint_store import FingerprintStore, compute_fingerprint
from receipt_extraction.utils.exceptions import (
    CorruptedFileError,
    DuplicateFileError,
    StorageError,
    UnsupportedFileTypeError,
)
from receipt_extraction.utils.helpers import generate_id
from receipt_extraction.utils.logger import get_logger
from receipt_extraction.utils.notifications import Notifier

from .image_processor import ImageProcessor


# Initialize module logger
logger = get_logger(__name__)


@dataclass(frozen=True)
class QueueItem:
    """
    One unit of work waiting for extraction.

    Attributes:
        record_id: Record the extraction result belongs to
        file: Source image (with its preview reference)
        fingerprint: Identity computed at ingestion
    """
    record_id: str
    file: SourceFile
    fingerprint: str


@dataclass(frozen=True)
class AcceptedFile:
    """A file that passed the gate: its new record and its queue item."""
    record: ExtractionRecord
    item: QueueItem


class IngestionGate:
    """
    Accepts, filters and deduplicates submitted receipt images.

    Attributes:
        max_files: Maximum files accepted per submit() call
        preview_dir: Directory preview thumbnails are written to
        previews_enabled: Whether previews are generated
        next_number: Number given to the next accepted record

    Example:
        >>> gate = IngestionGate(FingerprintStore(MemoryKeyValueStore()), Notifier())
        >>> accepted = gate.submit(files)
        >>> [a.record.number for a in accepted]
        [1, 2]
    """

    def __init__(
        self,
        fingerprint_store: FingerprintStore,
        notifier: Notifier,
        image_processor: Optional[ImageProcessor] = None,
        max_files: Optional[int] = None,
        preview_dir: Optional[Union[str, Path]] = None,
        previews_enabled: Optional[bool] = None,
        start_number: int = 1
    ) -> None:
        self.fingerprint_store = fingerprint_store
        self.notifier = notifier
        self.image_processor = image_processor or ImageProcessor()

        self.max_files = int(
            max_files if max_files is not None
            else get_config("ingestion.max_files_per_submit", 10)
        )
        self.preview_dir = Path(
            preview_dir or get_config("paths.preview_dir", "data/previews")
        )
        self.previews_enabled = (
            get_config("ingestion.preview.enabled", True)
            if previews_enabled is None else previews_enabled
        )
        self.next_number = start_number

        self._in_flight: FrozenSet[str] = frozenset()

        logger.info(
            f"IngestionGate initialized (max_files={self.max_files}, "
            f"previews={'on' if self.previews_enabled else 'off'})"
        )

    @property
    def in_flight(self) -> FrozenSet[str]:
        """Fingerprints accepted but not yet completed."""
        return self._in_flight

    def submit(self, files: Iterable[SourceFile]) -> List[AcceptedFile]:
        """
        Filter submitted files and accept the survivors.

        Rejections are reported through the notifier; they never raise.

        Args:
            files: Submitted files, in submission order.

        Returns:
            AcceptedFile per accepted file, in submission order.
        """
        images = []
        for source in files:
            if source.is_image:
                images.append(source)
            else:
                error = UnsupportedFileTypeError(source.name, source.mime_type)
                self.notifier.warning("Unsupported file", error.message)

        if len(images) > self.max_files:
            dropped = len(images) - self.max_files
            images = images[:self.max_files]
            self.notifier.warning(
                "Too many files",
                f"Only {self.max_files} images are accepted at once; "
                f"{dropped} file(s) were not added"
            )

        accepted: List[AcceptedFile] = []
        for source in images:
            result = self._accept(source)
            if result is not None:
                accepted.append(result)

        if accepted:
            logger.info(f"Accepted {len(accepted)} of {len(images)} image(s)")
        return accepted

    def _accept(self, source: SourceFile) -> Optional[AcceptedFile]:
        """Run the duplicate, decode and preview steps for one image."""
        record_id = generate_id()
        fingerprint = compute_fingerprint(source, record_id)

        if fingerprint in self._in_flight or self.fingerprint_store.contains(fingerprint):
            error = DuplicateFileError(source.name, fingerprint)
            self.notifier.info("Duplicate skipped", error.message)
            return None

        try:
            image = self.image_processor.load(source.data, source.name)
        except CorruptedFileError as e:
            self.notifier.error("Unreadable image", e.message)
            return None

        if self.previews_enabled:
            preview_path = self.image_processor.create_preview(
                image, self.preview_dir / f"{record_id}.jpg"
            )
            source = source.with_preview(preview_path.resolve().as_uri())

        self._in_flight = self._in_flight | {fingerprint}

        record = ExtractionRecord(
            id=record_id,
            number=self.next_number,
            file=source,
            file_name=source.name,
            preview_url=source.preview_url,
            storage_path=source.storage_path,
        )
        self.next_number += 1

        logger.debug(f"Accepted {source.name} as record #{record.number}")
        return AcceptedFile(
            record=record,
            item=QueueItem(record_id=record_id, file=source, fingerprint=fingerprint)
        )

    def complete(self, fingerprint: str, metadata: Optional[dict] = None) -> None:
        """
        Mark an in-flight file as processed.

        The fingerprint leaves the in-flight set and is written to the
        FingerprintStore. A failed durable write is logged; the session set
        still holds the fingerprint.
        """
        self._in_flight = self._in_flight - {fingerprint}
        try:
            self.fingerprint_store.add(fingerprint, metadata)
        except StorageError as e:
            logger.error(f"Could not persist fingerprint {fingerprint}: {e}")

    def release(self, fingerprint: str) -> None:
        """Forget an in-flight fingerprint so the file can be retried."""
        self._in_flight = self._in_flight - {fingerprint}
