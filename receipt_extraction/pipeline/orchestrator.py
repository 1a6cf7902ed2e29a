"""
Extraction Orchestrator Module.

Drives one receipt image through extraction:

    1. mark the record ``processing`` with a fresh processing id
    2. AI extraction raced against a timer (the loser is cancelled)
    3. on timeout or any AI failure, OCR fallback
    4. field parsing, province correction and learned corrections; AI
       structured fields override the regex results
    5. ``completed`` when code, sender and phone are present, ``pending``
       when one of them is missing, ``error`` when both engines failed

Completed records are handed to the persistence supervisor without waiting
for the write. ``extract`` never raises: engine failures become record
state.

Usage:
    orchestrator = ExtractionOrchestrator(ai_service=GeminiClient())
    record = await orchestrator.extract(source_file, record)

Author: ML Engineering Team
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from receipt_extraction.config import get_config
from receipt_extraction.models.extraction_record import (
    FIELD_NAMES,
    ExtractionMethod,
    ExtractionRecord,
    RecordStatus,
)
from receipt_extraction.models.source_file import SourceFile
from receipt_extraction.ocr_engine import OCREngine
from receipt_extraction.postprocessor import (
    ConfidenceCalculator,
    FieldParser,
    LearningCorrector,
)
from receipt_extraction.utils.exceptions import (
    AIServiceError,
    AIServiceTimeoutError,
    ExtractionError,
    OCRProcessingError,
    RecordStateError,
)
from receipt_extraction.utils.helpers import generate_id
from receipt_extraction.utils.logger import get_logger
from .persistence import PersistenceSupervisor
from .races import race_timeout

# Initialize module logger
logger = get_logger(__name__)

EXTRACTION_FAILED_MESSAGE = "Could not extract text from the image. Edit the fields manually or retry."

REPROCESSABLE_STATUSES = (RecordStatus.PENDING, RecordStatus.COMPLETED, RecordStatus.ERROR)


@dataclass
class EngineOutput:
    """Text produced by whichever engine succeeded."""
    method: str
    text: str
    confidence: float = 0.0
    fields: Dict[str, str] = field(default_factory=dict)


class ExtractionOrchestrator:
    """
    Runs the two-engine extraction strategy for single records.

    Attributes:
        ai_service: Object with async ``extract_structured(source_file)``;
            None disables the AI engine
        ocr_engine: Object with async ``recognize(image_bytes)``
        field_parser: FieldParser applied to engine text
        learning: LearningCorrector applied after parsing (optional)
        confidence_calculator: Used when the engine reports no confidence
        persistence: PersistenceSupervisor receiving completed records
        ai_timeout: Seconds the AI call may take before OCR takes over

    Example:
        >>> orchestrator = ExtractionOrchestrator(ai_service=None, ocr_engine=OCREngine())
        >>> record = await orchestrator.extract(source, record)
        >>> record.extraction_method
        'ocr'
    """

    def __init__(
        self,
        ai_service: Optional[Any] = None,
        ocr_engine: Optional[Any] = None,
        field_parser: Optional[FieldParser] = None,
        learning: Optional[LearningCorrector] = None,
        confidence_calculator: Optional[ConfidenceCalculator] = None,
        persistence: Optional[PersistenceSupervisor] = None,
        ai_timeout: Optional[float] = None,
        use_ai: Optional[bool] = None
    ) -> None:
        self.ai_service = ai_service
        self.ocr_engine = ocr_engine or OCREngine()
        self.field_parser = field_parser or FieldParser()
        self.learning = learning
        self.confidence_calculator = confidence_calculator or ConfidenceCalculator()
        self.persistence = persistence or PersistenceSupervisor()
        self.ai_timeout = float(
            ai_timeout if ai_timeout is not None else get_config("ai.timeout_seconds", 15)
        )
        self.use_ai = get_config("ai.enabled", True) if use_ai is None else use_ai

        logger.info(
            f"ExtractionOrchestrator initialized (ai={'on' if self.ai_enabled else 'off'}, "
            f"ai_timeout={self.ai_timeout:g}s)"
        )

    @property
    def ai_enabled(self) -> bool:
        """Whether the AI engine is tried first."""
        return bool(self.use_ai) and self.ai_service is not None

    @staticmethod
    def begin(record: ExtractionRecord) -> ExtractionRecord:
        """Mark a record as processing under a new processing id."""
        return record.with_updates(
            status=RecordStatus.PROCESSING,
            processing_id=generate_id(),
            error=None
        )

    async def extract(self, file: SourceFile, record: ExtractionRecord) -> ExtractionRecord:
        """
        Extract fields for one record.

        Args:
            file: Receipt image.
            record: Record to update; marked processing first unless it
                already is.

        Returns:
            The updated record (completed, pending or error). The
            processing id of the attempt is preserved so callers can
            discard stale results.
        """
        if record.status != RecordStatus.PROCESSING:
            record = self.begin(record)

        try:
            output = await self._run_engines(file)
        except ExtractionError as e:
            logger.error(f"Extraction failed for {file.name}: {e}")
            return record.with_updates(status=RecordStatus.ERROR, error=EXTRACTION_FAILED_MESSAGE)
        except Exception as e:
            logger.exception(f"Unexpected extraction failure for {file.name}: {e}")
            return record.with_updates(status=RecordStatus.ERROR, error=EXTRACTION_FAILED_MESSAGE)

        updated = self._apply(record, output)

        if updated.status == RecordStatus.COMPLETED:
            self.persistence.persist(updated)
        else:
            logger.info(
                f"Record #{updated.number} awaiting input: "
                f"missing {', '.join(updated.missing_required_fields)}"
            )
        return updated

    async def reprocess(
        self,
        file: SourceFile,
        record: ExtractionRecord,
        on_begin: Optional[Callable[[ExtractionRecord], None]] = None
    ) -> ExtractionRecord:
        """
        Run extraction again for a record that finished processing.

        Args:
            file: Receipt image.
            record: Completed, pending or failed record.
            on_begin: Called with the processing record before the engines
                run, so the caller can publish the new processing id.

        Raises:
            RecordStateError: If the record is currently processing.
        """
        if record.status not in REPROCESSABLE_STATUSES:
            raise RecordStateError(record.id, record.status, "reprocess")

        processing = self.begin(record)
        if on_begin is not None:
            on_begin(processing)
        return await self.extract(file, processing)

    async def _run_engines(self, file: SourceFile) -> EngineOutput:
        if self.ai_enabled:
            try:
                result = await race_timeout(
                    self.ai_service.extract_structured(file),
                    self.ai_timeout,
                    AIServiceTimeoutError(self.ai_timeout)
                )
                return EngineOutput(
                    method=ExtractionMethod.AI,
                    text=result.text,
                    confidence=result.confidence,
                    fields=dict(result.fields)
                )
            except AIServiceError as e:
                logger.warning(f"AI extraction failed for {file.name}, using OCR: {e}")
            except Exception as e:
                logger.exception(f"AI extraction crashed for {file.name}, using OCR: {e}")

        result = await self.ocr_engine.recognize(file.data)
        if result.is_empty():
            raise OCRProcessingError(file.name, "no text recognized")

        return EngineOutput(
            method=ExtractionMethod.OCR,
            text=result.text,
            confidence=result.confidence
        )

    def _apply(self, record: ExtractionRecord, output: EngineOutput) -> ExtractionRecord:
        """Parse engine text into the record's fields."""
        parsed = self.field_parser.parse(output.text)

        if output.fields:
            overrides = {name: value for name, value in output.fields.items() if value}
            if overrides.get('province'):
                overrides['province'] = self.field_parser.province_corrector.correct(
                    overrides['province']
                )
            parsed.update(self.field_parser.normalize_fields(overrides))

        if self.learning is not None:
            parsed = self.learning.enhance(output.text, parsed)

        if output.confidence > 0:
            confidence = int(round(min(max(output.confidence, 0), 100)))
        else:
            confidence = self.confidence_calculator.calculate(parsed)

        # Values extraction did not find keep what the record already had
        found = {name: parsed[name] for name in FIELD_NAMES if parsed.get(name)}

        updated = record.with_updates(
            status=RecordStatus.PENDING,
            extracted_text=output.text,
            confidence=confidence,
            extraction_method=output.method,
            error=None,
            **found
        )
        updated = updated.with_updates(parsed_fields=updated.fields)

        logger.info(
            f"Record #{updated.number}: {len(found)} fields via {output.method} "
            f"({confidence}%), status={updated.status}"
        )
        return updated
