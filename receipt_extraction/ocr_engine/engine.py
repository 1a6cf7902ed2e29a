"""
Main OCR Engine Module.

This module provides the OCREngine class, the fallback extraction engine
of the pipeline. It decodes the receipt image, applies the preprocessing
of the requested quality preset and runs the backend in a worker thread,
since Tesseract is CPU-bound and blocking.

Usage:
    from receipt_extraction.ocr_engine import OCREngine

    engine = OCREngine()
    result = await engine.recognize(image_bytes, language="ara+eng", quality="balanced")
    print(result.text, result.confidence)

Author: ML Engineering Team
"""

import asyncio
from typing import Any, Optional

from PIL import Image

from receipt_extraction.config import get_config
from receipt_extraction.input_handler.image_processor import ImageProcessor, QUALITY_PRESETS
from receipt_extraction.utils.logger import get_logger
from receipt_extraction.utils.exceptions import CorruptedFileError, OCRProcessingError
from .ocr_result import OCRResult
from .tesseract_backend import TesseractBackend

# Initialize module logger
logger = get_logger(__name__)


class OCREngine:
    """
    Asynchronous OCR engine over a synchronous backend.

    The backend is created on first use so that constructing the engine
    never requires the Tesseract binary.

    Attributes:
        language: Default OCR language
        quality: Default quality preset ("fast", "balanced", "accurate")
        timeout: Seconds before a recognition is abandoned (None = no limit)

    Example:
        >>> engine = OCREngine()
        >>> result = await engine.recognize(data)
        >>> print(f"Average confidence: {result.confidence:.1f}%")
    """

    def __init__(
        self,
        backend: Optional[Any] = None,
        image_processor: Optional[ImageProcessor] = None,
        language: Optional[str] = None,
        quality: Optional[str] = None,
        timeout: Optional[float] = None
    ) -> None:
        """
        Initialize the OCR engine.

        Args:
            backend: Object with ``extract(image, language) -> OCRResult``.
                If None, a TesseractBackend is created on first use.
            image_processor: Preprocessing pipeline.
            language: Default language. If None, uses configuration.
            quality: Default quality preset. If None, uses configuration.
            timeout: Hardening timeout in seconds. If None, uses
                configuration (0 disables it).
        """
        self._backend = backend
        self.image_processor = image_processor or ImageProcessor()
        self.language = language or get_config("ocr.language", "ara+eng")
        self.quality = quality or get_config("ocr.quality", "balanced")

        if timeout is None:
            timeout = get_config("ocr.timeout_seconds", 60)
        self.timeout = float(timeout) if timeout else None

        logger.info(
            f"OCR Engine initialized (lang={self.language}, quality={self.quality}, "
            f"timeout={self.timeout or 'none'})"
        )

    @property
    def backend(self) -> Any:
        """The OCR backend, created on first access."""
        if self._backend is None:
            self._backend = TesseractBackend(self.language)
        return self._backend

    async def recognize(
        self,
        image_bytes: bytes,
        language: Optional[str] = None,
        quality: Optional[str] = None
    ) -> OCRResult:
        """
        Recognize text in an encoded image.

        Args:
            image_bytes: Encoded image (JPEG, PNG, ...).
            language: OCR language, defaults to the engine's.
            quality: Quality preset, defaults to the engine's.

        Returns:
            OCRResult with text and confidence.

        Raises:
            OCRProcessingError: If the image cannot be decoded, recognition
                fails or the hardening timeout expires.
            OCREngineNotAvailableError: If Tesseract is not installed.
        """
        language = language or self.language
        quality = quality or self.quality
        if quality not in QUALITY_PRESETS:
            logger.warning(f"Unknown OCR quality '{quality}', using 'balanced'")
            quality = "balanced"

        try:
            image = self.image_processor.load(image_bytes)
        except CorruptedFileError as e:
            raise OCRProcessingError("image", e.message)

        image = self.image_processor.prepare_for_ocr(image, quality=quality)

        work = asyncio.to_thread(self._extract, image, language)
        try:
            if self.timeout:
                result = await asyncio.wait_for(work, timeout=self.timeout)
            else:
                result = await work
        except asyncio.TimeoutError:
            raise OCRProcessingError("image", f"timed out after {self.timeout:g}s")

        logger.debug(f"OCR recognized {len(result.text)} chars ({quality})")
        return result

    def _extract(self, image: Image.Image, language: str) -> OCRResult:
        return self.backend.extract(image, language)
