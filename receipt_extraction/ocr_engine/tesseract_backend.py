"""
Tesseract OCR Backend.

This module provides OCR functionality using Tesseract (pytesseract).
Receipts mix Arabic and Latin script, so the default language is
``ara+eng``.

Features:
    - Word-level confidence scores
    - Line grouping in Tesseract's block/paragraph/line order
    - Configurable Tesseract parameters

Requirements:
    - Tesseract OCR installed on the system (with the Arabic traineddata)
    - pytesseract Python package

Author: ML Engineering Team
"""

import time
from typing import Dict, List, Optional, Tuple

import pytesseract
from PIL import Image

from receipt_extraction.config import get_config
from receipt_extraction.utils.logger import get_logger
from receipt_extraction.utils.exceptions import OCREngineNotAvailableError, OCRProcessingError
from .ocr_result import OCRLine, OCRResult, OCRWord

# Initialize module logger
logger = get_logger(__name__)


class TesseractBackend:
    """
    Tesseract OCR backend implementation.

    Attributes:
        language: Tesseract language code (e.g., "ara+eng")
        psm: Page Segmentation Mode (1-13)
        oem: OCR Engine Mode (0-3)
        extra_config: Additional Tesseract configuration

    Example:
        >>> backend = TesseractBackend()
        >>> result = backend.extract(image)
        >>> print(result.text)
    """

    def __init__(self, language: Optional[str] = None) -> None:
        """Initialize the Tesseract backend with configuration."""
        self.language = language or get_config("ocr.language", "ara+eng")
        self.psm = get_config("ocr.tesseract.psm", 6)
        self.oem = get_config("ocr.tesseract.oem", 3)
        self.extra_config = get_config("ocr.tesseract.config", "")

        self.version = self._check_dependencies()

        logger.debug(
            f"TesseractBackend initialized (lang={self.language}, "
            f"psm={self.psm}, oem={self.oem})"
        )

    def _check_dependencies(self) -> str:
        """
        Check if the Tesseract binary is available.

        Raises:
            OCREngineNotAvailableError: If Tesseract is not installed.
        """
        try:
            version = str(pytesseract.get_tesseract_version())
        except pytesseract.TesseractNotFoundError as e:
            raise OCREngineNotAvailableError(
                f"Tesseract OCR (not installed or not in PATH): {e}"
            )

        logger.info(f"Tesseract version: {version}")
        return version

    def _build_config(self) -> str:
        """Build the Tesseract configuration string."""
        config_parts = [
            f"--psm {self.psm}",
            f"--oem {self.oem}"
        ]

        if self.extra_config:
            config_parts.append(self.extra_config)

        return ' '.join(config_parts)

    def extract(self, image: Image.Image, language: Optional[str] = None) -> OCRResult:
        """
        Recognize text in an image.

        Args:
            image: PIL Image to process.
            language: Overrides the configured language for this call.

        Returns:
            OCRResult with text, words and average confidence.

        Raises:
            OCRProcessingError: If Tesseract fails.
        """
        start_time = time.time()
        language = language or self.language
        config = self._build_config()

        if image.mode != 'RGB':
            image = image.convert('RGB')

        logger.debug(f"Running Tesseract OCR (lang={language}, config: {config})")

        try:
            data = pytesseract.image_to_data(
                image,
                lang=language,
                config=config,
                output_type=pytesseract.Output.DICT
            )
        except (pytesseract.TesseractError, RuntimeError) as e:
            logger.error(f"OCR processing failed: {e}")
            raise OCRProcessingError("image", str(e))

        words = self._parse_tesseract_output(data)
        lines = self._group_into_lines(words)
        processing_time = time.time() - start_time

        result = OCRResult.from_lines(
            lines,
            words=words,
            language=language,
            engine="tesseract",
            processing_time=processing_time,
            metadata={'psm': self.psm, 'oem': self.oem, 'tesseract_version': self.version}
        )

        logger.info(
            f"OCR completed: {result.word_count} words, "
            f"avg confidence: {result.confidence:.1f}% "
            f"({processing_time:.2f}s)"
        )
        return result

    def _parse_tesseract_output(self, data: Dict[str, List]) -> List[OCRWord]:
        """
        Parse Tesseract output into OCRWord objects.

        Args:
            data: Dictionary output from image_to_data.

        Returns:
            List of OCRWord objects.
        """
        words = []

        for i in range(len(data['text'])):
            text = data['text'][i]

            # Skip empty text
            if not text or not text.strip():
                continue

            w = data['width'][i]
            h = data['height'][i]
            if w <= 0 or h <= 0:
                continue

            x = data['left'][i]
            y = data['top'][i]

            # Tesseract returns -1 for non-word elements
            conf = max(float(data['conf'][i]), 0.0)

            line_key: Tuple[int, int, int] = (
                data['block_num'][i],
                data['par_num'][i],
                data['line_num'][i],
            )

            words.append(OCRWord(
                text=text.strip(),
                bbox=(x, y, x + w, y + h),
                confidence=conf,
                line_key=line_key
            ))

        return words

    def _group_into_lines(self, words: List[OCRWord]) -> List[OCRLine]:
        """
        Group words into lines using Tesseract's layout keys.

        Words keep Tesseract's order within a line, which already follows
        the script direction.
        """
        line_groups: Dict[Tuple[int, int, int], List[OCRWord]] = {}

        for word in words:
            line_groups.setdefault(word.line_key, []).append(word)

        return [OCRLine(words=line_groups[key]) for key in sorted(line_groups)]
