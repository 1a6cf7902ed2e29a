"""
OCR output types.

Tesseract reports individual words with their layout position; the
orchestrator only needs the joined text and a confidence, so OCRResult
carries both views.

Author: ML Engineering Team
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


@dataclass
class OCRWord:
    """
    One recognized token.

    Attributes:
        text: Token text as read by the engine.
        bbox: (left, top, right, bottom) in pixels of the prepared image.
        confidence: Engine confidence, 0-100.
        line_key: (block, paragraph, line) position used to rebuild lines.
    """
    text: str
    bbox: Tuple[int, int, int, int]
    confidence: float = 0.0
    line_key: Tuple[int, int, int] = (0, 0, 0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'text': self.text,
            'bbox': list(self.bbox),
            'confidence': self.confidence,
        }


@dataclass
class OCRLine:
    """Words sharing a line_key, in reading order."""
    words: List[OCRWord] = field(default_factory=list)

    @property
    def text(self) -> str:
        return ' '.join(word.text for word in self.words)


@dataclass
class OCRResult:
    """
    Text recognized from one receipt image.

    Attributes:
        text: Recognized text, one receipt line per text line.
        confidence: Mean word confidence (0-100).
        words: Word boxes, when the backend reports them.
        language: Tesseract language string used.
        engine: Backend name.
        processing_time: Seconds spent recognizing.
        metadata: Backend-specific extras (quality preset, image size).
    """
    text: str = ""
    confidence: float = 0.0
    words: List[OCRWord] = field(default_factory=list)
    language: str = "ara+eng"
    engine: str = "unknown"
    processing_time: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_lines(
        cls,
        lines: List[OCRLine],
        words: Optional[List[OCRWord]] = None,
        **kwargs: Any
    ) -> 'OCRResult':
        """Join lines into text; confidence is the mean over all words."""
        if words is None:
            words = [word for line in lines for word in line.words]
        confidence = sum(w.confidence for w in words) / len(words) if words else 0.0
        return cls(
            text='\n'.join(line.text for line in lines),
            confidence=confidence,
            words=words,
            **kwargs
        )

    @property
    def word_count(self) -> int:
        return len(self.words)

    def is_empty(self) -> bool:
        """True when nothing but whitespace was recognized."""
        return not self.text.strip()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'text': self.text,
            'confidence': self.confidence,
            'word_count': self.word_count,
            'language': self.language,
            'engine': self.engine,
            'processing_time': self.processing_time,
            'words': [w.to_dict() for w in self.words],
            'metadata': self.metadata
        }

    def __repr__(self) -> str:
        return (
            f"OCRResult(chars={len(self.text)}, words={self.word_count}, "
            f"confidence={self.confidence:.1f}%)"
        )
