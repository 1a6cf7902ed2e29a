"""
AI Extraction Result Data Class.

This module defines the value returned by the AI extraction service: the
text the model transcribed, a confidence score and the structured fields
it reported.

Author: ML Engineering Team
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass
class AIExtractionResult:
    """
    Result of one AI extraction call.

    Attributes:
        text: Full model response (transcribed text plus JSON block)
        confidence: Confidence score (0-100)
        fields: Structured fields keyed by record field name
        model_name: Model that produced the response
        processing_time: Time taken for the call in seconds

    Example:
        >>> result = await client.extract_structured(source_file)
        >>> result.fields.get('phone_number')
        '07701234567'
    """
    text: str = ""
    confidence: float = 0.0
    fields: Dict[str, str] = field(default_factory=dict)
    model_name: str = ""
    processing_time: float = 0.0

    @property
    def has_fields(self) -> bool:
        """Whether the model reported any non-empty field."""
        return any(value for value in self.fields.values())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format."""
        return {
            'text': self.text,
            'confidence': self.confidence,
            'fields': dict(self.fields),
            'model_name': self.model_name,
            'processing_time': self.processing_time,
        }

    def to_json(self, indent: int = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)
