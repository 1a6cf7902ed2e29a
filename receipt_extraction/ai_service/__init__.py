"""
AI Extraction Service Module for Receipt Extraction.

The primary extraction engine: a Gemini ``generateContent`` client that
returns the transcribed receipt text together with structured fields.

Author: ML Engineering Team
"""

from .extraction_result import AIExtractionResult
from .gemini_client import GeminiClient
from .prompts import get_extraction_prompt
from .response_parser import parse_response

__all__ = [
    'AIExtractionResult',
    'GeminiClient',
    'get_extraction_prompt',
    'parse_response',
]
