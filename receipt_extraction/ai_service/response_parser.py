"""
Gemini Response Parser.

Validates a ``generateContent`` response body and turns it into the
response text plus the structured fields of its JSON block.
"""

from typing import Any, Dict, Tuple

from receipt_extraction.postprocessor.field_parser import extract_json_fields
from receipt_extraction.utils.exceptions import AIServiceError
from receipt_extraction.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)


def get_response_text(data: Dict[str, Any]) -> str:
    """
    Join the text parts of the first candidate.

    Raises:
        AIServiceError: If the prompt was blocked or no text came back.
    """
    block_reason = (data.get('promptFeedback') or {}).get('blockReason')
    if block_reason:
        raise AIServiceError(f"request blocked: {block_reason}")

    candidates = data.get('candidates') or []
    if not candidates:
        raise AIServiceError("response contained no candidates")

    parts = (candidates[0].get('content') or {}).get('parts') or []
    text = '\n'.join(part.get('text', '') for part in parts if part.get('text'))
    if not text.strip():
        raise AIServiceError("response contained no text")

    return text


def parse_response(data: Dict[str, Any]) -> Tuple[str, Dict[str, str]]:
    """
    Parse a response body.

    Args:
        data: Decoded JSON body of a successful call.

    Returns:
        (response text, structured fields). Fields are empty when the
        model returned no usable JSON block.

    Raises:
        AIServiceError: If the response carries no text.
    """
    text = get_response_text(data)
    fields = extract_json_fields(text)
    if not fields:
        logger.warning("AI response had no usable JSON block")
    return text, fields
