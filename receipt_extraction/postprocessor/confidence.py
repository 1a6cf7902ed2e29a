"""
Confidence Calculator Module.

Estimates a 0-100 confidence score from the parsed fields themselves,
used when an extraction engine reports no confidence.

Author: ML Engineering Team
"""

import re
from typing import Dict, Optional

from receipt_extraction.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)


class ConfidenceCalculator:
    """
    Weighted field-presence score.

    Each present field earns its weight; a field that is present but
    malformed earns a fraction of it.

    Example:
        >>> ConfidenceCalculator().calculate({'code': '123', 'phone_number': '07701234567'})
        40
    """

    FIELD_WEIGHTS: Dict[str, int] = {
        'code': 20,
        'sender_name': 15,
        'phone_number': 20,
        'province': 15,
        'price': 15,
        'company_name': 15,
    }

    MALFORMED_FACTOR = 0.5
    SHORT_TEXT_FACTOR = 0.7

    def __init__(self, weights: Optional[Dict[str, int]] = None) -> None:
        self.weights = dict(weights or self.FIELD_WEIGHTS)

    def calculate(self, fields: Dict[str, str]) -> int:
        """
        Score parsed fields.

        Args:
            fields: Field name to value.

        Returns:
            Integer score between 0 and 100.
        """
        score = 0.0

        for field, weight in self.weights.items():
            value = str(fields.get(field) or '').strip()
            if not value:
                continue
            score += weight * self._field_factor(field, value)

        result = min(round(score), 100)
        logger.debug(f"Calculated confidence {result} from {len(fields)} fields")
        return result

    def _field_factor(self, field: str, value: str) -> float:
        if field == 'code':
            return 1.0 if value.isdigit() else self.MALFORMED_FACTOR

        if field == 'phone_number':
            digits = re.sub(r'\D', '', value)
            return 1.0 if len(digits) == 11 else self.MALFORMED_FACTOR

        if field == 'price':
            numeric = re.fullmatch(r'\d+(?:\.\d+)?', value)
            return 1.0 if numeric else self.MALFORMED_FACTOR

        # Text fields
        return 1.0 if len(value) > 2 else self.SHORT_TEXT_FACTOR
