"""
Post-Processing Module for Receipt Extraction.

This module handles everything between raw extracted text and a record:
    - Field parsing (ordered pattern tables, embedded JSON)
    - Province correction (dictionary, heuristics, fuzzy matching)
    - Phone and price normalization
    - Learning from confirmed corrections
    - Confidence scoring and field validation
"""

from .province_corrector import ProvinceCorrector, string_similarity
from .normalizers import PhoneNormalizer, PriceNormalizer
from .field_parser import FieldParser, extract_json_fields
from .learning import LearningCorrector
from .confidence import ConfidenceCalculator
from .validators import FieldValidator, ValidationResult

__all__ = [
    'ProvinceCorrector',
    'string_similarity',
    'PhoneNormalizer',
    'PriceNormalizer',
    'FieldParser',
    'extract_json_fields',
    'LearningCorrector',
    'ConfidenceCalculator',
    'FieldValidator',
    'ValidationResult',
]
