"""
Data model of the receipt pipeline.

    - SourceFile: immutable image blob plus metadata
    - ExtractionRecord: one receipt's lifecycle and extracted fields
"""

from .source_file import SourceFile
from .extraction_record import (
    ExtractionRecord,
    ExtractionMethod,
    RecordStatus,
    FIELD_NAMES,
    REQUIRED_FIELDS,
)

__all__ = [
    'SourceFile',
    'ExtractionRecord',
    'ExtractionMethod',
    'RecordStatus',
    'FIELD_NAMES',
    'REQUIRED_FIELDS',
]
