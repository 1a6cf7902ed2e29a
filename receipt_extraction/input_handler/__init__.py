"""
Input Handler Module for Receipt Extraction.

This module handles everything before extraction:
    - Ingestion gate (MIME filter, per-call cap, deduplication, previews)
    - Image decoding, normalization and OCR preprocessing
"""

from .image_processor import ImageProcessor, QUALITY_PRESETS
from .gate import AcceptedFile, IngestionGate, QueueItem

__all__ = [
    'ImageProcessor',
    'QUALITY_PRESETS',
    'AcceptedFile',
    'IngestionGate',
    'QueueItem',
]
