"""
OCR Engine Module for Receipt Extraction.

This module provides the fallback extraction engine:
    - Async OCREngine (preprocessing, worker thread, hardening timeout)
    - Tesseract backend (ara+eng)
    - Standardized OCR result format
"""

from .engine import OCREngine
from .ocr_result import OCRLine, OCRResult, OCRWord
from .tesseract_backend import TesseractBackend

__all__ = [
    'OCREngine',
    'OCRResult',
    'OCRWord',
    'OCRLine',
    'TesseractBackend',
]
