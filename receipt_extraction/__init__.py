"""
Receipt Extraction Pipeline - Source Package.

This package turns photos of paper shipment receipts into structured
shipment records (code, sender, phone, province, price, company).

Modules:
    - input_handler: Source files, previews and the ingestion gate
    - storage: Key-value stores, fingerprint store and record sink
    - ocr_engine: Tesseract text recognition (fallback engine)
    - ai_service: Gemini structured extraction (primary engine)
    - postprocessor: Field parsing, place-name and learning correction
    - pipeline: Records, orchestrator, batch scheduler and session

Architecture:
    Files → Ingestion Gate → Queue → Batch Scheduler → Orchestrator
                                                         ↓
                        AI (timeout) ─fallback→ OCR → Parser → Correctors
                                                         ↓
                                                   Record store
"""

__version__ = "1.0.0"
__author__ = "ML Engineering Team"

__all__ = [
    'input_handler',
    'storage',
    'ocr_engine',
    'ai_service',
    'postprocessor',
    'pipeline',
    'utils',
]
