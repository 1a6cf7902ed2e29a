"""
Pipeline Module for Receipt Extraction.

This module coordinates extraction over many receipts:
    - ExtractionOrchestrator (AI with timeout, OCR fallback, parsing)
    - BatchScheduler (concurrent, paced batches with progress)
    - ReceiptSession (records, queue and user operations)
    - Fire-and-forget persistence supervision
"""

from .orchestrator import EngineOutput, ExtractionOrchestrator
from .persistence import PersistenceSupervisor
from .races import race, race_timeout
from .scheduler import BatchScheduler, RunSummary
from .session import ReceiptSession
from .work_queue import WorkQueue

__all__ = [
    'EngineOutput',
    'ExtractionOrchestrator',
    'PersistenceSupervisor',
    'race',
    'race_timeout',
    'BatchScheduler',
    'RunSummary',
    'ReceiptSession',
    'WorkQueue',
]
