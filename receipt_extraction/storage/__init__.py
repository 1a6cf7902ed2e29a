"""
Storage Module for the Receipt Extraction Pipeline.

    - Key-value stores (memory, SQLite) behind get/set/get_all(prefix)
    - Fingerprint store for deduplication
    - SQLite record store (persistence collaborator)
"""

from .kv_store import (
    KeyValueStore,
    MemoryKeyValueStore,
    SQLiteKeyValueStore,
    create_kv_store,
)
from .fingerprint_store import FingerprintStore, compute_fingerprint
from .record_store import SQLiteRecordStore

__all__ = [
    'KeyValueStore',
    'MemoryKeyValueStore',
    'SQLiteKeyValueStore',
    'create_kv_store',
    'FingerprintStore',
    'compute_fingerprint',
    'SQLiteRecordStore',
]
