"""
Fingerprint Store Module.

Keeps the set of fingerprints of receipts whose extraction already
completed, so the same receipt is never processed twice, within a session
or across sessions.

A fingerprint is derived from a file's stable identity, in priority order:

    1. durable storage path
    2. preview reference
    3. "name:size:lastModified"
    4. record identifier

The store merges fingerprints persisted in a KeyValueStore (prefix
``fingerprint:``) with the ones added during the current session. The
in-memory set is a frozenset replaced on every write, always derived from
the latest snapshot.

Author: ML Engineering Team
"""

from typing import Dict, FrozenSet, Iterable, Optional

from receipt_extraction.models.source_file import SourceFile
from receipt_extraction.storage.kv_store import KeyValueStore
from receipt_extraction.utils.helpers import now_iso
from receipt_extraction.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)


def compute_fingerprint(
    source: Optional[SourceFile],
    record_id: Optional[str] = None
) -> str:
    """
    Derive the fingerprint of a source file.

    Args:
        source: SourceFile to identify (may be None once released).
        record_id: Fallback identity when the file carries no metadata.

    Returns:
        Fingerprint string.

    Raises:
        ValueError: If neither the file nor a record id identify the receipt.

    Example:
        >>> compute_fingerprint(SourceFile.from_bytes(b"..", "a.jpg", last_modified=5))
        'a.jpg:2:5'
    """
    if source is not None:
        if source.storage_path:
            return source.storage_path
        if source.preview_url:
            return source.preview_url
        if source.name:
            return f"{source.name}:{source.size}:{source.last_modified}"

    if record_id:
        return record_id

    raise ValueError("Cannot fingerprint a file without metadata or record id")


class FingerprintStore:
    """
    Persistent set of fingerprints of processed receipts.

    Attributes:
        KEY_PREFIX: Key prefix used in the durable store

    Example:
        >>> store = FingerprintStore(MemoryKeyValueStore())
        >>> store.add("a.jpg:10:0")
        >>> "a.jpg:10:0" in store
        True
    """

    KEY_PREFIX = "fingerprint:"

    def __init__(self, kv_store: KeyValueStore) -> None:
        """
        Initialize the store, loading fingerprints persisted earlier.

        Args:
            kv_store: Durable key-value store.
        """
        self._kv_store = kv_store
        self._fingerprints: FrozenSet[str] = frozenset()
        self.refresh()

        logger.info(f"FingerprintStore initialized ({len(self._fingerprints)} known)")

    def _key(self, fingerprint: str) -> str:
        return f"{self.KEY_PREFIX}{fingerprint}"

    def refresh(self) -> None:
        """Merge the durable fingerprints into the session set."""
        durable = self._kv_store.get_all(self.KEY_PREFIX)
        self.merge(key[len(self.KEY_PREFIX):] for key in durable)

    def merge(self, fingerprints: Iterable[str]) -> None:
        """Idempotently union fingerprints into the session set."""
        self._fingerprints = self._fingerprints | frozenset(fingerprints)

    def contains(self, fingerprint: str) -> bool:
        """
        Check a fingerprint against the session set and the durable store.

        The durable store is consulted on a session miss so that fingerprints
        written by another session are honored.
        """
        if fingerprint in self._fingerprints:
            return True

        if self._kv_store.get(self._key(fingerprint)) is not None:
            self.merge([fingerprint])
            return True

        return False

    def add(self, fingerprint: str, metadata: Optional[Dict[str, str]] = None) -> None:
        """
        Record a fingerprint as processed.

        The session set is updated first; the durable write follows and
        may raise a StorageError, which the caller decides how to handle.
        """
        self.merge([fingerprint])

        entry = {'fingerprint': fingerprint, 'added_at': now_iso()}
        if metadata:
            entry.update(metadata)

        self._kv_store.set(self._key(fingerprint), entry)
        logger.debug(f"Fingerprint stored: {fingerprint}")

    @property
    def snapshot(self) -> FrozenSet[str]:
        """Current session set (immutable)."""
        return self._fingerprints

    def __contains__(self, fingerprint: str) -> bool:
        return self.contains(fingerprint)

    def __len__(self) -> int:
        return len(self._fingerprints)
