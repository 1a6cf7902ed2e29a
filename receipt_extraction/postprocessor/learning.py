"""
Learning Corrector Module.

Feedback layer that improves parsed fields using corrections users have
confirmed before. Every confirmed correction is stored as an entry
(``original_text``, ``original_fields``, ``corrected_fields``,
``created_at``) in a KeyValueStore under the ``learning:`` prefix.

When a new text resembles the text of a stored entry (word-set overlap),
the entry's corrections are replayed onto fields that look like the value
it corrected.

Storage is append-only; only the newest ``learning.max_entries`` entries
are consulted.

Author: ML Engineering Team
"""

import itertools
from typing import Any, Dict, List, Optional

from receipt_extraction.config import get_config
from receipt_extraction.models.extraction_record import FIELD_NAMES
from receipt_extraction.storage.kv_store import KeyValueStore
from receipt_extraction.utils.helpers import generate_id, now_iso, now_millis
from receipt_extraction.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)

# Orders entries stored within the same millisecond
_sequence = itertools.count()


def text_similarity(text1: str, text2: str) -> float:
    """
    Word-set overlap: common words divided by the larger word set.

    Example:
        >>> text_similarity("كود 123 بغداد", "كود 456 بغداد")
        0.6666666666666666
    """
    if not text1 or not text2:
        return 0.0

    words1 = set(text1.lower().split())
    words2 = set(text2.lower().split())
    if not words1 or not words2:
        return 0.0

    return len(words1 & words2) / max(len(words1), len(words2))


def value_similarity(value1: str, value2: str) -> float:
    """
    Character-set Jaccard similarity of two field values.

    Example:
        >>> value_similarity("abc", "abd")
        0.5
    """
    if not value1 or not value2:
        return 0.0

    value1, value2 = value1.lower(), value2.lower()
    if value1 == value2:
        return 1.0

    chars1, chars2 = set(value1), set(value2)
    return len(chars1 & chars2) / len(chars1 | chars2)


def _clean_fields(fields: Optional[Dict[str, Any]]) -> Dict[str, str]:
    fields = fields or {}
    return {
        name: str(fields.get(name) or '').strip()
        for name in FIELD_NAMES
    }


class LearningCorrector:
    """
    Replays confirmed user corrections onto newly parsed fields.

    Attributes:
        KEY_PREFIX: Key prefix of entries in the store
        enabled: Whether enhance() applies anything
        max_entries: Number of newest entries consulted
        text_threshold: Minimum word overlap for an entry to apply
        value_threshold: Minimum character similarity for a field to apply

    Example:
        >>> learning = LearningCorrector(MemoryKeyValueStore())
        >>> learning.add_correction(text, {'code': '1Z3'}, {'code': '123'})
        True
        >>> learning.enhance(text, {'code': '1Z3'})['code']
        '123'
    """

    KEY_PREFIX = "learning:"

    def __init__(
        self,
        kv_store: KeyValueStore,
        max_entries: Optional[int] = None,
        text_threshold: Optional[float] = None,
        value_threshold: Optional[float] = None,
        enabled: Optional[bool] = None
    ) -> None:
        self._kv_store = kv_store
        self.enabled = get_config("learning.enabled", True) if enabled is None else enabled
        self.max_entries = int(
            max_entries if max_entries is not None
            else get_config("learning.max_entries", 100)
        )
        self.text_threshold = float(
            text_threshold if text_threshold is not None
            else get_config("learning.text_similarity_threshold", 0.4)
        )
        self.value_threshold = float(
            value_threshold if value_threshold is not None
            else get_config("learning.value_similarity_threshold", 0.7)
        )

        logger.debug(
            f"LearningCorrector initialized (enabled={self.enabled}, "
            f"max_entries={self.max_entries})"
        )

    def add_correction(
        self,
        original_text: str,
        original_fields: Dict[str, Any],
        corrected_fields: Dict[str, Any]
    ) -> bool:
        """
        Store a confirmed correction.

        Args:
            original_text: Text the fields were parsed from.
            original_fields: Fields as extracted.
            corrected_fields: Fields as confirmed by the user.

        Returns:
            True if an entry was stored, False when nothing changed.

        Raises:
            StorageError: If the store write fails.
        """
        original = _clean_fields(original_fields)
        corrected = _clean_fields(corrected_fields)

        if original == corrected:
            logger.debug("Correction skipped, no field changed")
            return False

        key = f"{self.KEY_PREFIX}{now_millis():013d}:{next(_sequence):06d}:{generate_id()}"
        entry = {
            'original_text': original_text or '',
            'original_fields': original,
            'corrected_fields': corrected,
            'created_at': now_iso(),
        }
        self._kv_store.set(key, entry)

        changed = [name for name in FIELD_NAMES if original[name] != corrected[name]]
        logger.info(f"Learning entry stored ({', '.join(changed)})")
        return True

    def get_entries(self) -> List[Dict[str, Any]]:
        """Newest ``max_entries`` entries, oldest first."""
        stored = self._kv_store.get_all(self.KEY_PREFIX)
        keys = sorted(stored)
        if self.max_entries > 0:
            keys = keys[-self.max_entries:]
        return [stored[key] for key in keys]

    def enhance(self, text: str, parsed: Dict[str, str]) -> Dict[str, str]:
        """
        Apply stored corrections to parsed fields.

        A field is overridden when its current value is character-similar
        to the value the entry corrected, or filled when both the current
        and the entry's original value are empty. Empty corrected values
        are never applied.

        Args:
            text: Text the fields were parsed from.
            parsed: Parsed fields.

        Returns:
            New dictionary with corrections applied.
        """
        enhanced = dict(parsed)
        if not self.enabled or not text:
            return enhanced

        entries = self.get_entries()
        if not entries:
            return enhanced

        applied = 0
        for entry in entries:
            similarity = text_similarity(text, entry.get('original_text', ''))
            if similarity <= self.text_threshold:
                continue

            original_fields = entry.get('original_fields') or {}
            for field, corrected_value in (entry.get('corrected_fields') or {}).items():
                if not corrected_value:
                    continue

                current = (parsed.get(field) or '').strip()
                original_value = original_fields.get(field) or ''

                if not current and not original_value:
                    matches = True
                else:
                    matches = value_similarity(current, original_value) > self.value_threshold

                if matches and enhanced.get(field) != corrected_value:
                    enhanced[field] = corrected_value
                    applied += 1

        if applied:
            logger.info(f"Applied {applied} learned corrections")
        return enhanced

    def get_learning_stats(self) -> Dict[str, Any]:
        """
        Summarize stored corrections.

        Returns:
            Dictionary with total_corrections, last_updated and per-field
            field_stats {count, last_value} over the changed fields.
        """
        stored = self._kv_store.get_all(self.KEY_PREFIX)
        entries = [stored[key] for key in sorted(stored)]

        field_stats: Dict[str, Dict[str, Any]] = {}
        for entry in entries:
            original = entry.get('original_fields') or {}
            for field, value in (entry.get('corrected_fields') or {}).items():
                if value == original.get(field, ''):
                    continue
                stats = field_stats.setdefault(field, {'count': 0, 'last_value': ''})
                stats['count'] += 1
                stats['last_value'] = value

        return {
            'total_corrections': len(entries),
            'last_updated': entries[-1].get('created_at') if entries else None,
            'field_stats': field_stats,
        }
