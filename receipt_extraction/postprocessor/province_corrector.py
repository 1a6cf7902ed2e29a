"""
Place-Name Corrector Module.

Maps a noisy location string (OCR output, handwriting, transliteration,
city name) to a canonical Iraqi province name.

Resolution order, first hit wins:
    1. Exact match in the correction dictionary
    2. Exact match in the canonical province list
    3. Per-province alias heuristics (exact alias, then "contains")
    4. Substring match against the correction dictionary, either direction
    5. Two-character prefix match against the canonical list, either direction
    6. Normalized Levenshtein similarity >= threshold (best match)
    7. Otherwise the input is returned unchanged

Author: ML Engineering Team
"""

import re
from typing import Dict, List, Optional, Sequence, Tuple

from receipt_extraction.config import get_config
from receipt_extraction.utils.logger import get_logger
from .province_data import IRAQ_PROVINCES, PROVINCE_ALIASES, PROVINCE_CORRECTIONS

# Initialize module logger
logger = get_logger(__name__)

_LATIN_RE = re.compile(r'[A-Za-z]')


def levenshtein_distance(s1: str, s2: str) -> int:
    """
    Edit distance (insertions, deletions, substitutions) between two strings.
    """
    len1, len2 = len(s1), len(s2)

    distances = [[0] * (len2 + 1) for _ in range(len1 + 1)]

    for i in range(len1 + 1):
        distances[i][0] = i
    for j in range(len2 + 1):
        distances[0][j] = j

    for i in range(1, len1 + 1):
        for j in range(1, len2 + 1):
            cost = 0 if s1[i-1] == s2[j-1] else 1
            distances[i][j] = min(
                distances[i-1][j] + 1,
                distances[i][j-1] + 1,
                distances[i-1][j-1] + cost
            )

    return distances[len1][len2]


def string_similarity(s1: str, s2: str) -> float:
    """
    Calculate similarity between two strings using Levenshtein ratio.

    Computed as (max_len - distance) / max_len so that ratios such as 3/5
    land exactly on their decimal value.

    Args:
        s1: First string.
        s2: Second string.

    Returns:
        Similarity score between 0 and 1.

    Example:
        >>> string_similarity("ميسان", "طيسار")
        0.6
    """
    if not s1 or not s2:
        return 0.0

    if s1 == s2:
        return 1.0

    max_len = max(len(s1), len(s2))
    return (max_len - levenshtein_distance(s1, s2)) / max_len


class ProvinceCorrector:
    """
    Corrects province names against the canonical Iraqi province list.

    Attributes:
        provinces: Canonical names
        corrections: Misspelling → canonical dictionary
        aliases: Canonical → alternative spellings
        similarity_threshold: Minimum similarity accepted in the fuzzy step

    Example:
        >>> corrector = ProvinceCorrector()
        >>> corrector.correct("بقداد")
        'بغداد'
        >>> corrector.correct("Basrah")
        'البصرة'
    """

    def __init__(
        self,
        similarity_threshold: Optional[float] = None,
        provinces: Sequence[str] = IRAQ_PROVINCES,
        corrections: Optional[Dict[str, str]] = None,
        aliases: Optional[Dict[str, List[str]]] = None
    ) -> None:
        if similarity_threshold is None:
            similarity_threshold = get_config(
                "postprocessing.province.similarity_threshold", 0.6
            )
        self.similarity_threshold = float(similarity_threshold)
        self.provinces = tuple(provinces)
        self.corrections = dict(PROVINCE_CORRECTIONS if corrections is None else corrections)
        self.aliases = dict(PROVINCE_ALIASES if aliases is None else aliases)

        # Exact alias lookup, so that every alias converges on its province
        self._alias_index: Dict[str, str] = {}
        for province, names in self.aliases.items():
            for name in names:
                self._alias_index.setdefault(name.lower(), province)

        logger.debug(
            f"ProvinceCorrector initialized ({len(self.provinces)} provinces, "
            f"{len(self.corrections)} corrections, threshold={self.similarity_threshold})"
        )

    @staticmethod
    def normalize(raw: str) -> str:
        """Trim, collapse whitespace and lowercase Latin input."""
        name = ' '.join(raw.split())
        if _LATIN_RE.search(name):
            name = name.lower()
        return name

    def correct(self, raw: Optional[str]) -> str:
        """
        Map a raw location string to a canonical province name.

        Args:
            raw: Location string as extracted.

        Returns:
            Canonical province name, or the input unchanged when nothing
            matches closely enough ("" for empty input).
        """
        if not raw or not raw.strip():
            return ''

        name = self.normalize(raw)

        match, step = self._resolve(name)
        if match is None:
            logger.debug(f"No province match for '{raw}', keeping input")
            return raw

        if match != raw:
            logger.debug(f"Province '{raw}' corrected to '{match}' ({step})")
        return match

    def _resolve(self, name: str) -> Tuple[Optional[str], str]:
        if name in self.corrections:
            return self.corrections[name], "dictionary"

        if name in self.provinces:
            return name, "canonical"

        match = self._match_aliases(name)
        if match:
            return match, "alias"

        match = self._match_substring(name)
        if match:
            return match, "substring"

        match = self._match_prefix(name)
        if match:
            return match, "prefix"

        match, score = self.best_similarity_match(name)
        if match:
            return match, f"similarity {score:.2f}"

        return None, "none"

    def _match_aliases(self, name: str) -> Optional[str]:
        if name in self._alias_index:
            return self._alias_index[name]

        for province, names in self.aliases.items():
            for alias in names:
                if alias.lower() in name:
                    return province
        return None

    def _match_substring(self, name: str) -> Optional[str]:
        for wrong, canonical in self.corrections.items():
            if wrong in name:
                return canonical
            if len(name) >= 2 and name in wrong:
                return canonical
        return None

    def _match_prefix(self, name: str) -> Optional[str]:
        if len(name) < 2:
            return None

        head = name[:2]
        for province in self.provinces:
            if province.startswith(head) or name.startswith(province[:2]):
                return province
        return None

    def best_similarity_match(self, name: str) -> Tuple[Optional[str], float]:
        """
        Find the canonical province most similar to name.

        Returns:
            (province, score) when the best score reaches the threshold,
            otherwise (None, best score).
        """
        best_match = None
        best_score = 0.0

        for province in self.provinces:
            score = string_similarity(name, province)
            if score > best_score:
                best_match, best_score = province, score

        if best_match is not None and best_score >= self.similarity_threshold:
            return best_match, best_score
        return None, best_score

    def is_canonical(self, value: str) -> bool:
        """Whether value is one of the canonical province names."""
        return value in self.provinces
