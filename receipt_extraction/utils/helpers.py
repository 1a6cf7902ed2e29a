"""
Helper Utilities Module.

Generic functions used throughout the receipt extraction pipeline.

Functions:
    - ensure_directory: Create directory if it doesn't exist
    - generate_id: Unique identifiers for records and attempts
    - now_millis / now_iso: Timestamps
    - to_ascii_digits: Convert Arabic-Indic digits to ASCII
"""

import time
import uuid
from datetime import datetime
from pathlib import Path
from typing import Union


# Arabic-Indic (U+0660..U+0669) and Extended Arabic-Indic (U+06F0..U+06F9) digits
_DIGIT_TRANSLATION = str.maketrans(
    '٠١٢٣٤٥٦٧٨٩۰۱۲۳۴۵۶۷۸۹',
    '01234567890123456789'
)


def ensure_directory(path: Union[str, Path]) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path to ensure exists.

    Returns:
        Path object pointing to the directory.

    Example:
        >>> ensure_directory("data/previews")
        PosixPath('data/previews')
    """
    dir_path = Path(path)
    dir_path.mkdir(parents=True, exist_ok=True)
    return dir_path


def generate_id() -> str:
    """Return a new random identifier (uuid4 hex)."""
    return uuid.uuid4().hex


def now_millis() -> int:
    """Current wall-clock time in milliseconds since the epoch."""
    return int(time.time() * 1000)


def now_iso() -> str:
    """Current local time as an ISO-8601 string."""
    return datetime.now().isoformat()


def to_ascii_digits(text: str) -> str:
    """
    Convert Arabic-Indic digits to their ASCII equivalents.

    Example:
        >>> to_ascii_digits("٠٧٧٠١٢٣٤٥٦٧")
        "07701234567"
    """
    if not text:
        return text
    return text.translate(_DIGIT_TRANSLATION)
