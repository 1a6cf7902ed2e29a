"""
Utility Module for the Receipt Extraction Pipeline.

This module provides common utilities used across all other modules:
    - Logging configuration
    - Exception hierarchy
    - User notifications
    - Common helpers
"""

from .logger import setup_logger, get_logger
from .helpers import ensure_directory, generate_id, now_millis, to_ascii_digits
from .notifications import Notification, Notifier

__all__ = [
    'setup_logger',
    'get_logger',
    'ensure_directory',
    'generate_id',
    'now_millis',
    'to_ascii_digits',
    'Notification',
    'Notifier',
]
