"""
User Notifications Module.

Notifications are the pipeline's user-facing messages: per-file ingestion
rejections, aggregate drop notices, per-run batch summaries and extraction
errors. Every notification is logged and fanned out to subscribers, and
the most recent ones are retained for inspection.

Author: ML Engineering Team
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, List, Optional

from receipt_extraction.utils.helpers import now_iso
from receipt_extraction.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)


@dataclass(frozen=True)
class Notification:
    """
    A single user-facing message.

    Attributes:
        level: One of 'info', 'success', 'warning', 'error'
        title: Short headline
        message: Longer description
        created_at: ISO timestamp
    """
    level: str
    title: str
    message: str = ""
    created_at: str = field(default_factory=now_iso)


NotificationListener = Callable[[Notification], None]


class Notifier:
    """
    Collects notifications and forwards them to listeners.

    Example:
        >>> notifier = Notifier()
        >>> notifier.subscribe(lambda n: print(n.title))
        >>> notifier.warning("Duplicate skipped", "receipt.jpg")
    """

    _LOG_LEVELS = {
        'info': logger.info,
        'success': logger.info,
        'warning': logger.warning,
        'error': logger.error,
    }

    def __init__(self, history_size: int = 200) -> None:
        self._listeners: List[NotificationListener] = []
        self._history: Deque[Notification] = deque(maxlen=history_size)

    def subscribe(self, listener: NotificationListener) -> None:
        """Register a callable invoked for each notification."""
        self._listeners.append(listener)

    def notify(self, level: str, title: str, message: str = "") -> Notification:
        """
        Publish a notification.

        Listener exceptions are logged and do not stop delivery to the
        remaining listeners.

        Returns:
            The published Notification.
        """
        notification = Notification(level=level, title=title, message=message)
        self._history.append(notification)

        log = self._LOG_LEVELS.get(level, logger.info)
        log(f"[{level}] {title}{': ' + message if message else ''}")

        for listener in list(self._listeners):
            try:
                listener(notification)
            except Exception as e:
                logger.exception(f"Notification listener failed: {e}")

        return notification

    def info(self, title: str, message: str = "") -> Notification:
        return self.notify('info', title, message)

    def success(self, title: str, message: str = "") -> Notification:
        return self.notify('success', title, message)

    def warning(self, title: str, message: str = "") -> Notification:
        return self.notify('warning', title, message)

    def error(self, title: str, message: str = "") -> Notification:
        return self.notify('error', title, message)

    @property
    def history(self) -> List[Notification]:
        """Most recent notifications, oldest first."""
        return list(self._history)

    def last(self, level: Optional[str] = None) -> Optional[Notification]:
        """Return the newest notification, optionally filtered by level."""
        for notification in reversed(self._history):
            if level is None or notification.level == level:
                return notification
        return None

    def clear(self) -> None:
        self._history.clear()
