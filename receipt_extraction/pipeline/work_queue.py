"""
Work Queue.

FIFO of QueueItems waiting for extraction. The contents are an immutable
tuple replaced on every change, so a snapshot taken by a reader never
changes underneath it. A record id appears at most once.
"""

from typing import Iterable, Iterator, Tuple

from receipt_extraction.input_handler.gate import QueueItem


class WorkQueue:
    """
    Immutable-snapshot FIFO queue.

    Example:
        >>> queue = WorkQueue()
        >>> queue.extend(items)
        3
        >>> batch = queue.take(2)
        >>> len(queue)
        1
    """

    def __init__(self) -> None:
        self._items: Tuple[QueueItem, ...] = ()

    @property
    def items(self) -> Tuple[QueueItem, ...]:
        """Current contents, head first."""
        return self._items

    def extend(self, items: Iterable[QueueItem]) -> int:
        """
        Append items whose record is not queued yet.

        Returns:
            Number of items added.
        """
        queued = {item.record_id for item in self._items}
        added = []
        for item in items:
            if item.record_id not in queued:
                queued.add(item.record_id)
                added.append(item)

        self._items = self._items + tuple(added)
        return len(added)

    def take(self, count: int) -> Tuple[QueueItem, ...]:
        """Remove and return up to ``count`` items from the head."""
        batch, self._items = self._items[:count], self._items[count:]
        return batch

    def remove(self, record_id: str) -> Tuple[QueueItem, ...]:
        """Remove the items of a record; returns what was removed."""
        removed = tuple(item for item in self._items if item.record_id == record_id)
        if removed:
            self._items = tuple(item for item in self._items if item.record_id != record_id)
        return removed

    def clear(self) -> Tuple[QueueItem, ...]:
        """Empty the queue; returns the items that were waiting."""
        items, self._items = self._items, ()
        return items

    def __contains__(self, record_id: object) -> bool:
        return any(item.record_id == record_id for item in self._items)

    def __iter__(self) -> Iterator[QueueItem]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)
