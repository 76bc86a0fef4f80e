"""
Webhook update deduplication.

Telegram redelivers an update when the webhook is slow to answer, so
the same update_id can arrive more than once. We remember a bounded
window of recent ids and drop repeats.

This is best-effort: once an id falls out of the window it would be
accepted again.
"""

import threading
from typing import Dict, Hashable

DEFAULT_CAPACITY = 1000


class UpdateDeduplicator:
    """
    Bounded set of recently seen update ids.

    When full, the oldest half is evicted in one batch before the new id
    is admitted.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 2:
            raise ValueError("capacity must be at least 2")
        self.capacity = capacity
        # dict keeps insertion order, so the first keys are the oldest
        self._seen: Dict[Hashable, None] = {}
        self._lock = threading.Lock()

    def seen(self, event_id: Hashable) -> bool:
        """Return True if event_id was already seen, otherwise record it and return False."""
        with self._lock:
            if event_id in self._seen:
                return True

            if len(self._seen) >= self.capacity:
                self._evict_oldest_half()

            self._seen[event_id] = None
            return False

    def _evict_oldest_half(self) -> None:
        drop = len(self._seen) // 2
        for key in list(self._seen)[:drop]:
            del self._seen[key]

    def __len__(self) -> int:
        return len(self._seen)

    def __contains__(self, event_id: Hashable) -> bool:
        return event_id in self._seen
