"""
In-process cache for review queues and learning statistics.

Entries expire after a per-entry TTL. Each user has a generation counter
that `on_progress_changed(user_id)` bumps. A value built from store reads
is written with `set_if_generation`, which drops it when the user changed
while it was being built.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


def queue_cache_key(user_id: str) -> str:
    return f"review_queue:{user_id}"


def stats_cache_key(user_id: str, period: str) -> str:
    return f"learning_stats:{user_id}:{period}"


class ReviewCache:
    """
    Thread-safe TTL cache keyed by string.

    Args:
        clock: Monotonic seconds source; injectable for tests
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, tuple[float, Any]] = {}
        self._generations: dict[str, int] = {}

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl: float) -> None:
        with self._lock:
            self._entries[key] = (self._clock() + ttl, value)

    def generation(self, user_id: str) -> int:
        """Current invalidation count for `user_id`; read before building a value."""
        with self._lock:
            return self._generations.get(user_id, 0)

    def set_if_generation(
        self,
        key: str,
        value: Any,
        ttl: float,
        user_id: str,
        generation: int
    ) -> bool:
        """
        Store `value` only if `user_id` was not invalidated since `generation`
        was read. Returns whether the value was stored.
        """
        with self._lock:
            if self._generations.get(user_id, 0) != generation:
                return False
            self._entries[key] = (self._clock() + ttl, value)
            return True

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def _delete_prefix(self, prefix: str) -> int:
        # Caller holds self._lock
        doomed = [key for key in self._entries if key.startswith(prefix)]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def delete_prefix(self, prefix: str) -> int:
        with self._lock:
            return self._delete_prefix(prefix)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def on_progress_changed(self, user_id: str) -> None:
        """Drop the cached queue and every cached stats period for `user_id`."""
        with self._lock:
            self._generations[user_id] = self._generations.get(user_id, 0) + 1
            self._entries.pop(queue_cache_key(user_id), None)
            removed = self._delete_prefix(stats_cache_key(user_id, ""))
        logger.debug("Invalidated review cache for user %s (%d stats entries)", user_id, removed)
