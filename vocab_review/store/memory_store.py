"""
In-memory store - ProgressStore kept in process memory.

Used for tests and single-process tooling. Writes made inside
`transaction()` are buffered per thread and applied together under the
store lock when the transaction exits cleanly; a failing transaction
leaves nothing behind.
"""

from __future__ import annotations
import itertools
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Iterable, Iterator, Optional

from vocab_review.schemas import VocabularyItem
from vocab_review.sm2.progress_state import (
    LearningProgress,
    ReviewEvent,
    UserLearningStats,
)
from vocab_review.store.base import DueProgress, ProgressStore

ProgressKey = tuple[str, str]


@dataclass
class _PendingWrites:
    progress: dict[ProgressKey, LearningProgress] = field(default_factory=dict)
    events: list[ReviewEvent] = field(default_factory=list)
    stats: dict[str, UserLearningStats] = field(default_factory=dict)


class InMemoryProgressStore(ProgressStore):

    def __init__(self, items: Iterable[VocabularyItem] = ()):
        self._lock = threading.Lock()
        self._local = threading.local()
        self._items: dict[str, VocabularyItem] = {}
        self._progress: dict[ProgressKey, LearningProgress] = {}
        self._progress_order: dict[ProgressKey, int] = {}
        self._events: list[ReviewEvent] = []
        self._stats: dict[str, UserLearningStats] = {}
        self._sequence = itertools.count()
        self.add_items(items)

    # ---- Transactions ----

    def _pending(self) -> Optional[_PendingWrites]:
        return getattr(self._local, "pending", None)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if self._pending() is not None:
            yield
            return

        self._local.pending = _PendingWrites()
        try:
            yield
            pending = self._pending()
            with self._lock:
                for key, progress in pending.progress.items():
                    self._store_progress(key, progress)
                self._events.extend(pending.events)
                self._stats.update(pending.stats)
        finally:
            self._local.pending = None

    def _store_progress(self, key: ProgressKey, progress: LearningProgress) -> None:
        # Caller holds self._lock
        if key not in self._progress_order:
            self._progress_order[key] = next(self._sequence)
        self._progress[key] = progress

    # ---- Vocabulary Items ----

    def add_items(self, items: Iterable[VocabularyItem]) -> None:
        with self._lock:
            for item in items:
                self._items[item.id] = item

    def find_item(self, item_id: str) -> Optional[VocabularyItem]:
        with self._lock:
            return self._items.get(item_id)

    def find_new_items_for_user(self, user_id: str, limit: int) -> list[VocabularyItem]:
        if limit <= 0:
            return []
        tracked = {key[1] for key in self._progress_snapshot(user_id)}
        with self._lock:
            candidates = [item for item_id, item in self._items.items() if item_id not in tracked]
        return candidates[:limit]

    # ---- Learning Progress ----

    def _progress_snapshot(self, user_id: str) -> dict[ProgressKey, LearningProgress]:
        """Committed progress for `user_id` overlaid with this thread's pending writes."""
        with self._lock:
            ordered = sorted(
                (key for key in self._progress if key[0] == user_id),
                key=self._progress_order.__getitem__
            )
            snapshot = {key: self._progress[key] for key in ordered}
        pending = self._pending()
        if pending is not None:
            for key, progress in pending.progress.items():
                if key[0] == user_id:
                    snapshot[key] = progress
        return snapshot

    def find_progress(self, user_id: str, item_id: str) -> Optional[LearningProgress]:
        key = (user_id, item_id)
        pending = self._pending()
        if pending is not None and key in pending.progress:
            return replace(pending.progress[key])
        with self._lock:
            progress = self._progress.get(key)
        return replace(progress) if progress is not None else None

    def find_due_progress(
        self,
        user_id: str,
        now: datetime,
        limit: int
    ) -> list[DueProgress]:
        if limit <= 0:
            return []
        due = [
            progress for progress in self._progress_snapshot(user_id).values()
            if progress.next_review_date <= now
        ]
        # sorted() is stable, so ties keep insertion order
        due = sorted(due, key=lambda p: p.next_review_date)[:limit]
        with self._lock:
            return [
                DueProgress(progress=replace(progress), item=self._items[progress.item_id])
                for progress in due
                if progress.item_id in self._items
            ]

    def list_progress(self, user_id: str) -> list[LearningProgress]:
        return [replace(p) for p in self._progress_snapshot(user_id).values()]

    def upsert_progress(self, progress: LearningProgress) -> LearningProgress:
        key = (progress.user_id, progress.item_id)
        stored = replace(progress)
        pending = self._pending()
        if pending is not None:
            pending.progress[key] = stored
        else:
            with self._lock:
                self._store_progress(key, stored)
        return replace(stored)

    # ---- Review Events ----

    def append_review_event(self, event: ReviewEvent) -> None:
        pending = self._pending()
        if pending is not None:
            pending.events.append(event)
            return
        with self._lock:
            self._events.append(event)

    def query_review_events(
        self,
        user_id: str,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None
    ) -> list[ReviewEvent]:
        with self._lock:
            events = [e for e in self._events if e.user_id == user_id]
        pending = self._pending()
        if pending is not None:
            events.extend(e for e in pending.events if e.user_id == user_id)

        if from_date is not None:
            events = [e for e in events if e.timestamp >= from_date]
        if to_date is not None:
            events = [e for e in events if e.timestamp <= to_date]
        return sorted(events, key=lambda e: e.timestamp)

    # ---- User Stats ----

    def get_user_stats(self, user_id: str) -> Optional[UserLearningStats]:
        pending = self._pending()
        if pending is not None and user_id in pending.stats:
            return replace(pending.stats[user_id])
        with self._lock:
            stats = self._stats.get(user_id)
        return replace(stats) if stats is not None else None

    def save_user_stats(self, stats: UserLearningStats) -> None:
        pending = self._pending()
        if pending is not None:
            pending.stats[stats.user_id] = replace(stats)
            return
        with self._lock:
            self._stats[stats.user_id] = replace(stats)
