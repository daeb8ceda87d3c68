"""
ProgressStore - persistence interface consumed by the review service.

Implementations must make `upsert_progress` atomic per (user_id, item_id)
and must commit everything written inside `transaction()` together, or
nothing at all.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from vocab_review.schemas import VocabularyItem
from vocab_review.sm2.progress_state import (
    LearningProgress,
    ReviewEvent,
    UserLearningStats,
)


@dataclass(frozen=True)
class DueProgress:
    """A due progress record joined with its vocabulary item."""
    progress: LearningProgress
    item: VocabularyItem


class ProgressStore(ABC):

    @abstractmethod
    def transaction(self) -> AbstractContextManager[None]:
        """Scope whose writes become visible together when it exits cleanly."""

    @abstractmethod
    def find_progress(self, user_id: str, item_id: str) -> Optional[LearningProgress]:
        ...

    @abstractmethod
    def find_due_progress(
        self,
        user_id: str,
        now: datetime,
        limit: int
    ) -> list[DueProgress]:
        """
        Progress with next_review_date <= now, most overdue first.

        Ties keep the order in which the progress rows were first stored.
        """

    @abstractmethod
    def find_new_items_for_user(self, user_id: str, limit: int) -> list[VocabularyItem]:
        """Items with no progress row for `user_id`, in a stable order."""

    @abstractmethod
    def find_item(self, item_id: str) -> Optional[VocabularyItem]:
        ...

    @abstractmethod
    def upsert_progress(self, progress: LearningProgress) -> LearningProgress:
        ...

    @abstractmethod
    def append_review_event(self, event: ReviewEvent) -> None:
        ...

    @abstractmethod
    def query_review_events(
        self,
        user_id: str,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None
    ) -> list[ReviewEvent]:
        """Events in [from_date, to_date], oldest first. Bounds are optional."""

    @abstractmethod
    def list_progress(self, user_id: str) -> list[LearningProgress]:
        ...

    @abstractmethod
    def get_user_stats(self, user_id: str) -> Optional[UserLearningStats]:
        ...

    @abstractmethod
    def save_user_stats(self, stats: UserLearningStats) -> None:
        ...
