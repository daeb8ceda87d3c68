"""
Types returned by the review queue.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from vocab_review.schemas import VocabularyItem
from vocab_review.sm2.progress_state import ItemContext, LearningProgress


@dataclass(frozen=True)
class QueueEntry:
    """One item to study, with its progress (None for new items)."""
    item: VocabularyItem
    progress: Optional[LearningProgress]
    context: ItemContext


@dataclass(frozen=True)
class QueueUserSummary:
    daily_goal: int
    reviews_today: int
    current_streak: int


@dataclass(frozen=True)
class ReviewQueue:
    """
    Due items (most overdue first) and new items to backfill a short queue.
    """
    due_items: tuple[QueueEntry, ...]
    new_items: tuple[QueueEntry, ...]
    total_due: int
    total_new: int
    user: QueueUserSummary
