"""
Progress State - SM-2 Learning Progress and Review History

Defines the per-(user, item) learning record the scheduler operates on,
the append-only review event, and the labels derived from them.

Key concepts:
- Repetitions: consecutive successful reviews since the last lapse
- Easiness Factor (EF): how quickly the interval grows on success (>= 1.3)
- Interval: days until the next review
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from vocab_review.sm2.constants import (
    DEFAULT_DAILY_GOAL,
    DEFAULT_EASINESS_FACTOR,
    DEFAULT_INTERVAL,
    DEFAULT_REPETITIONS,
    HARD_EASINESS_BELOW,
    MASTERED_EASINESS_FACTOR,
    MASTERED_REPETITIONS,
    MEDIUM_EASINESS_BELOW,
    STRENGTHENING_REPETITIONS,
)


@dataclass
class LearningProgress:
    """
    Learning state for a single (user, vocabulary item) pair.

    Mutated only by ReviewQueueService.submit_review.
    """
    user_id: str
    item_id: str

    # SM-2 parameters
    repetitions: int
    easiness_factor: float
    interval: int  # days

    # Scheduling
    next_review_date: datetime
    last_review_date: Optional[datetime] = None

    # Counters (non-decreasing, correct_reviews <= total_reviews)
    total_reviews: int = 0
    correct_reviews: int = 0

    first_learned_at: Optional[datetime] = None


@dataclass(frozen=True)
class ScheduleResult:
    """Output of one scheduling step."""
    repetitions: int
    easiness_factor: float
    interval: int
    next_review_date: datetime


@dataclass(frozen=True)
class ReviewEvent:
    """
    Log entry for a single submitted review.

    Captures the schedule before and after the review. Immutable.
    """
    user_id: str
    item_id: str
    quality_grade: int
    response_time_ms: Optional[int]
    is_correct: bool
    previous_interval: int
    new_interval: int
    previous_easiness: float
    new_easiness: float
    timestamp: datetime
    session_id: Optional[str] = None


@dataclass
class UserLearningStats:
    """
    Per-user rollup. A cache: rebuildable from progress and review events.
    """
    user_id: str
    total_vocabulary: int = 0
    mastered_vocabulary: int = 0
    total_reviews: int = 0
    correct_reviews: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    last_review_date: Optional[datetime] = None
    daily_goal: int = DEFAULT_DAILY_GOAL


@dataclass(frozen=True)
class ItemContext:
    """Learning context attached to each queue entry."""
    times_reviewed: int
    last_review_date: Optional[datetime]
    difficulty: str
    mastery: str


def initialize_progress(user_id: str, item_id: str, now: datetime) -> LearningProgress:
    """
    Initialize progress for an item the user has never reviewed.

    Args:
        user_id: User identifier
        item_id: Vocabulary item identifier
        now: Creation timestamp (the item is due immediately)

    Returns:
        New LearningProgress with default SM-2 parameters
    """
    return LearningProgress(
        user_id=user_id,
        item_id=item_id,
        repetitions=DEFAULT_REPETITIONS,
        easiness_factor=DEFAULT_EASINESS_FACTOR,
        interval=DEFAULT_INTERVAL,
        next_review_date=now,
        last_review_date=None,
        total_reviews=0,
        correct_reviews=0,
        first_learned_at=now,
    )


def is_due(progress: LearningProgress, now: datetime) -> bool:
    """Check if progress is due for review."""
    return progress.next_review_date <= now


def days_overdue(progress: LearningProgress, now: datetime) -> int:
    """Calculate how many whole days overdue a review is (0 if not due)."""
    if progress.next_review_date > now:
        return 0
    return (now - progress.next_review_date).days


def mastery_label(progress: Optional[LearningProgress]) -> str:
    """
    Informal learning stage derived from repetitions and easiness.

    new -> learning (1) -> familiar (2) -> strengthening (>= 3)
    -> mastered (>= 5 and EF >= 2.5). Never stored.
    """
    if progress is None:
        return "new"
    if (
        progress.repetitions >= MASTERED_REPETITIONS
        and progress.easiness_factor >= MASTERED_EASINESS_FACTOR
    ):
        return "mastered"
    if progress.repetitions >= STRENGTHENING_REPETITIONS:
        return "strengthening"
    if progress.repetitions == 2:
        return "familiar"
    if progress.repetitions == 1:
        return "learning"
    return "new"


def perceived_difficulty(progress: Optional[LearningProgress]) -> str:
    """Difficulty bucket from the easiness factor."""
    if progress is None:
        return "unknown"
    if progress.easiness_factor < HARD_EASINESS_BELOW:
        return "hard"
    if progress.easiness_factor < MEDIUM_EASINESS_BELOW:
        return "medium"
    return "easy"


def build_item_context(progress: Optional[LearningProgress]) -> ItemContext:
    """Summarize a progress record for display alongside its item."""
    return ItemContext(
        times_reviewed=progress.total_reviews if progress else 0,
        last_review_date=progress.last_review_date if progress else None,
        difficulty=perceived_difficulty(progress),
        mastery=mastery_label(progress),
    )
