"""
Types for learning statistics.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal


StatsPeriod = Literal["24h", "7d", "30d", "all"]


@dataclass(frozen=True)
class DailyBreakdown:
    """Review totals for one calendar day."""
    date: str  # YYYY-MM-DD
    total: int
    correct: int
    accuracy: int  # 0-100


@dataclass(frozen=True)
class LearningStats:
    """
    Aggregated review statistics for one user and period.
    """
    period: StatsPeriod
    total_reviews: int
    correct_reviews: int
    accuracy: int
    average_response_time: int  # ms
    current_streak: int
    longest_streak: int
    total_vocabulary: int
    mastered_vocabulary: int
    daily_breakdown: tuple[DailyBreakdown, ...]


@dataclass(frozen=True)
class ProgressSummary:
    """Counts of tracked items by learning stage."""
    total_items: int
    new_items: int
    learning_items: int
    mastered_items: int
    total_reviews: int
    correct_reviews: int
    average_easiness: float
