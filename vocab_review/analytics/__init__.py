"""
Analytics package exports.
"""

from vocab_review.analytics.constants import STATS_PERIODS
from vocab_review.analytics.service import (
    apply_review_to_user_stats,
    build_learning_stats,
    build_progress_summary,
    build_user_stats,
    rebuild_user_stats,
)
from vocab_review.analytics.types import (
    DailyBreakdown,
    LearningStats,
    ProgressSummary,
    StatsPeriod,
)

__all__ = [
    "STATS_PERIODS",
    "apply_review_to_user_stats",
    "build_learning_stats",
    "build_progress_summary",
    "build_user_stats",
    "rebuild_user_stats",
    "DailyBreakdown",
    "LearningStats",
    "ProgressSummary",
    "StatsPeriod",
]
