"""
SM-2 - SuperMemo-2 Spaced Repetition

Scheduling core for the vocabulary review system.

This package implements the SM-2 algorithm on a 4-point grade scale:
- Easiness factor (EF >= 1.3) updated from every grade
- Fixed first intervals (1 day, then 6 days), then geometric growth by EF
- Any failed recall resets repetitions and interval

Quick start:
    from datetime import datetime, timezone
    from vocab_review import sm2

    now = datetime.now(timezone.utc)
    progress = sm2.initialize_progress("user-1", "item-1", now)
    schedule = sm2.compute_next_schedule(progress, sm2.QualityGrade.GOOD, now)
"""

# Core scheduler API (algorithm logic)
from vocab_review.sm2.scheduler import calculate_easiness_factor, compute_next_schedule

# Database API
from vocab_review.sm2.database import (
    get_engine,
    get_session_factory,
    init_db,
    reset_db,
)

# Constants and parameters
from vocab_review.sm2.constants import (
    QualityGrade,
    DEFAULT_EASINESS_FACTOR,
    MIN_EASINESS_FACTOR,
    FIRST_SUCCESS_INTERVAL,
    SECOND_SUCCESS_INTERVAL,
    MASTERED_REPETITIONS,
)

# Progress state
from vocab_review.sm2.progress_state import (
    ItemContext,
    LearningProgress,
    ReviewEvent,
    ScheduleResult,
    UserLearningStats,
    build_item_context,
    days_overdue,
    initialize_progress,
    is_due,
    mastery_label,
    perceived_difficulty,
)


__all__ = [
    # Core algorithm
    "compute_next_schedule",
    "calculate_easiness_factor",

    # Database operations
    "get_engine",
    "get_session_factory",
    "init_db",
    "reset_db",

    # Enums
    "QualityGrade",

    # Progress state
    "ItemContext",
    "LearningProgress",
    "ReviewEvent",
    "ScheduleResult",
    "UserLearningStats",
    "build_item_context",
    "days_overdue",
    "initialize_progress",
    "is_due",
    "mastery_label",
    "perceived_difficulty",

    # Parameters
    "DEFAULT_EASINESS_FACTOR",
    "MIN_EASINESS_FACTOR",
    "FIRST_SUCCESS_INTERVAL",
    "SECOND_SUCCESS_INTERVAL",
    "MASTERED_REPETITIONS",
]
