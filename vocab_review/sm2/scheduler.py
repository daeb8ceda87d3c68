"""
Scheduler - SM-2 Algorithm Logic

Pure SM-2 scheduling (no database calls, no implicit clock).

Main workflow:
1. Update the easiness factor from the current EF and the grade
2. Branch on grade and current repetitions for the new repetitions/interval
3. Project the next review date from the caller-supplied "now"

This module handles ONLY the algorithm logic.
Database I/O is handled by the store package.
"""

from __future__ import annotations
import math
from datetime import datetime, timedelta

from vocab_review.sm2.constants import (
    FIRST_SUCCESS_INTERVAL,
    MIN_EASINESS_FACTOR,
    SECOND_SUCCESS_INTERVAL,
    QualityGrade,
)
from vocab_review.sm2.progress_state import LearningProgress, ScheduleResult


def calculate_easiness_factor(current_ef: float, quality_grade: int) -> float:
    """
    SM-2 easiness update on the 0-3 grade scale.

    Formula:
        EF' = EF + (0.1 - (3 - q) * (0.08 + (3 - q) * 0.02))
        EF' = max(1.3, EF')

    Args:
        current_ef: Easiness factor before this review
        quality_grade: Grade in 0..3

    Returns:
        New easiness factor, never below 1.3
    """
    distance = int(QualityGrade.EASY) - quality_grade
    new_ef = current_ef + (0.1 - distance * (0.08 + distance * 0.02))
    return max(MIN_EASINESS_FACTOR, new_ef)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compute_next_schedule(
    progress: LearningProgress,
    quality_grade: int,
    now: datetime
) -> ScheduleResult:
    """
    Compute the schedule that follows a review of `progress`.

    The easiness factor is updated first and the new value drives interval
    growth. Any grade of 0 is a lapse and resets repetitions and interval
    regardless of prior history.

    Does not modify `progress`. Grade validation is the caller's job; this
    function is total over grades 0..3.

    Args:
        progress: Current learning progress (may be freshly initialized)
        quality_grade: 0=Again, 1=Hard, 2=Good, 3=Easy
        now: Review timestamp; the next review keeps its time of day

    Returns:
        ScheduleResult with repetitions, easiness_factor, interval and
        next_review_date
    """
    new_ef = calculate_easiness_factor(progress.easiness_factor, quality_grade)

    if quality_grade == QualityGrade.AGAIN:
        # Lapse: full reset
        repetitions = 0
        interval = 1
    elif progress.repetitions == 0:
        repetitions = 1
        interval = FIRST_SUCCESS_INTERVAL
    elif progress.repetitions == 1:
        repetitions = 2
        interval = SECOND_SUCCESS_INTERVAL
    else:
        repetitions = progress.repetitions + 1
        interval = max(1, _round_half_up(progress.interval * new_ef))

    return ScheduleResult(
        repetitions=repetitions,
        easiness_factor=new_ef,
        interval=interval,
        next_review_date=now + timedelta(days=interval),
    )
