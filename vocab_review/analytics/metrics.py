"""
Metric computations for learning statistics.
"""

from __future__ import annotations

import math
from datetime import date, datetime
from typing import Optional, Sequence

import pandas as pd

from vocab_review.analytics.types import DailyBreakdown, ProgressSummary
from vocab_review.sm2.constants import DEFAULT_EASINESS_FACTOR, MASTERED_REPETITIONS


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compute_accuracy(correct: int, total: int) -> int:
    """
    Percentage of correct reviews, rounded. 0 when there are no reviews.
    """
    if total <= 0:
        return 0
    return _round_half_up(100 * correct / total)


def filter_window(
    events_df: pd.DataFrame,
    start: Optional[datetime],
    end: datetime
) -> pd.DataFrame:
    """
    Events with start <= timestamp <= end. No lower bound when start is None.
    """
    if events_df.empty:
        return events_df
    mask = events_df["timestamp"] <= pd.Timestamp(end)
    if start is not None:
        mask &= events_df["timestamp"] >= pd.Timestamp(start)
    return events_df[mask]


def compute_totals(events_df: pd.DataFrame) -> tuple[int, int]:
    """
    (total, correct) review counts.
    """
    if events_df.empty:
        return 0, 0
    return int(len(events_df)), int(events_df["is_correct"].astype(bool).sum())


def compute_average_response_time(events_df: pd.DataFrame) -> int:
    """
    Rounded mean response time over events that recorded one.
    """
    if events_df.empty:
        return 0
    times = pd.to_numeric(events_df["response_time_ms"], errors="coerce").dropna()
    if times.empty:
        return 0
    return _round_half_up(float(times.mean()))


def compute_daily_breakdown(events_df: pd.DataFrame) -> list[DailyBreakdown]:
    """
    Per-day totals for each day present in the events, oldest day first.
    """
    if events_df.empty:
        return []

    scoped = events_df.assign(is_correct=events_df["is_correct"].astype(bool))
    daily = scoped.groupby("day", sort=True).agg(
        total=("is_correct", "size"),
        correct=("is_correct", "sum"),
    )
    return [
        DailyBreakdown(
            date=day.isoformat(),
            total=int(row["total"]),
            correct=int(row["correct"]),
            accuracy=compute_accuracy(int(row["correct"]), int(row["total"])),
        )
        for day, row in daily.iterrows()
    ]


def distinct_review_days(events_df: pd.DataFrame) -> list[date]:
    """
    Distinct calendar days with at least one review, most recent first.
    """
    if events_df.empty:
        return []
    return sorted(set(events_df["day"]), reverse=True)


def compute_current_streak(days: Sequence[date]) -> int:
    """
    Consecutive-day streak ending at the most recent reviewed day.

    `days` must be distinct and most recent first. The walk stops at the
    first gap of more than one day. The streak counts from the latest
    active day whether or not that day is today.
    """
    if not days:
        return 0

    streak = 1
    for newer, older in zip(days, days[1:]):
        if (newer - older).days != 1:
            break
        streak += 1
    return streak


def compute_longest_streak(days: Sequence[date]) -> int:
    """
    Longest run of consecutive reviewed days anywhere in history.
    """
    if not days:
        return 0

    longest = current = 1
    for newer, older in zip(days, days[1:]):
        if (newer - older).days == 1:
            current += 1
            longest = max(longest, current)
        else:
            current = 1
    return longest


def compute_mastered_count(progress_df: pd.DataFrame) -> int:
    """
    Items with at least MASTERED_REPETITIONS consecutive successes.
    """
    if progress_df.empty:
        return 0
    return int((progress_df["repetitions"] >= MASTERED_REPETITIONS).sum())


def compute_progress_summary(progress_df: pd.DataFrame) -> ProgressSummary:
    """
    Stage counts, review totals and mean easiness over tracked items.
    """
    if progress_df.empty:
        return ProgressSummary(
            total_items=0,
            new_items=0,
            learning_items=0,
            mastered_items=0,
            total_reviews=0,
            correct_reviews=0,
            average_easiness=DEFAULT_EASINESS_FACTOR,
        )

    reps = progress_df["repetitions"]
    return ProgressSummary(
        total_items=int(len(progress_df)),
        new_items=int((reps == 0).sum()),
        learning_items=int(((reps > 0) & (reps < MASTERED_REPETITIONS)).sum()),
        mastered_items=compute_mastered_count(progress_df),
        total_reviews=int(progress_df["total_reviews"].sum()),
        correct_reviews=int(progress_df["correct_reviews"].sum()),
        average_easiness=float(progress_df["easiness_factor"].mean()),
    )
