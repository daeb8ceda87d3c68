"""
Service layer to assemble learning statistics and the per-user rollup.

All statistics are derived from the learning_progress and review_events
source data; the stored rollup is only ever a cache of these results.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from vocab_review.analytics.constants import STATS_PERIODS
from vocab_review.analytics.metrics import (
    compute_accuracy,
    compute_average_response_time,
    compute_current_streak,
    compute_daily_breakdown,
    compute_longest_streak,
    compute_mastered_count,
    compute_progress_summary,
    compute_totals,
    distinct_review_days,
    filter_window,
)
from vocab_review.analytics.queries import load_progress_df, load_review_events_df
from vocab_review.analytics.types import LearningStats, ProgressSummary, StatsPeriod
from vocab_review.errors import ValidationError
from vocab_review.sm2.constants import DEFAULT_DAILY_GOAL, MASTERED_REPETITIONS
from vocab_review.sm2.progress_state import ReviewEvent, UserLearningStats
from vocab_review.store.base import ProgressStore

logger = logging.getLogger(__name__)


def period_start(period: str, now: datetime) -> Optional[datetime]:
    """
    Lower bound of the lookback window for `period`, None for "all".
    """
    if period not in STATS_PERIODS:
        raise ValidationError(
            f"Unknown stats period {period!r}; expected one of {', '.join(STATS_PERIODS)}"
        )
    lookback = STATS_PERIODS[period]
    return now - lookback if lookback is not None else None


def build_learning_stats(
    store: ProgressStore,
    user_id: str,
    period: StatsPeriod,
    now: datetime,
    tz: ZoneInfo
) -> LearningStats:
    """
    Build review statistics for `user_id` over `period` ending at `now`.

    Streaks look at the whole review history; every other review figure
    is restricted to the window. Returns all zeros for a user without
    reviews.
    """
    start = period_start(period, now)

    history_df = load_review_events_df(store, user_id, tz)
    window_df = filter_window(history_df, start, now)
    days = distinct_review_days(history_df)

    total, correct = compute_totals(window_df)
    progress_df = load_progress_df(store, user_id)

    return LearningStats(
        period=period,
        total_reviews=total,
        correct_reviews=correct,
        accuracy=compute_accuracy(correct, total),
        average_response_time=compute_average_response_time(window_df),
        current_streak=compute_current_streak(days),
        longest_streak=compute_longest_streak(days),
        total_vocabulary=int(len(progress_df)),
        mastered_vocabulary=compute_mastered_count(progress_df),
        daily_breakdown=tuple(compute_daily_breakdown(window_df)),
    )


def build_user_stats(
    store: ProgressStore,
    user_id: str,
    tz: ZoneInfo
) -> UserLearningStats:
    """
    Recompute the per-user rollup from source data.

    The daily goal is a user setting, so it is carried over from the
    stored rollup rather than recomputed.
    """
    events_df = load_review_events_df(store, user_id, tz)
    progress_df = load_progress_df(store, user_id)
    days = distinct_review_days(events_df)
    total, correct = compute_totals(events_df)

    existing = store.get_user_stats(user_id)
    last_review = None
    if not events_df.empty:
        last_review = events_df["timestamp"].max().to_pydatetime()

    return UserLearningStats(
        user_id=user_id,
        total_vocabulary=int(len(progress_df)),
        mastered_vocabulary=compute_mastered_count(progress_df),
        total_reviews=total,
        correct_reviews=correct,
        current_streak=compute_current_streak(days),
        longest_streak=compute_longest_streak(days),
        last_review_date=last_review,
        daily_goal=existing.daily_goal if existing else DEFAULT_DAILY_GOAL,
    )


def rebuild_user_stats(
    store: ProgressStore,
    user_id: str,
    tz: ZoneInfo
) -> UserLearningStats:
    """
    Recompute and persist the rollup for `user_id`.
    """
    stats = build_user_stats(store, user_id, tz)
    store.save_user_stats(stats)
    logger.debug(
        "Rebuilt stats for user %s: %d reviews, streak %d",
        user_id, stats.total_reviews, stats.current_streak
    )
    return stats


def build_progress_summary(store: ProgressStore, user_id: str) -> ProgressSummary:
    """
    Summarize tracked items by learning stage.
    """
    return compute_progress_summary(load_progress_df(store, user_id))


def count_reviews_on_day(
    store: ProgressStore,
    user_id: str,
    now: datetime,
    tz: ZoneInfo
) -> int:
    """
    Reviews submitted on the calendar day containing `now` (in `tz`).
    """
    local_now = now.astimezone(tz)
    day_start = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
    return len(store.query_review_events(user_id, from_date=day_start, to_date=now))


def recent_accuracy(
    store: ProgressStore,
    user_id: str,
    now: datetime,
    days: int,
    tz: ZoneInfo
) -> int:
    """
    Accuracy over the last `days` days ending at `now`.
    """
    window_df = load_review_events_df(
        store, user_id, tz, from_date=now - timedelta(days=days), to_date=now
    )
    total, correct = compute_totals(window_df)
    return compute_accuracy(correct, total)


def apply_review_to_user_stats(
    store: ProgressStore,
    event: ReviewEvent,
    previous_repetitions: Optional[int],
    new_repetitions: int,
    tz: ZoneInfo
) -> UserLearningStats:
    """
    Fold one just-written review into the stored rollup.

    Args:
        store: Store holding the rollup (and the event, for the fallback)
        event: The review event that was just appended
        previous_repetitions: Repetitions before the review, None when the
            review created the progress row
        new_repetitions: Repetitions after the review
        tz: Timezone for calendar-day streaks

    Falls back to a full rebuild when the user has no rollup yet or the
    event is older than the last review the rollup has seen.
    """
    stats = store.get_user_stats(event.user_id)
    if stats is None or (
        stats.last_review_date is not None and event.timestamp < stats.last_review_date
    ):
        return rebuild_user_stats(store, event.user_id, tz)

    review_day = event.timestamp.astimezone(tz).date()
    if stats.last_review_date is None:
        current_streak = 1
    else:
        gap = (review_day - stats.last_review_date.astimezone(tz).date()).days
        if gap == 0:
            current_streak = max(stats.current_streak, 1)
        elif gap == 1:
            current_streak = stats.current_streak + 1
        else:
            current_streak = 1

    was_mastered = previous_repetitions is not None and previous_repetitions >= MASTERED_REPETITIONS
    is_mastered = new_repetitions >= MASTERED_REPETITIONS

    updated = replace(
        stats,
        total_vocabulary=stats.total_vocabulary + (1 if previous_repetitions is None else 0),
        mastered_vocabulary=stats.mastered_vocabulary + int(is_mastered) - int(was_mastered),
        total_reviews=stats.total_reviews + 1,
        correct_reviews=stats.correct_reviews + (1 if event.is_correct else 0),
        current_streak=current_streak,
        longest_streak=max(stats.longest_streak, current_streak),
        last_review_date=event.timestamp,
    )
    store.save_user_stats(updated)
    return updated
