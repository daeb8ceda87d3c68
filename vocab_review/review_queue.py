"""
Review Queue Service - Due/New Queue, Review Submission and Statistics

Orchestrates the SM-2 engine and the progress store:
1. Queue: due progress (most overdue first), backfilled with never-studied
   items while fewer than NEW_ITEM_BACKFILL_TARGET are due
2. Submit: load-or-initialize progress, compute the schedule, persist the
   progress, the review event and the user rollup as one transaction
3. Stats: accuracy, response time, streaks and daily breakdown per period

Submissions for the same (user_id, item_id) are serialized; different
pairs run independently.
"""

from __future__ import annotations

import logging
from contextlib import ExitStack
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional
from zoneinfo import ZoneInfo

from vocab_review.analytics.constants import DEFAULT_STATS_PERIOD, RECENT_ACCURACY_DAYS
from vocab_review.analytics.service import (
    apply_review_to_user_stats,
    build_learning_stats,
    build_progress_summary,
    build_user_stats,
    count_reviews_on_day,
    period_start,
    rebuild_user_stats,
    recent_accuracy,
)
from vocab_review.analytics.types import LearningStats, ProgressSummary
from vocab_review.cache import ReviewCache, queue_cache_key, stats_cache_key
from vocab_review.config import (
    get_queue_cache_ttl,
    get_queue_limit,
    get_stats_cache_ttl,
    get_stats_timezone,
)
from vocab_review.errors import NotFoundError, ValidationError
from vocab_review.locking import KeyedLocks
from vocab_review.queue_types import QueueEntry, QueueUserSummary, ReviewQueue
from vocab_review.sm2.constants import (
    DEFAULT_DAILY_GOAL,
    MASTERED_EASINESS_FACTOR,
    MASTERED_REPETITIONS,
    MAX_DAILY_GOAL,
    MIN_DAILY_GOAL,
    NEW_ITEM_BACKFILL_TARGET,
    STRUGGLING_EASINESS_BELOW,
    STRUGGLING_MIN_REVIEWS,
    VALID_GRADES,
)
from vocab_review.sm2.progress_state import (
    LearningProgress,
    ReviewEvent,
    ScheduleResult,
    build_item_context,
    initialize_progress,
)
from vocab_review.sm2.scheduler import compute_next_schedule
from vocab_review.store.base import ProgressStore

logger = logging.getLogger(__name__)

ProgressListener = Callable[[str], None]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ---- Validation ----

def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _validate_identifier(name: str, value) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} must be a non-empty string, got {value!r}")
    return value


def _validate_grade(quality_grade) -> int:
    if not _is_int(quality_grade) or quality_grade not in VALID_GRADES:
        raise ValidationError(
            f"quality_grade must be one of 0, 1, 2, 3, got {quality_grade!r}"
        )
    return int(quality_grade)


def _validate_response_time(response_time_ms) -> Optional[int]:
    if response_time_ms is None:
        return None
    if not _is_int(response_time_ms) or response_time_ms < 0:
        raise ValidationError(
            f"response_time_ms must be a non-negative integer, got {response_time_ms!r}"
        )
    return response_time_ms


def _validate_positive(name: str, value) -> int:
    if not _is_int(value) or value < 1:
        raise ValidationError(f"{name} must be a positive integer, got {value!r}")
    return value


class ReviewQueueService:
    """
    Spaced-repetition review operations for one progress store.

    Args:
        store: Persistence for progress, review events and user rollups
        clock: Returns the current time; naive values are taken as UTC
        cache: Optional cache for queues and stats; invalidated per user
            after every successful review
        listeners: Extra callables fired with the user id after every
            successful review (fire-and-forget)
        tz: Timezone for calendar-day grouping (defaults to STATS_TIMEZONE)
    """

    def __init__(
        self,
        store: ProgressStore,
        clock: Optional[Callable[[], datetime]] = None,
        cache: Optional[ReviewCache] = None,
        listeners: Iterable[ProgressListener] = (),
        tz: Optional[ZoneInfo] = None,
        queue_cache_ttl: Optional[float] = None,
        stats_cache_ttl: Optional[float] = None
    ):
        self._store = store
        self._clock = clock or _utc_now
        self._cache = cache
        self._listeners: list[ProgressListener] = list(listeners)
        self._tz = tz or get_stats_timezone()
        self._queue_cache_ttl = queue_cache_ttl if queue_cache_ttl is not None else get_queue_cache_ttl()
        self._stats_cache_ttl = stats_cache_ttl if stats_cache_ttl is not None else get_stats_cache_ttl()
        self._locks = KeyedLocks()
        # Serializes rollup read-modify-write per user; taken after the item lock
        self._user_locks = KeyedLocks()

    def add_listener(self, listener: ProgressListener) -> None:
        self._listeners.append(listener)

    def _now(self) -> datetime:
        now = self._clock()
        if now.tzinfo is None:
            return now.replace(tzinfo=timezone.utc)
        return now

    # ---- Review Queue ----

    def get_review_queue(
        self,
        user_id: str,
        limit: Optional[int] = None,
        force_refresh: bool = False
    ) -> ReviewQueue:
        """
        Build the review queue for `user_id`.

        Reads up to `limit` due items, most overdue first. While fewer than
        NEW_ITEM_BACKFILL_TARGET items are due, the queue is topped up with
        items the user has never reviewed. Does not mutate state.

        Args:
            user_id: User identifier
            limit: Maximum due items (defaults to REVIEW_QUEUE_LIMIT)
            force_refresh: Skip the cached queue

        Returns:
            ReviewQueue with due and new entries and their counts
        """
        _validate_identifier("user_id", user_id)
        limit = _validate_positive("limit", get_queue_limit() if limit is None else limit)

        key = queue_cache_key(user_id)
        generation = 0
        if self._cache is not None:
            if not force_refresh:
                cached = self._cache.get(key)
                if cached is not None and cached[0] == limit:
                    return cached[1]
            generation = self._cache.generation(user_id)

        now = self._now()
        due = self._store.find_due_progress(user_id, now, limit)

        new_items = []
        if len(due) < NEW_ITEM_BACKFILL_TARGET:
            new_items = self._store.find_new_items_for_user(
                user_id, NEW_ITEM_BACKFILL_TARGET - len(due)
            )

        queue = ReviewQueue(
            due_items=tuple(
                QueueEntry(item=d.item, progress=d.progress, context=build_item_context(d.progress))
                for d in due
            ),
            new_items=tuple(
                QueueEntry(item=item, progress=None, context=build_item_context(None))
                for item in new_items
            ),
            total_due=len(due),
            total_new=len(new_items),
            user=self._user_summary(user_id, now),
        )
        logger.debug(
            "Built review queue for user %s: %d due, %d new",
            user_id, queue.total_due, queue.total_new
        )

        if self._cache is not None:
            self._cache.set_if_generation(
                key, (limit, queue), self._queue_cache_ttl, user_id, generation
            )
        return queue

    def _user_summary(self, user_id: str, now: datetime) -> QueueUserSummary:
        stats = self._store.get_user_stats(user_id)
        return QueueUserSummary(
            daily_goal=stats.daily_goal if stats else DEFAULT_DAILY_GOAL,
            reviews_today=count_reviews_on_day(self._store, user_id, now, self._tz),
            current_streak=stats.current_streak if stats else 0,
        )

    # ---- Review Submission ----

    def submit_review(
        self,
        user_id: str,
        item_id: str,
        quality_grade: int,
        response_time_ms: Optional[int] = None,
        is_new_hint: bool = False,
        session_id: Optional[str] = None
    ) -> ScheduleResult:
        """
        Apply one review and return the new schedule.

        Progress, the review event and the user rollup are written in one
        store transaction while holding the lock for (user_id, item_id),
        so either all of them become visible or none do.

        Args:
            user_id: User identifier
            item_id: Vocabulary item identifier
            quality_grade: 0=Again, 1=Hard, 2=Good, 3=Easy
            response_time_ms: Time taken to answer, if measured
            is_new_hint: Start from fresh SM-2 defaults even if progress exists
            session_id: Optional study-session identifier for the event log

        Returns:
            ScheduleResult with the new repetitions, easiness factor,
            interval and next review date

        Raises:
            ValidationError: bad grade, identifier or response time
            NotFoundError: the item does not exist when initializing progress
            StorageError: the store failed; nothing was written
        """
        _validate_identifier("user_id", user_id)
        _validate_identifier("item_id", item_id)
        grade = _validate_grade(quality_grade)
        response_time_ms = _validate_response_time(response_time_ms)
        if session_id is not None:
            _validate_identifier("session_id", session_id)

        with self._locks.hold((user_id, item_id)), ExitStack() as rollup_scope:
            with self._store.transaction():
                now = self._now()
                schedule, event, previous_repetitions = self._apply_review(
                    user_id, item_id, grade, response_time_ms, is_new_hint, session_id, now
                )
                # The user lock stays held until the transaction has committed
                rollup_scope.enter_context(self._user_locks.hold(user_id))
                apply_review_to_user_stats(
                    self._store, event, previous_repetitions, schedule.repetitions, self._tz
                )

        logger.debug(
            "Review applied: user=%s item=%s grade=%d -> reps=%d interval=%d ef=%.2f",
            user_id, item_id, grade,
            schedule.repetitions, schedule.interval, schedule.easiness_factor
        )
        self._notify_progress_changed(user_id)
        return schedule

    def _load_or_initialize(
        self,
        user_id: str,
        item_id: str,
        stored: Optional[LearningProgress],
        is_new_hint: bool,
        now: datetime
    ) -> LearningProgress:
        if stored is not None and not is_new_hint:
            return stored

        if self._store.find_item(item_id) is None:
            raise NotFoundError(f"Vocabulary item {item_id!r} does not exist")

        progress = initialize_progress(user_id, item_id, now)
        if stored is not None:
            # Restarting the schedule keeps the lifetime counters
            progress.total_reviews = stored.total_reviews
            progress.correct_reviews = stored.correct_reviews
            progress.first_learned_at = stored.first_learned_at or now
        return progress

    def _apply_review(
        self,
        user_id: str,
        item_id: str,
        grade: int,
        response_time_ms: Optional[int],
        is_new_hint: bool,
        session_id: Optional[str],
        now: datetime
    ) -> tuple[ScheduleResult, ReviewEvent, Optional[int]]:
        """
        Write the new progress and the review event.

        Returns the schedule, the event and the repetitions stored before
        this review (None when the review created the progress row).
        """
        stored = self._store.find_progress(user_id, item_id)
        progress = self._load_or_initialize(user_id, item_id, stored, is_new_hint, now)
        schedule = compute_next_schedule(progress, grade, now)
        is_correct = grade > 0

        self._store.upsert_progress(replace(
            progress,
            repetitions=schedule.repetitions,
            easiness_factor=schedule.easiness_factor,
            interval=schedule.interval,
            next_review_date=schedule.next_review_date,
            last_review_date=now,
            total_reviews=progress.total_reviews + 1,
            correct_reviews=progress.correct_reviews + (1 if is_correct else 0),
        ))

        event = ReviewEvent(
            user_id=user_id,
            item_id=item_id,
            quality_grade=grade,
            response_time_ms=response_time_ms,
            is_correct=is_correct,
            previous_interval=progress.interval,
            new_interval=schedule.interval,
            previous_easiness=progress.easiness_factor,
            new_easiness=schedule.easiness_factor,
            timestamp=now,
            session_id=session_id,
        )
        self._store.append_review_event(event)

        previous_repetitions = stored.repetitions if stored is not None else None
        return schedule, event, previous_repetitions

    def _notify_progress_changed(self, user_id: str) -> None:
        listeners: list[ProgressListener] = []
        if self._cache is not None:
            listeners.append(self._cache.on_progress_changed)
        listeners.extend(self._listeners)

        for listener in listeners:
            try:
                listener(user_id)
            except Exception:
                logger.exception("Progress listener failed for user %s", user_id)

    # ---- Statistics ----

    def get_learning_stats(self, user_id: str, period: str = DEFAULT_STATS_PERIOD) -> LearningStats:
        """
        Review statistics for `user_id` over `period` (24h, 7d, 30d or all).

        Never fails for a user without reviews; every figure is 0.
        """
        _validate_identifier("user_id", user_id)
        now = self._now()
        period_start(period, now)

        key = stats_cache_key(user_id, period)
        generation = 0
        if self._cache is not None:
            cached = self._cache.get(key)
            if cached is not None:
                return cached
            generation = self._cache.generation(user_id)

        stats = build_learning_stats(self._store, user_id, period, now, self._tz)
        if self._cache is not None:
            self._cache.set_if_generation(key, stats, self._stats_cache_ttl, user_id, generation)
        return stats

    def get_progress_summary(self, user_id: str) -> ProgressSummary:
        _validate_identifier("user_id", user_id)
        return build_progress_summary(self._store, user_id)

    def get_reviews_today(self, user_id: str) -> int:
        _validate_identifier("user_id", user_id)
        return count_reviews_on_day(self._store, user_id, self._now(), self._tz)

    def get_recent_accuracy(self, user_id: str, days: int = RECENT_ACCURACY_DAYS) -> int:
        _validate_identifier("user_id", user_id)
        days = _validate_positive("days", days)
        return recent_accuracy(self._store, user_id, self._now(), days, self._tz)

    def get_struggling_items(self, user_id: str, limit: int = 10) -> list[LearningProgress]:
        """
        Items with a low easiness factor after several reviews, hardest first.
        """
        _validate_identifier("user_id", user_id)
        limit = _validate_positive("limit", limit)
        struggling = [
            p for p in self._store.list_progress(user_id)
            if p.easiness_factor < STRUGGLING_EASINESS_BELOW
            and p.total_reviews > STRUGGLING_MIN_REVIEWS
        ]
        struggling.sort(key=lambda p: p.easiness_factor)
        return struggling[:limit]

    def get_mastered_items(self, user_id: str, limit: int = 50) -> list[LearningProgress]:
        """
        Mastered items (enough repetitions and a high easiness factor),
        most recently reviewed first.
        """
        _validate_identifier("user_id", user_id)
        limit = _validate_positive("limit", limit)
        mastered = [
            p for p in self._store.list_progress(user_id)
            if p.repetitions >= MASTERED_REPETITIONS
            and p.easiness_factor >= MASTERED_EASINESS_FACTOR
        ]
        mastered.sort(
            key=lambda p: p.last_review_date or datetime.min.replace(tzinfo=timezone.utc),
            reverse=True
        )
        return mastered[:limit]

    def set_daily_goal(self, user_id: str, goal: int) -> int:
        """
        Set the number of reviews `user_id` aims for per day.
        """
        _validate_identifier("user_id", user_id)
        if not _is_int(goal) or not MIN_DAILY_GOAL <= goal <= MAX_DAILY_GOAL:
            raise ValidationError(
                f"Daily goal must be between {MIN_DAILY_GOAL} and {MAX_DAILY_GOAL}, got {goal!r}"
            )

        with self._user_locks.hold(user_id), self._store.transaction():
            stats = self._store.get_user_stats(user_id) or build_user_stats(self._store, user_id, self._tz)
            self._store.save_user_stats(replace(stats, daily_goal=goal))

        if self._cache is not None:
            self._cache.on_progress_changed(user_id)
        return goal

    def rebuild_user_stats(self, user_id: str):
        """
        Recompute the stored rollup for `user_id` from source data.
        """
        _validate_identifier("user_id", user_id)
        with self._user_locks.hold(user_id), self._store.transaction():
            stats = rebuild_user_stats(self._store, user_id, self._tz)
        logger.info("Rebuilt learning stats for user %s", user_id)
        return stats
