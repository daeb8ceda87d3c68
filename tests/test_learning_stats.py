"""
Tests for learning statistics and the supporting user operations.
"""

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from vocab_review import ReviewQueueService, ValidationError
from vocab_review.analytics import build_user_stats
from vocab_review.sm2 import initialize_progress
from vocab_review.sm2.progress_state import UserLearningStats

from conftest import NOW, UTC, review_at


def seed_progress(store, item_id, **overrides):
    return store.upsert_progress(replace(
        initialize_progress("user-1", item_id, NOW - timedelta(days=30)),
        next_review_date=NOW + timedelta(days=10),
        **overrides
    ))


class TestLearningStats:

    @pytest.mark.parametrize("period", ["24h", "7d", "30d", "all"])
    def test_user_without_reviews(self, service, period):
        stats = service.get_learning_stats("user-1", period)

        assert stats.period == period
        assert stats.total_reviews == 0
        assert stats.correct_reviews == 0
        assert stats.accuracy == 0
        assert stats.average_response_time == 0
        assert stats.current_streak == 0
        assert stats.longest_streak == 0
        assert stats.total_vocabulary == 0
        assert stats.mastered_vocabulary == 0
        assert stats.daily_breakdown == ()

    def test_default_period_is_seven_days(self, service):
        assert service.get_learning_stats("user-1").period == "7d"

    @pytest.mark.parametrize("period", ["1y", "", "7D", None])
    def test_rejects_unknown_period(self, service, period):
        with pytest.raises(ValidationError):
            service.get_learning_stats("user-1", period)

    @pytest.mark.parametrize("period, expected", [
        ("24h", 1),
        ("7d", 2),
        ("30d", 3),
        ("all", 4),
    ])
    def test_period_windows(self, service, clock, period, expected):
        review_at(service, clock, NOW - timedelta(days=45), item_id="item-01")
        review_at(service, clock, NOW - timedelta(days=10), item_id="item-02")
        review_at(service, clock, NOW - timedelta(days=3), item_id="item-03")
        review_at(service, clock, NOW - timedelta(hours=2), item_id="item-04")
        clock.now = NOW

        assert service.get_learning_stats("user-1", period).total_reviews == expected

    def test_accuracy_and_response_time(self, service, clock):
        review_at(service, clock, NOW - timedelta(hours=3), item_id="item-01", grade=2, response_time_ms=1000)
        review_at(service, clock, NOW - timedelta(hours=2), item_id="item-02", grade=0)
        review_at(service, clock, NOW - timedelta(hours=1), item_id="item-03", grade=3, response_time_ms=2000)
        clock.now = NOW

        stats = service.get_learning_stats("user-1", "24h")
        assert stats.total_reviews == 3
        assert stats.correct_reviews == 2
        assert stats.accuracy == 67
        assert stats.average_response_time == 1500
        assert stats.total_vocabulary == 3

    def test_streak_over_consecutive_days(self, service, clock):
        for days_ago in (2, 1, 0):
            review_at(service, clock, NOW - timedelta(days=days_ago), item_id=f"item-0{days_ago}")

        stats = service.get_learning_stats("user-1", "7d")
        assert stats.current_streak == 3
        assert stats.longest_streak == 3

    def test_streaks_use_whole_history(self, service, clock):
        for days_ago in (40, 39, 38, 37):
            review_at(service, clock, NOW - timedelta(days=days_ago), item_id="item-01")
        # Yesterday by calendar day, but older than the 24h window
        review_at(service, clock, NOW - timedelta(days=1, hours=1), item_id="item-01")
        review_at(service, clock, NOW, item_id="item-01")

        stats = service.get_learning_stats("user-1", "24h")
        assert stats.total_reviews == 1
        assert stats.current_streak == 2
        assert stats.longest_streak == 4

    @pytest.mark.parametrize("period, age", [
        ("24h", timedelta(days=1)),
        ("7d", timedelta(days=7)),
        ("30d", timedelta(days=30)),
    ])
    def test_window_start_is_inclusive(self, service, clock, period, age):
        review_at(service, clock, NOW - age - timedelta(seconds=1), item_id="item-02")
        review_at(service, clock, NOW - age, item_id="item-01")
        review_at(service, clock, NOW, item_id="item-03")

        stats = service.get_learning_stats("user-1", period)
        assert stats.total_reviews == 2

    def test_daily_breakdown(self, service, clock):
        review_at(service, clock, NOW - timedelta(days=2), item_id="item-01", grade=0)
        review_at(service, clock, NOW - timedelta(days=2, hours=-1), item_id="item-02", grade=2)
        review_at(service, clock, NOW, item_id="item-03", grade=3)

        breakdown = service.get_learning_stats("user-1", "7d").daily_breakdown
        assert [(b.date, b.total, b.correct, b.accuracy) for b in breakdown] == [
            ("2026-03-08", 2, 1, 50),
            ("2026-03-10", 1, 1, 100),
        ]

    def test_mastered_vocabulary(self, store, service):
        seed_progress(store, "item-01", repetitions=5, easiness_factor=2.6)
        seed_progress(store, "item-02", repetitions=6, easiness_factor=1.9)
        seed_progress(store, "item-03", repetitions=2)

        stats = service.get_learning_stats("user-1", "all")
        assert stats.total_vocabulary == 3
        assert stats.mastered_vocabulary == 2

    def test_calendar_days_follow_configured_timezone(self, store, clock):
        service = ReviewQueueService(
            store, clock=clock, tz=ZoneInfo("America/New_York"),
            queue_cache_ttl=300, stats_cache_ttl=600
        )
        review_at(service, clock, datetime(2026, 3, 10, 3, 0, tzinfo=timezone.utc), item_id="item-01")
        review_at(service, clock, datetime(2026, 3, 10, 5, 0, tzinfo=timezone.utc), item_id="item-02")

        stats = service.get_learning_stats("user-1", "all")
        assert [b.date for b in stats.daily_breakdown] == ["2026-03-09", "2026-03-10"]
        assert stats.current_streak == 2


class TestStatsCaching:

    def test_cached_until_next_review(self, cached_service, clock):
        review_at(cached_service, clock, NOW, item_id="item-01")
        first = cached_service.get_learning_stats("user-1", "7d")
        assert cached_service.get_learning_stats("user-1", "7d") is first

        review_at(cached_service, clock, NOW, item_id="item-02")
        assert cached_service.get_learning_stats("user-1", "7d").total_reviews == 2

    def test_periods_cached_separately(self, cached_service, clock):
        review_at(cached_service, clock, NOW - timedelta(days=3), item_id="item-01")
        clock.now = NOW

        assert cached_service.get_learning_stats("user-1", "24h").total_reviews == 0
        assert cached_service.get_learning_stats("user-1", "7d").total_reviews == 1

    def test_review_during_build_is_not_hidden_by_cache(self, hooked_store, hooked_service, clock):
        review_at(hooked_service, clock, NOW - timedelta(hours=1), item_id="item-01")
        hooked_store.read_name = "query_review_events"
        hooked_store.on_read = lambda: hooked_service.submit_review("user-1", "item-02", 3)

        assert hooked_service.get_learning_stats("user-1", "7d").total_reviews == 1
        assert hooked_service.get_learning_stats("user-1", "7d").total_reviews == 2


class TestProgressQueries:

    def test_progress_summary(self, store, service):
        seed_progress(store, "item-01", repetitions=0, total_reviews=2, correct_reviews=0, easiness_factor=2.0)
        seed_progress(store, "item-02", repetitions=3, total_reviews=3, correct_reviews=3, easiness_factor=2.5)
        seed_progress(store, "item-03", repetitions=5, total_reviews=6, correct_reviews=6, easiness_factor=3.0)

        summary = service.get_progress_summary("user-1")
        assert summary.total_items == 3
        assert summary.new_items == 1
        assert summary.learning_items == 1
        assert summary.mastered_items == 1
        assert summary.total_reviews == 11
        assert summary.correct_reviews == 9
        assert summary.average_easiness == pytest.approx(2.5)

    def test_progress_summary_for_new_user(self, service):
        summary = service.get_progress_summary("user-1")
        assert summary.total_items == 0
        assert summary.average_easiness == 2.5

    def test_reviews_today(self, service, clock):
        review_at(service, clock, NOW - timedelta(days=1), item_id="item-01")
        review_at(service, clock, NOW - timedelta(hours=1), item_id="item-02")
        review_at(service, clock, NOW, item_id="item-03")

        assert service.get_reviews_today("user-1") == 2

    def test_recent_accuracy(self, service, clock):
        review_at(service, clock, NOW - timedelta(days=20), item_id="item-01", grade=0)
        review_at(service, clock, NOW - timedelta(days=2), item_id="item-02", grade=0)
        review_at(service, clock, NOW - timedelta(days=1), item_id="item-03", grade=2)
        review_at(service, clock, NOW, item_id="item-04", grade=3)

        assert service.get_recent_accuracy("user-1") == 67
        assert service.get_recent_accuracy("user-1", days=30) == 50

    def test_recent_accuracy_without_reviews(self, service):
        assert service.get_recent_accuracy("user-1") == 0

    def test_struggling_items(self, store, service):
        seed_progress(store, "item-01", easiness_factor=1.5, total_reviews=4)
        seed_progress(store, "item-02", easiness_factor=1.8, total_reviews=3)
        seed_progress(store, "item-03", easiness_factor=1.4, total_reviews=2)
        seed_progress(store, "item-04", easiness_factor=2.3, total_reviews=9)

        struggling = service.get_struggling_items("user-1")
        assert [p.item_id for p in struggling] == ["item-01", "item-02"]
        assert [p.item_id for p in service.get_struggling_items("user-1", limit=1)] == ["item-01"]

    def test_mastered_items(self, store, service):
        seed_progress(store, "item-01", repetitions=5, easiness_factor=2.5, last_review_date=NOW - timedelta(days=3))
        seed_progress(store, "item-02", repetitions=7, easiness_factor=2.8, last_review_date=NOW - timedelta(days=1))
        seed_progress(store, "item-03", repetitions=6, easiness_factor=2.2, last_review_date=NOW)
        seed_progress(store, "item-04", repetitions=4, easiness_factor=2.9, last_review_date=NOW)

        mastered = service.get_mastered_items("user-1")
        assert [p.item_id for p in mastered] == ["item-02", "item-01"]


class TestDailyGoal:

    def test_set_goal_for_new_user(self, store, service):
        assert service.set_daily_goal("user-1", 30) == 30
        stats = store.get_user_stats("user-1")
        assert stats.daily_goal == 30
        assert stats.total_reviews == 0

    def test_goal_survives_reviews(self, store, service):
        service.set_daily_goal("user-1", 15)
        service.submit_review("user-1", "item-01", 2)

        stats = store.get_user_stats("user-1")
        assert stats.daily_goal == 15
        assert stats.total_reviews == 1

    @pytest.mark.parametrize("goal", [0, 101, -5, "20", 12.5, True])
    def test_rejects_out_of_range(self, store, service, goal):
        with pytest.raises(ValidationError):
            service.set_daily_goal("user-1", goal)
        assert store.get_user_stats("user-1") is None

    @pytest.mark.parametrize("goal", [1, 100])
    def test_bounds_are_inclusive(self, service, goal):
        assert service.set_daily_goal("user-1", goal) == goal

    def test_invalidates_cached_queue(self, cached_service):
        assert cached_service.get_review_queue("user-1", limit=20).user.daily_goal == 10
        cached_service.set_daily_goal("user-1", 40)
        assert cached_service.get_review_queue("user-1", limit=20).user.daily_goal == 40


class TestRebuildUserStats:

    def test_rebuild_replaces_stale_rollup(self, store, service, clock):
        review_at(service, clock, NOW - timedelta(days=1), item_id="item-01")
        review_at(service, clock, NOW, item_id="item-02", grade=0)
        store.save_user_stats(UserLearningStats(user_id="user-1", total_reviews=99, current_streak=12, daily_goal=25))

        stats = service.rebuild_user_stats("user-1")

        assert stats.total_reviews == 2
        assert stats.correct_reviews == 1
        assert stats.current_streak == 2
        assert stats.daily_goal == 25
        assert store.get_user_stats("user-1") == stats

    def test_rebuild_for_user_without_history(self, store, service):
        stats = service.rebuild_user_stats("user-1")
        assert stats.total_reviews == 0
        assert stats.last_review_date is None
        assert store.get_user_stats("user-1").daily_goal == 10


class TestIncrementalRollup:

    def test_matches_full_rebuild(self, store, service, clock):
        for days_ago, grade in ((9, 2), (8, 2), (7, 3), (6, 2), (5, 2)):
            review_at(service, clock, NOW - timedelta(days=days_ago), item_id="item-01", grade=grade)
        assert store.get_user_stats("user-1").mastered_vocabulary == 1

        review_at(service, clock, NOW - timedelta(days=5, hours=-2), item_id="item-02", grade=0)
        review_at(service, clock, NOW - timedelta(days=3), item_id="item-01", grade=0)
        review_at(service, clock, NOW - timedelta(days=1), item_id="item-02")
        review_at(service, clock, NOW, item_id="item-03")

        stats = store.get_user_stats("user-1")
        assert stats == build_user_stats(store, "user-1", UTC)
        assert stats.total_reviews == 9
        assert stats.correct_reviews == 7
        assert stats.total_vocabulary == 3
        assert stats.mastered_vocabulary == 0
        assert stats.current_streak == 2
        assert stats.longest_streak == 5
        assert stats.last_review_date == NOW

    def test_updates_stored_rollup_in_place(self, store, service, clock):
        review_at(service, clock, NOW - timedelta(hours=2), item_id="item-01")
        store.save_user_stats(replace(
            store.get_user_stats("user-1"), total_reviews=99, correct_reviews=90
        ))

        review_at(service, clock, NOW, item_id="item-01", grade=0)

        stats = store.get_user_stats("user-1")
        assert stats.total_reviews == 100
        assert stats.correct_reviews == 90
        assert stats.total_vocabulary == 1
        assert stats.current_streak == 1

    def test_goal_only_rollup_counts_first_review(self, store, service, clock):
        service.set_daily_goal("user-1", 30)
        review_at(service, clock, NOW, item_id="item-01")

        stats = store.get_user_stats("user-1")
        assert stats.total_reviews == 1
        assert stats.total_vocabulary == 1
        assert stats.current_streak == 1
        assert stats.longest_streak == 1
        assert stats.last_review_date == NOW
        assert stats.daily_goal == 30

    def test_out_of_order_review_rebuilds(self, store, service, clock):
        review_at(service, clock, NOW, item_id="item-01")
        store.save_user_stats(replace(store.get_user_stats("user-1"), total_reviews=99))

        review_at(service, clock, NOW - timedelta(days=1), item_id="item-02")

        stats = store.get_user_stats("user-1")
        assert stats.total_reviews == 2
        assert stats.current_streak == 2
        assert stats.last_review_date == NOW

    def test_gap_resets_current_streak(self, store, service, clock):
        for days_ago in (6, 5, 4):
            review_at(service, clock, NOW - timedelta(days=days_ago), item_id=f"item-0{days_ago}")
        review_at(service, clock, NOW, item_id="item-01")

        stats = store.get_user_stats("user-1")
        assert stats.current_streak == 1
        assert stats.longest_streak == 3
