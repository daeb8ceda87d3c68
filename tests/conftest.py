import os
import sys
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from vocab_review import ReviewCache, ReviewQueueService
from vocab_review.schemas import VocabularyItem
from vocab_review.sm2.database import get_session_factory, init_db
from vocab_review.store import InMemoryProgressStore, SqlProgressStore


NOW = datetime(2026, 3, 10, 9, 30, tzinfo=timezone.utc)
UTC = ZoneInfo("UTC")


class FixedClock:
    """Controllable clock for the review service."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def make_items(count):
    base = NOW - timedelta(days=100)
    return [
        VocabularyItem(
            id=f"item-{index:02d}",
            word=f"word{index}",
            meaning=f"meaning {index}",
            difficulty_level="beginner",
            list_name="Basics",
            created_at=base + timedelta(minutes=index),
        )
        for index in range(count)
    ]


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def items():
    return make_items(10)


@pytest.fixture
def memory_store(items):
    return InMemoryProgressStore(items)


@pytest.fixture
def sql_engine():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def sql_store(sql_engine, items):
    store = SqlProgressStore(get_session_factory(sql_engine))
    store.add_items(items)
    return store


@pytest.fixture(params=['memory', 'sql'])
def store(request):
    return request.getfixturevalue(f'{request.param}_store')


@pytest.fixture
def cache():
    return ReviewCache()


@pytest.fixture
def service(store, clock):
    return ReviewQueueService(
        store,
        clock=clock,
        tz=UTC,
        queue_cache_ttl=300,
        stats_cache_ttl=600,
    )


@pytest.fixture
def cached_service(store, clock, cache):
    return ReviewQueueService(
        store,
        clock=clock,
        cache=cache,
        tz=UTC,
        queue_cache_ttl=300,
        stats_cache_ttl=600,
    )


def review_at(service, clock, when, item_id="item-01", grade=2, response_time_ms=None, user_id="user-1"):
    """Submit one review with the clock set to `when`."""
    clock.now = when
    return service.submit_review(user_id, item_id, grade, response_time_ms)


class WriteAfterRead:
    """Mixin that runs `on_read` once, right after `read_name` returns."""

    read_name = None
    on_read = None

    def _after(self, name):
        if self.on_read is not None and name == self.read_name:
            callback, self.on_read = self.on_read, None
            callback()

    def find_due_progress(self, *args, **kwargs):
        result = super().find_due_progress(*args, **kwargs)
        self._after("find_due_progress")
        return result

    def query_review_events(self, *args, **kwargs):
        result = super().query_review_events(*args, **kwargs)
        self._after("query_review_events")
        return result


class HookedMemoryStore(WriteAfterRead, InMemoryProgressStore):
    pass


class HookedSqlStore(WriteAfterRead, SqlProgressStore):
    pass


@pytest.fixture(params=['memory', 'sql'])
def hooked_store(request, items):
    if request.param == 'memory':
        return HookedMemoryStore(items)
    engine = request.getfixturevalue('sql_engine')
    store = HookedSqlStore(get_session_factory(engine))
    store.add_items(items)
    return store


@pytest.fixture
def hooked_service(hooked_store, clock, cache):
    return ReviewQueueService(
        hooked_store,
        clock=clock,
        cache=cache,
        tz=UTC,
        queue_cache_ttl=300,
        stats_cache_ttl=600,
    )
