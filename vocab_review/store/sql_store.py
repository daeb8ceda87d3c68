"""
SQL store - ProgressStore backed by SQLAlchemy.

Postgres in production, SQLite in tests. Every public method runs in its
own short session unless called inside `transaction()`, in which case it
joins the transaction's session and nothing is committed until the
transaction exits cleanly.
"""

from __future__ import annotations
import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterable, Iterator, Optional

from sqlalchemy import exists
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from vocab_review.errors import ConcurrencyError, StorageError
from vocab_review.schemas import VocabularyItem
from vocab_review.sm2.database import get_session_factory
from vocab_review.sm2.models import (
    LearningProgress as LearningProgressModel,
    ReviewEvent as ReviewEventModel,
    UserLearningStats as UserLearningStatsModel,
    VocabularyItem as VocabularyItemModel,
)
from vocab_review.sm2.progress_state import (
    LearningProgress,
    ReviewEvent,
    UserLearningStats,
)
from vocab_review.store.base import DueProgress, ProgressStore

logger = logging.getLogger(__name__)


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize to aware UTC. SQLite hands back naive datetimes."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _translate_error(exc: SQLAlchemyError) -> StorageError:
    if isinstance(exc, IntegrityError):
        return ConcurrencyError(f"Conflicting write to review store: {exc.orig}")
    return StorageError(f"Review store operation failed: {exc}")


# ---- Row Conversion ----

def _to_item(row: VocabularyItemModel) -> VocabularyItem:
    return VocabularyItem(
        id=row.id,
        word=row.word,
        meaning=row.meaning,
        pronunciation=row.pronunciation,
        example_sentence=row.example_sentence,
        difficulty_level=row.difficulty_level,
        list_name=row.list_name,
        created_at=_utc(row.created_at),
    )


def _to_progress(row: LearningProgressModel) -> LearningProgress:
    return LearningProgress(
        user_id=row.user_id,
        item_id=row.item_id,
        repetitions=row.repetitions,
        easiness_factor=row.easiness_factor,
        interval=row.interval,
        next_review_date=_utc(row.next_review_date),
        last_review_date=_utc(row.last_review_date),
        total_reviews=row.total_reviews,
        correct_reviews=row.correct_reviews,
        first_learned_at=_utc(row.first_learned_at),
    )


def _to_event(row: ReviewEventModel) -> ReviewEvent:
    return ReviewEvent(
        user_id=row.user_id,
        item_id=row.item_id,
        quality_grade=row.quality_grade,
        response_time_ms=row.response_time_ms,
        is_correct=bool(row.is_correct),
        previous_interval=row.previous_interval,
        new_interval=row.new_interval,
        previous_easiness=row.previous_easiness,
        new_easiness=row.new_easiness,
        timestamp=_utc(row.timestamp),
        session_id=row.session_id,
    )


def _to_stats(row: UserLearningStatsModel) -> UserLearningStats:
    return UserLearningStats(
        user_id=row.user_id,
        total_vocabulary=row.total_vocabulary,
        mastered_vocabulary=row.mastered_vocabulary,
        total_reviews=row.total_reviews,
        correct_reviews=row.correct_reviews,
        current_streak=row.current_streak,
        longest_streak=row.longest_streak,
        last_review_date=_utc(row.last_review_date),
        daily_goal=row.daily_goal,
    )


class SqlProgressStore(ProgressStore):
    """
    ProgressStore over the review tables.

    Inside a transaction, progress and user-stats reads take a row lock
    (SELECT ... FOR UPDATE) so concurrent writers in other processes wait
    for the read-compute-write to finish. Inserting a progress row that
    another writer created first raises ConcurrencyError.
    """

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self._session_factory = session_factory or get_session_factory()
        self._local = threading.local()

    # ---- Session Management ----

    def _current_session(self) -> Optional[Session]:
        return getattr(self._local, "session", None)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if self._current_session() is not None:
            # Nested scopes join the outer transaction
            yield
            return

        session = self._session_factory()
        self._local.session = session
        try:
            yield
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise _translate_error(exc) from exc
        except BaseException:
            session.rollback()
            raise
        finally:
            self._local.session = None
            session.close()

    @contextmanager
    def _session_scope(self) -> Iterator[Session]:
        session = self._current_session()
        if session is not None:
            try:
                yield session
            except SQLAlchemyError as exc:
                raise _translate_error(exc) from exc
            return

        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise _translate_error(exc) from exc
        finally:
            session.close()

    # ---- Vocabulary Items ----

    def add_items(self, items: Iterable[VocabularyItem]) -> None:
        """Insert or refresh vocabulary items (vocabulary layer / fixtures)."""
        with self._session_scope() as session:
            for item in items:
                session.merge(VocabularyItemModel(
                    id=item.id,
                    word=item.word,
                    meaning=item.meaning,
                    pronunciation=item.pronunciation,
                    example_sentence=item.example_sentence,
                    difficulty_level=item.difficulty_level.value if item.difficulty_level else None,
                    list_name=item.list_name,
                    created_at=_utc(item.created_at) or datetime.now(timezone.utc),
                ))

    def find_item(self, item_id: str) -> Optional[VocabularyItem]:
        with self._session_scope() as session:
            row = session.get(VocabularyItemModel, item_id)
            return _to_item(row) if row is not None else None

    def find_new_items_for_user(self, user_id: str, limit: int) -> list[VocabularyItem]:
        if limit <= 0:
            return []
        with self._session_scope() as session:
            tracked = exists().where(
                LearningProgressModel.user_id == user_id,
                LearningProgressModel.item_id == VocabularyItemModel.id
            )
            rows = session.query(VocabularyItemModel).filter(
                ~tracked
            ).order_by(
                VocabularyItemModel.created_at.asc(),
                VocabularyItemModel.id.asc()
            ).limit(limit).all()
            return [_to_item(row) for row in rows]

    # ---- Learning Progress ----

    def _progress_query(self, session: Session, user_id: str, item_id: str):
        query = session.query(LearningProgressModel).filter(
            LearningProgressModel.user_id == user_id,
            LearningProgressModel.item_id == item_id
        )
        if self._current_session() is not None:
            query = query.with_for_update()
        return query

    def find_progress(self, user_id: str, item_id: str) -> Optional[LearningProgress]:
        with self._session_scope() as session:
            row = self._progress_query(session, user_id, item_id).first()
            return _to_progress(row) if row is not None else None

    def find_due_progress(
        self,
        user_id: str,
        now: datetime,
        limit: int
    ) -> list[DueProgress]:
        if limit <= 0:
            return []
        with self._session_scope() as session:
            rows = session.query(LearningProgressModel, VocabularyItemModel).join(
                VocabularyItemModel,
                VocabularyItemModel.id == LearningProgressModel.item_id
            ).filter(
                LearningProgressModel.user_id == user_id,
                LearningProgressModel.next_review_date <= _utc(now)
            ).order_by(
                LearningProgressModel.next_review_date.asc(),
                LearningProgressModel.id.asc()
            ).limit(limit).all()

            return [
                DueProgress(progress=_to_progress(progress_row), item=_to_item(item_row))
                for progress_row, item_row in rows
            ]

    def list_progress(self, user_id: str) -> list[LearningProgress]:
        with self._session_scope() as session:
            rows = session.query(LearningProgressModel).filter(
                LearningProgressModel.user_id == user_id
            ).order_by(LearningProgressModel.id.asc()).all()
            return [_to_progress(row) for row in rows]

    def upsert_progress(self, progress: LearningProgress) -> LearningProgress:
        """
        Save progress (insert or update) keyed on (user_id, item_id).
        """
        with self._session_scope() as session:
            row = self._progress_query(session, progress.user_id, progress.item_id).first()

            if row is None:
                row = LearningProgressModel(
                    user_id=progress.user_id,
                    item_id=progress.item_id,
                    first_learned_at=_utc(progress.first_learned_at),
                )
                session.add(row)
            elif row.first_learned_at is None:
                row.first_learned_at = _utc(progress.first_learned_at)

            row.repetitions = progress.repetitions
            row.easiness_factor = progress.easiness_factor
            row.interval = progress.interval
            row.next_review_date = _utc(progress.next_review_date)
            row.last_review_date = _utc(progress.last_review_date)
            row.total_reviews = progress.total_reviews
            row.correct_reviews = progress.correct_reviews
            row.updated_at = datetime.now(timezone.utc)

            session.flush()
            return _to_progress(row)

    # ---- Review Events ----

    def append_review_event(self, event: ReviewEvent) -> None:
        with self._session_scope() as session:
            session.add(ReviewEventModel(
                user_id=event.user_id,
                item_id=event.item_id,
                timestamp=_utc(event.timestamp),
                quality_grade=int(event.quality_grade),
                response_time_ms=event.response_time_ms,
                is_correct=event.is_correct,
                previous_interval=event.previous_interval,
                new_interval=event.new_interval,
                previous_easiness=event.previous_easiness,
                new_easiness=event.new_easiness,
                session_id=event.session_id,
            ))
            session.flush()

    def query_review_events(
        self,
        user_id: str,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None
    ) -> list[ReviewEvent]:
        with self._session_scope() as session:
            query = session.query(ReviewEventModel).filter(
                ReviewEventModel.user_id == user_id
            )
            if from_date is not None:
                query = query.filter(ReviewEventModel.timestamp >= _utc(from_date))
            if to_date is not None:
                query = query.filter(ReviewEventModel.timestamp <= _utc(to_date))

            rows = query.order_by(
                ReviewEventModel.timestamp.asc(),
                ReviewEventModel.id.asc()
            ).all()
            return [_to_event(row) for row in rows]

    # ---- User Stats ----

    def get_user_stats(self, user_id: str) -> Optional[UserLearningStats]:
        with self._session_scope() as session:
            row = session.get(
                UserLearningStatsModel,
                user_id,
                with_for_update=self._current_session() is not None
            )
            return _to_stats(row) if row is not None else None

    def save_user_stats(self, stats: UserLearningStats) -> None:
        with self._session_scope() as session:
            session.merge(UserLearningStatsModel(
                user_id=stats.user_id,
                total_vocabulary=stats.total_vocabulary,
                mastered_vocabulary=stats.mastered_vocabulary,
                total_reviews=stats.total_reviews,
                correct_reviews=stats.correct_reviews,
                current_streak=stats.current_streak,
                longest_streak=stats.longest_streak,
                last_review_date=_utc(stats.last_review_date),
                daily_goal=stats.daily_goal,
            ))
            session.flush()
        logger.debug("Saved learning stats for user %s", stats.user_id)
