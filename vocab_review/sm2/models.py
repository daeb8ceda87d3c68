"""
SQLAlchemy ORM Models for the Review Database

Defines the vocabulary item, learning progress, review event and user stats
tables for Postgres persistence.
"""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class VocabularyItem(Base):
    """
    A vocabulary item. Owned by the vocabulary layer; read-only here.
    """
    __tablename__ = 'vocabulary_items'

    id = Column(String(255), primary_key=True)
    word = Column(String(255), nullable=False)
    meaning = Column(Text, nullable=False)
    pronunciation = Column(String(255), nullable=True)
    example_sentence = Column(Text, nullable=True)
    difficulty_level = Column(String(50), nullable=True)  # beginner / intermediate / advanced
    list_name = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<VocabularyItem({self.id}, {self.word!r})>"


class LearningProgress(Base):
    """
    SM-2 state for a single (user_id, item_id) pair.
    """
    __tablename__ = 'learning_progress'
    __table_args__ = (
        UniqueConstraint('user_id', 'item_id', name='uq_learning_progress_user_item'),
        Index('idx_learning_progress_due', 'user_id', 'next_review_date'),
    )

    # Surrogate key preserves insertion order for tie-breaking
    id = Column(Integer, primary_key=True, autoincrement=True)

    user_id = Column(String(255), nullable=False)
    item_id = Column(
        String(255),
        ForeignKey('vocabulary_items.id', ondelete='CASCADE'),
        nullable=False
    )

    # SM-2 parameters
    repetitions = Column(Integer, nullable=False, default=0)
    easiness_factor = Column(Float, nullable=False, default=2.5)
    interval = Column(Integer, nullable=False, default=1)  # days

    # Scheduling
    next_review_date = Column(DateTime(timezone=True), nullable=False)
    last_review_date = Column(DateTime(timezone=True), nullable=True)

    # Counters
    total_reviews = Column(Integer, nullable=False, default=0)
    correct_reviews = Column(Integer, nullable=False, default=0)

    first_learned_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<LearningProgress({self.user_id}, {self.item_id}, reps={self.repetitions})>"


class ReviewEvent(Base):
    """
    Append-only log entry for a single submitted review.
    """
    __tablename__ = 'review_events'
    __table_args__ = (
        Index('idx_review_events_user_time', 'user_id', 'timestamp'),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)

    user_id = Column(String(255), nullable=False)
    item_id = Column(
        String(255),
        ForeignKey('vocabulary_items.id', ondelete='CASCADE'),
        nullable=False
    )

    # Timing and feedback
    timestamp = Column(DateTime(timezone=True), nullable=False)
    quality_grade = Column(Integer, nullable=False)  # 0=AGAIN, 1=HARD, 2=GOOD, 3=EASY
    response_time_ms = Column(Integer, nullable=True)
    is_correct = Column(Boolean, nullable=False)

    # Schedule before/after
    previous_interval = Column(Integer, nullable=False)
    new_interval = Column(Integer, nullable=False)
    previous_easiness = Column(Float, nullable=False)
    new_easiness = Column(Float, nullable=False)

    session_id = Column(String(255), nullable=True)

    def __repr__(self):
        return f"<ReviewEvent(id={self.id}, {self.user_id}/{self.item_id}, grade={self.quality_grade})>"


class UserLearningStats(Base):
    """
    Per-user rollup. Rebuilt from learning_progress and review_events.
    """
    __tablename__ = 'user_learning_stats'

    user_id = Column(String(255), primary_key=True)

    total_vocabulary = Column(Integer, nullable=False, default=0)
    mastered_vocabulary = Column(Integer, nullable=False, default=0)
    total_reviews = Column(Integer, nullable=False, default=0)
    correct_reviews = Column(Integer, nullable=False, default=0)
    current_streak = Column(Integer, nullable=False, default=0)
    longest_streak = Column(Integer, nullable=False, default=0)
    last_review_date = Column(DateTime(timezone=True), nullable=True)

    # User setting
    daily_goal = Column(Integer, nullable=False, default=10)

    def __repr__(self):
        return f"<UserLearningStats({self.user_id}, reviews={self.total_reviews})>"
