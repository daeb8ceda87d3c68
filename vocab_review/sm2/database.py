"""
Database - Engine, Session and Schema Management

Handles connection setup and schema lifecycle for the review database.
Uses SQLAlchemy ORM with a Postgres backend (SQLite works for tests).

Row-level reads and writes live in vocab_review.store.sql_store.
"""

from __future__ import annotations
import logging
from typing import Optional

from sqlalchemy import create_engine, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from vocab_review.config import get_database_url
from vocab_review.sm2.models import Base

logger = logging.getLogger(__name__)

REQUIRED_TABLES = (
    'vocabulary_items',
    'learning_progress',
    'review_events',
    'user_learning_stats',
)


def get_engine(db_url: Optional[str] = None) -> Engine:
    """
    Get SQLAlchemy engine for database connection.

    Uses connection pooling for server databases.

    Args:
        db_url: Connection string; defaults to the configured DATABASE_URL

    Returns:
        SQLAlchemy Engine instance
    """
    db_url = db_url or get_database_url()
    if db_url.startswith("sqlite"):
        return create_engine(db_url, echo=False)
    return create_engine(
        db_url,
        pool_size=5,           # Keep 5 connections open
        max_overflow=10,       # Allow up to 10 extra connections
        pool_pre_ping=True,    # Verify connections before use
        echo=False
    )


def get_session_factory(engine: Optional[Engine] = None) -> sessionmaker:
    """
    Build a session factory bound to `engine`.

    Sessions keep loaded attributes after commit so rows can be converted to
    domain objects once the transaction is closed.
    """
    engine = engine or get_engine()
    return sessionmaker(bind=engine, expire_on_commit=False)


def init_db(engine: Optional[Engine] = None) -> None:
    """
    Initialize database schema if tables don't exist.

    Safe to call multiple times - only creates missing tables.
    """
    engine = engine or get_engine()

    existing_tables = set(inspect(engine).get_table_names())
    missing = [name for name in REQUIRED_TABLES if name not in existing_tables]
    if not missing:
        return

    Base.metadata.create_all(engine)
    logger.info("Created review tables: %s", ", ".join(missing))


def reset_db(engine: Optional[Engine] = None) -> None:
    """
    DANGEROUS: Delete all data and recreate tables.

    Only use this for testing or when you want to start fresh.
    All review history will be lost!
    """
    engine = engine or get_engine()
    Base.metadata.drop_all(engine)
    logger.info("All review tables dropped")

    init_db(engine)
