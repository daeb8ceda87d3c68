"""
Persistence for learning progress and review history.
"""

from vocab_review.store.base import DueProgress, ProgressStore
from vocab_review.store.memory_store import InMemoryProgressStore
from vocab_review.store.sql_store import SqlProgressStore

__all__ = [
    "DueProgress",
    "ProgressStore",
    "InMemoryProgressStore",
    "SqlProgressStore",
]
