"""
vocab_review - spaced-repetition core for vocabulary learning.

Quick start:
    from vocab_review import ReviewQueueService, ReviewCache
    from vocab_review.store import SqlProgressStore

    service = ReviewQueueService(SqlProgressStore(), cache=ReviewCache())
    queue = service.get_review_queue("user-1")
    result = service.submit_review("user-1", "item-1", quality_grade=2)
"""

from vocab_review.cache import ReviewCache
from vocab_review.errors import (
    ConcurrencyError,
    NotFoundError,
    ReviewError,
    StorageError,
    ValidationError,
)
from vocab_review.queue_types import QueueEntry, QueueUserSummary, ReviewQueue
from vocab_review.review_queue import ReviewQueueService

__version__ = "0.1.0"

__all__ = [
    "ReviewCache",
    "ReviewQueueService",
    "QueueEntry",
    "QueueUserSummary",
    "ReviewQueue",
    "ReviewError",
    "ValidationError",
    "NotFoundError",
    "StorageError",
    "ConcurrencyError",
]
