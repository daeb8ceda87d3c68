"""
Error taxonomy for the review core.

The engine never raises. The service layer raises these typed errors and
leaves user-facing messaging to the caller.
"""

from __future__ import annotations


class ReviewError(Exception):
    """Base class for all errors raised by vocab_review."""


class ValidationError(ReviewError):
    """Caller supplied an out-of-domain value. Never retried automatically."""


class NotFoundError(ReviewError):
    """A referenced vocabulary item does not exist."""


class StorageError(ReviewError):
    """
    The underlying store failed to read or write.

    Retryable at the caller's discretion. A failed write sequence leaves no
    partial progress or history behind.
    """

    retryable = True


class ConcurrencyError(StorageError):
    """
    The store reported a conflicting write on the (user_id, item_id) key.

    Re-read before retrying.
    """
