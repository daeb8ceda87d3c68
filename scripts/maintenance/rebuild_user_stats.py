"""
Rebuild the cached per-user learning stats from progress and review history.

The user_learning_stats table is only a cache; this recomputes it from the
learning_progress and review_events tables.

Usage:
    python -m scripts.maintenance.rebuild_user_stats USER_ID [USER_ID ...]
"""

import argparse
import logging
import sys

from vocab_review import ReviewQueueService, StorageError
from vocab_review.store import SqlProgressStore


def main():
    parser = argparse.ArgumentParser(
        description="Recompute user_learning_stats for the given users"
    )
    parser.add_argument("user_ids", nargs="+", help="Users to rebuild")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    service = ReviewQueueService(SqlProgressStore())
    failures = 0
    for user_id in args.user_ids:
        try:
            stats = service.rebuild_user_stats(user_id)
        except StorageError as exc:
            failures += 1
            print(f"✗ {user_id}: {exc}")
            continue
        print(
            f"✓ {user_id}: {stats.total_reviews} reviews, "
            f"{stats.total_vocabulary} items, streak {stats.current_streak} "
            f"(longest {stats.longest_streak})"
        )

    if failures:
        sys.exit(1)


if __name__ == "__main__":
    main()
