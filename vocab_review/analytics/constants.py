"""
Constants for learning-statistics periods.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Final, Optional


# Lookback window per period; None means no lower bound
STATS_PERIODS: Final[dict[str, Optional[timedelta]]] = {
    "24h": timedelta(days=1),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "all": None,
}

DEFAULT_STATS_PERIOD: Final[str] = "7d"
RECENT_ACCURACY_DAYS: Final[int] = 7

EVENT_COLUMNS: Final[list[str]] = [
    "item_id",
    "quality_grade",
    "response_time_ms",
    "is_correct",
    "timestamp",
    "day",
]

PROGRESS_COLUMNS: Final[list[str]] = [
    "item_id",
    "repetitions",
    "easiness_factor",
    "total_reviews",
    "correct_reviews",
]
