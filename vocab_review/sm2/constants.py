"""
SM-2 Constants and Parameters

All configurable parameters for the scheduler in one place.
"""

from enum import IntEnum


# ---- Quality Grades ----

class QualityGrade(IntEnum):
    """User self-assessment of a recall attempt."""
    AGAIN = 0   # Recall failed
    HARD = 1    # Recalled with high effort
    GOOD = 2    # Recalled normally
    EASY = 3    # Recalled fluently


VALID_GRADES = frozenset(int(g) for g in QualityGrade)


# ---- Initial State ----

DEFAULT_EASINESS_FACTOR = 2.5
DEFAULT_INTERVAL = 1   # days
DEFAULT_REPETITIONS = 0


# ---- Algorithm Parameters ----

MIN_EASINESS_FACTOR = 1.3
FIRST_SUCCESS_INTERVAL = 1    # days, after the first successful review
SECOND_SUCCESS_INTERVAL = 6   # days, after the second successful review


# ---- Derived Labels ----

MASTERED_REPETITIONS = 5          # Counted as mastered in the user rollup
MASTERED_EASINESS_FACTOR = 2.5    # Also required for the "mastered" label
STRENGTHENING_REPETITIONS = 3
HARD_EASINESS_BELOW = 2.0
MEDIUM_EASINESS_BELOW = 2.5


# ---- Review Queue ----

NEW_ITEM_BACKFILL_TARGET = 5   # Backfill with new items while fewer are due


# ---- Struggling Items ----

STRUGGLING_EASINESS_BELOW = 2.0
STRUGGLING_MIN_REVIEWS = 2   # total_reviews must exceed this


# ---- Daily Goal ----

DEFAULT_DAILY_GOAL = 10
MIN_DAILY_GOAL = 1
MAX_DAILY_GOAL = 100
