"""
Data-loading helpers for analytics.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

import pandas as pd

from vocab_review.analytics.constants import EVENT_COLUMNS, PROGRESS_COLUMNS
from vocab_review.store.base import ProgressStore


def review_events_df(events: list, tz: ZoneInfo) -> pd.DataFrame:
    """
    Review events as a dataframe with a calendar `day` column in `tz`.

    Rows are sorted oldest first.
    """
    if not events:
        return pd.DataFrame(columns=EVENT_COLUMNS)

    df = pd.DataFrame(
        [
            {
                "item_id": e.item_id,
                "quality_grade": int(e.quality_grade),
                "response_time_ms": e.response_time_ms,
                "is_correct": bool(e.is_correct),
                "timestamp": e.timestamp,
            }
            for e in events
        ]
    )
    df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True)
    df["response_time_ms"] = pd.to_numeric(df["response_time_ms"], errors="coerce")
    df["day"] = df["timestamp"].dt.tz_convert(tz.key).dt.date
    return df.sort_values("timestamp", kind="stable").reset_index(drop=True)


def load_review_events_df(
    store: ProgressStore,
    user_id: str,
    tz: ZoneInfo,
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None
) -> pd.DataFrame:
    """
    Load review events for a user into a dataframe.
    """
    events = store.query_review_events(user_id, from_date=from_date, to_date=to_date)
    return review_events_df(events, tz)


def load_progress_df(store: ProgressStore, user_id: str) -> pd.DataFrame:
    """
    Load current progress records for a user.
    """
    progress = store.list_progress(user_id)
    if not progress:
        return pd.DataFrame(columns=PROGRESS_COLUMNS)

    return pd.DataFrame(
        [
            {
                "item_id": p.item_id,
                "repetitions": p.repetitions,
                "easiness_factor": p.easiness_factor,
                "total_reviews": p.total_reviews,
                "correct_reviews": p.correct_reviews,
            }
            for p in progress
        ]
    )
