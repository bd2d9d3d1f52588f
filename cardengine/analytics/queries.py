"""
Data-loading helpers for library statistics.
"""

from __future__ import annotations

import pandas as pd

from cardengine.analytics.constants import ITEM_STATS_COLUMNS, REVIEW_EVENT_COLUMNS
from cardengine.storage import StatsStore


async def load_item_stats_df(store: StatsStore) -> pd.DataFrame:
    """
    Load one row per catalog item with its active-stage state.

    Items without stats appear as not introduced with empty state columns.
    """
    item_ids = await store.list_ids()
    if not item_ids:
        return pd.DataFrame(columns=ITEM_STATS_COLUMNS)

    rows = []
    for item_id in item_ids:
        stats = await store.get_stats(item_id)
        if stats is None:
            rows.append({"item_id": item_id, "introduced": False})
            continue
        state = stats.active_state
        rows.append({
            "item_id": item_id,
            "introduced": stats.introduced,
            "stage": stats.stage,
            "stability": state.stability,
            "accuracy": state.accuracy,
            "due": state.due,
            "shown": state.shown,
        })

    df = pd.DataFrame(rows).reindex(columns=ITEM_STATS_COLUMNS)
    df["introduced"] = df["introduced"].fillna(False).astype(bool)
    df["due"] = pd.to_datetime(df["due"], utc=True, errors="coerce")
    return df


async def load_review_events_df(store: StatsStore) -> pd.DataFrame:
    """
    Load the review log into a dataframe, oldest first.
    """
    events = await store.list_review_events()
    if not events:
        return pd.DataFrame(columns=REVIEW_EVENT_COLUMNS)

    df = pd.DataFrame([
        {
            "item_id": event.item_id,
            "mode": event.mode,
            "success": event.success,
            "timestamp": event.timestamp,
        }
        for event in events
    ])
    df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True, errors="coerce")
    df = df.dropna(subset=["item_id", "timestamp"])
    df["day_utc"] = df["timestamp"].dt.floor("D")
    df = df.sort_values("timestamp").reset_index(drop=True)
    return df
