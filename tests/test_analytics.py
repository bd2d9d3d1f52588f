"""
Tests for library statistics.
"""

import random
from datetime import timedelta

import pandas as pd
import pytest

from cardengine import CardScheduler, InMemoryStatsStore, Mode
from cardengine.analytics import (
    build_library_dashboard,
    compute_daily_reviews,
    compute_library_summary,
    load_item_stats_df,
    load_review_events_df,
)


@pytest.mark.asyncio
async def test_dashboard_for_small_library(now):
    store = InMemoryStatsStore(item_ids=["a", "b", "c", "d"])
    scheduler = CardScheduler(store, rng=random.Random(0))
    await scheduler.introduce("a", now - timedelta(days=1))
    await scheduler.introduce("b", now - timedelta(days=1))
    await scheduler.on_review("b", Mode.RECOGNITION, True, now)

    dashboard = await build_library_dashboard(store, now)

    summary = dashboard.summary
    assert summary.total == 4
    assert summary.entered == 2
    assert summary.coverage == 0.5
    assert summary.debt == 1
    assert summary.avg_accuracy == pytest.approx(0.55)

    assert dashboard.stage_breakdown.to_dict() == {"Recognition": 2, "Chunking": 0, "Composing": 0}
    assert dashboard.daily_reviews["reviews"].tolist() == [1]
    assert dashboard.daily_reviews["success_rate"].tolist() == [1.0]


@pytest.mark.asyncio
async def test_empty_library(now):
    store = InMemoryStatsStore()

    items_df = await load_item_stats_df(store)
    events_df = await load_review_events_df(store)
    summary = compute_library_summary(items_df, now)

    assert summary.total == 0
    assert summary.coverage == 0.0
    assert compute_daily_reviews(events_df).empty


def test_daily_reviews_fill_gaps():
    timestamps = pd.to_datetime(
        ["2025-03-01T08:00Z", "2025-03-01T09:00Z", "2025-03-03T10:00Z"], utc=True
    )
    events_df = pd.DataFrame({
        "item_id": ["a", "b", "a"],
        "mode": [Mode.RECOGNITION] * 3,
        "success": [True, False, True],
        "timestamp": timestamps,
    })
    events_df["day_utc"] = events_df["timestamp"].dt.floor("D")

    daily = compute_daily_reviews(events_df)

    assert daily["reviews"].tolist() == [2, 0, 1]
    assert daily["success_rate"].tolist() == [0.5, 0.0, 1.0]
