"""
Service layer to assemble the library statistics view.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from cardengine.analytics.metrics import (
    compute_daily_reviews,
    compute_library_summary,
    compute_stage_breakdown,
)
from cardengine.analytics.queries import load_item_stats_df, load_review_events_df
from cardengine.analytics.types import LibraryDashboard
from cardengine.storage import StatsStore


async def build_library_dashboard(
    store: StatsStore,
    now: Optional[datetime] = None
) -> LibraryDashboard:
    """
    Build all summary values and series needed by the statistics view.
    """
    now = now or datetime.now(timezone.utc)
    items_df = await load_item_stats_df(store)
    events_df = await load_review_events_df(store)

    return LibraryDashboard(
        summary=compute_library_summary(items_df, now),
        stage_breakdown=compute_stage_breakdown(items_df),
        daily_reviews=compute_daily_reviews(events_df),
    )
