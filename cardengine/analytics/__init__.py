"""
Analytics package exports.
"""

from cardengine.analytics.constants import STAGE_LABELS
from cardengine.analytics.metrics import (
    compute_daily_reviews,
    compute_library_summary,
    compute_stage_breakdown,
)
from cardengine.analytics.queries import load_item_stats_df, load_review_events_df
from cardengine.analytics.service import build_library_dashboard
from cardengine.analytics.types import LibraryDashboard, LibrarySummary

__all__ = [
    "STAGE_LABELS",
    "compute_daily_reviews",
    "compute_library_summary",
    "compute_stage_breakdown",
    "load_item_stats_df",
    "load_review_events_df",
    "build_library_dashboard",
    "LibraryDashboard",
    "LibrarySummary",
]
