"""
Metric computations for library statistics.
"""

from __future__ import annotations

from datetime import datetime

import pandas as pd

from cardengine.analytics.constants import STAGE_LABELS
from cardengine.analytics.types import LibrarySummary


def compute_library_summary(items_df: pd.DataFrame, now: datetime) -> LibrarySummary:
    """
    Coverage, average stage accuracy and debt over the library.
    """
    total = len(items_df)
    if total == 0:
        return LibrarySummary(coverage=0.0, avg_accuracy=0.0, debt=0, entered=0, total=0)

    introduced = items_df[items_df["introduced"]]
    entered = len(introduced)
    avg_accuracy = float(introduced["accuracy"].mean()) if entered else 0.0
    debt = int((introduced["due"] <= pd.Timestamp(now)).sum()) if entered else 0

    return LibrarySummary(
        coverage=entered / total,
        avg_accuracy=avg_accuracy,
        debt=debt,
        entered=entered,
        total=total,
    )


def compute_stage_breakdown(items_df: pd.DataFrame) -> pd.Series:
    """
    Count of introduced items per stage, labelled, in stage order.
    """
    labels = list(STAGE_LABELS.values())
    if items_df.empty:
        return pd.Series(0, index=labels, dtype="int64")

    introduced = items_df[items_df["introduced"]]
    counts = introduced["stage"].map(STAGE_LABELS).value_counts()
    return counts.reindex(labels, fill_value=0).astype("int64")


def compute_daily_reviews(events_df: pd.DataFrame) -> pd.DataFrame:
    """
    Reviews and success rate per UTC day, on a dense day index.
    """
    if events_df.empty:
        return pd.DataFrame(
            {"reviews": pd.Series(dtype="int64"), "success_rate": pd.Series(dtype="float64")}
        )

    day_index = pd.date_range(
        start=events_df["day_utc"].min(),
        end=events_df["day_utc"].max(),
        freq="D",
    )
    grouped = events_df.groupby("day_utc")["success"]
    daily = pd.DataFrame({
        "reviews": grouped.size(),
        "success_rate": grouped.mean().astype("float64"),
    })
    daily = daily.reindex(day_index)
    daily["reviews"] = daily["reviews"].fillna(0).astype("int64")
    daily["success_rate"] = daily["success_rate"].fillna(0.0)
    return daily
