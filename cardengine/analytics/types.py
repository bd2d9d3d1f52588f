"""
Types for library statistics.
"""

from __future__ import annotations

from dataclasses import dataclass

import pandas as pd


@dataclass(frozen=True)
class LibrarySummary:
    """
    Headline numbers for the whole library.

    - coverage: entered / total (0 for an empty library)
    - avg_accuracy: mean accuracy of each introduced item's active stage
    - debt: introduced items whose active stage is due
    """
    coverage: float
    avg_accuracy: float
    debt: int
    entered: int
    total: int


@dataclass(frozen=True)
class LibraryDashboard:
    """
    Precomputed summary and series for the statistics view.
    """
    summary: LibrarySummary
    stage_breakdown: pd.Series
    daily_reviews: pd.DataFrame
