"""Candidate selection for the card scheduler."""

from cardengine.selection.collector import collect_candidates
from cardengine.selection.pool_types import CandidatePools
from cardengine.selection.pool_utils import (
    hot_pool,
    pick_by_softmax,
    priority_of,
    softmax_sample,
    softmax_weights,
)
from cardengine.selection.retry_queue import QuickRetryEntry, QuickRetryQueue

__all__ = [
    "collect_candidates",
    "CandidatePools",
    "hot_pool",
    "pick_by_softmax",
    "priority_of",
    "softmax_sample",
    "softmax_weights",
    "QuickRetryEntry",
    "QuickRetryQueue",
]
