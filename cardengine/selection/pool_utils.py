"""
Pool utilities for selection.

Priority scoring and weighted sampling over candidate pools. Selection is
softmax-weighted rather than argmax so one urgent item is not hammered
every turn.
"""

from __future__ import annotations

import math
import random
from datetime import datetime
from typing import Optional, Sequence

from cardengine.memory.constants import ALPHA, BETA, HOT_POOL_SIZE, KAPPA, TAU
from cardengine.memory.retention import (
    days_between,
    elapsed_days,
    interval_days,
    recall_probability,
)
from cardengine.schemas import ItemStats


def current_recall(stats: ItemStats, now: datetime) -> float:
    """Recall probability of the item's active stage right now."""
    state = stats.active_state
    return recall_probability(elapsed_days(state.last_seen, now), state.stability)


def priority_of(stats: ItemStats, now: datetime) -> float:
    """
    Priority score of an item's active stage.

    Formula:
        π = max(0, TAU - p) + α·(1 - q) + β·overdue_ratio

    overdue_ratio measures lateness relative to the item's own interval,
    so a day late on a two-day interval outranks a day late on a month.
    """
    state = stats.active_state
    p = recall_probability(elapsed_days(state.last_seen, now), state.stability)
    overdue_ratio = max(0.0, days_between(state.due, now) / interval_days(state.stability))
    return max(0.0, TAU - p) + ALPHA * (1.0 - state.accuracy) + BETA * overdue_ratio


def softmax_weights(priorities: Sequence[float], kappa: float = KAPPA) -> list[float]:
    """
    Softmax weights exp(κ·π), shifted by the max priority.

    The shift leaves the distribution unchanged and keeps long-overdue
    items from overflowing exp().
    """
    if not priorities:
        return []
    top = max(priorities)
    return [math.exp(kappa * (priority - top)) for priority in priorities]


def softmax_sample(weights: Sequence[float], rng: random.Random) -> int:
    """
    Draw an index with probability proportional to its weight.
    """
    total = sum(weights)
    r = rng.random() * total
    for index, weight in enumerate(weights):
        r -= weight
        if r <= 0:
            return index
    return len(weights) - 1


def pick_by_softmax(
    candidates: Sequence[ItemStats],
    now: datetime,
    rng: random.Random
) -> Optional[ItemStats]:
    """
    Softmax-sample one candidate by priority, or None for an empty pool.
    """
    if not candidates:
        return None
    weights = softmax_weights([priority_of(stats, now) for stats in candidates])
    return candidates[softmax_sample(weights, rng)]


def hot_pool(
    introduced: Sequence[ItemStats],
    now: datetime,
    size: int = HOT_POOL_SIZE
) -> list[ItemStats]:
    """
    Top `size` introduced items by priority.

    Ranking is deterministic: ties are broken by item id.
    """
    ranked = sorted(
        introduced,
        key=lambda stats: (-priority_of(stats, now), stats.item_id),
    )
    return ranked[:size]
