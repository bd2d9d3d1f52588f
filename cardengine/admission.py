"""
New-Item Admission

Decides, once per turn, whether to introduce a new item instead of
reviewing. New items are admitted when the review backlog is low or when
the library's coverage lags behind the target share.

Formula:
    p_new = clamp(θ·clamp((B_low - debt)/B_low, 0, 1)
                  + κc·clamp(target_share - coverage, 0, 1), 0, 1)
"""

from __future__ import annotations

import random

from cardengine.memory.constants import BACKLOG_LOW, KAPPA_COVERAGE, THETA


def _clamp01(value: float) -> float:
    return min(1.0, max(0.0, value))


def new_item_probability(
    debt: int,
    coverage: float,
    target_share: float,
    backlog_low: int = BACKLOG_LOW,
    theta: float = THETA,
    kappa_coverage: float = KAPPA_COVERAGE
) -> float:
    """
    Probability of introducing a new item this turn.

    Args:
        debt: Number of due plus nearly-due items
        coverage: Introduced items / total items (0 for an empty library)
        target_share: Desired coverage from the schedule settings
        backlog_low: Backlog at which the debt term vanishes
        theta: Weight of the backlog term
        kappa_coverage: Weight of the coverage term

    Returns:
        p_new in [0, 1]
    """
    backlog_term = _clamp01((backlog_low - debt) / backlog_low)
    coverage_term = _clamp01(target_share - coverage)
    return _clamp01(theta * backlog_term + kappa_coverage * coverage_term)


def should_introduce(p_new: float, rng: random.Random) -> bool:
    """Bernoulli draw with probability p_new."""
    return rng.random() < p_new
