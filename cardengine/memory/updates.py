"""
Review Updates

Implements the stability and accuracy updates applied after every answer.

Stability is updated in log space:
    ln S_new = ln S + η·g
with a gradient that rewards risky (well-spaced) successes and punishes
confident misses. Because the step is multiplicative, confident runs
compound while a single slip only decelerates growth.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import TYPE_CHECKING

from cardengine.memory.constants import (
    ETA,
    LAMBDA,
    RHO,
    S_MIN,
    STREAK_BOOST_CAP,
    STREAK_BOOST_MIN,
    STREAK_BOOST_STEP,
    STREAK_MISS_FACTOR,
    Mode,
)
from cardengine.memory.retention import (
    due_from,
    elapsed_days,
    recall_probability,
    stability_max,
)

if TYPE_CHECKING:
    from cardengine.schemas import ModeState


def learning_rate(base_rate: float, streak: int, correct: bool) -> float:
    """
    Adapt the learning rate to the current streak.

    - Correct inside a streak: boosted by 10% per streak step (capped)
    - Miss inside a streak: halved
    - Otherwise: the base rate

    Args:
        base_rate: Mode (or frame) base learning rate
        streak: Streak before this answer
        correct: Whether this answer was correct

    Returns:
        Learning rate for this update
    """
    rate = base_rate
    if streak >= STREAK_BOOST_MIN:
        if correct:
            rate *= 1.0 + STREAK_BOOST_STEP * min(streak, STREAK_BOOST_CAP)
        else:
            rate *= STREAK_MISS_FACTOR
    return rate


def mode_learning_rate(mode: Mode, streak: int, correct: bool) -> float:
    """Learning rate for a review in a given mode."""
    return learning_rate(ETA[mode], streak, correct)


def stability_gradient(correct: bool, observed_p: float, miss_penalty: float = LAMBDA) -> float:
    """
    Log-space gradient for the stability update.

    - Success: (1 - p), large when recall was unlikely
    - Miss: -(p + λ), large when recall was expected
    """
    if correct:
        return 1.0 - observed_p
    return -(observed_p + miss_penalty)


def update_stability(
    prev_stability: float,
    correct: bool,
    observed_p: float,
    rate: float,
    miss_penalty: float = LAMBDA,
    s_min: float = S_MIN,
    s_max: float = math.inf
) -> float:
    """
    Update stability after an answer.

    Formula:
        S_new = clamp(exp(ln S + η·g), S_min, S_max)

    The clamp is applied after exponentiation so both bounds hold
    inclusively. When s_max falls below s_min the floor wins.

    Args:
        prev_stability: Current stability (non-positive values use s_min)
        correct: Whether the answer was correct
        observed_p: Recall probability at the moment of the answer
        rate: Learning rate for this update
        miss_penalty: Extra penalty added to p on a miss
        s_min: Stability floor
        s_max: Stability cap (derived from the max interval)

    Returns:
        New stability value, never below s_min
    """
    if not prev_stability > 0:
        prev_stability = s_min
    g = stability_gradient(correct, observed_p, miss_penalty)
    log_s = max(math.log(prev_stability) + rate * g, math.log(s_min))
    if math.isfinite(s_max):
        log_s = min(log_s, math.log(s_max))
    return max(s_min, min(s_max, math.exp(log_s)))


def update_accuracy(accuracy: float, correct: bool, rho: float = RHO) -> float:
    """
    Exponentially weighted accuracy.

    Formula: q = (1 - ρ)·q + ρ·[correct]
    """
    return (1.0 - rho) * accuracy + rho * (1.0 if correct else 0.0)


def review_mode_state(
    state: ModeState,
    mode: Mode,
    correct: bool,
    now: datetime,
    max_interval_days: float
) -> dict:
    """
    Apply one answer to a mode state (modifies in place).

    Updates:
    - stability (log-space step, clamped to [S_MIN, S_max])
    - last_seen and due
    - accuracy EWMA
    - streak (reset on miss, +1 on success)
    - shown count

    Args:
        state: ModeState to update (modified in place)
        mode: Mode the answer was given in
        correct: Whether the answer was correct
        now: Review timestamp
        max_interval_days: Interval cap from the schedule settings

    Returns:
        Dict with recall_before, stability_before and stability_after
    """
    dt = elapsed_days(state.last_seen, now)
    p = recall_probability(dt, state.stability)
    rate = mode_learning_rate(mode, state.streak, correct)

    stability_before = state.stability
    new_stability = update_stability(
        state.stability,
        correct,
        p,
        rate,
        s_max=stability_max(max_interval_days),
    )

    state.stability = new_stability
    state.last_seen = now
    state.due = due_from(now, new_stability)
    state.accuracy = update_accuracy(state.accuracy, correct)
    state.streak = state.streak + 1 if correct else 0
    state.shown += 1

    return {
        "recall_before": p,
        "stability_before": stability_before,
        "stability_after": new_stability,
    }
