"""
Retention - Forgetting Curve and Due Dates

Defines the continuous-time forgetting curve and the quantities derived
from it.

Key concepts:
- Stability (S): half-life-like decay parameter (in days)
- Recall probability (p): chance of a successful answer after Δt days
- Due date: the moment p drops to the target reliability TAU
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

from cardengine.memory.constants import LOG2_INV_TAU, MIN_ELAPSED_DAYS, S_MIN

SECONDS_PER_DAY = 86400.0


def resolve_now(now: Optional[datetime] = None) -> datetime:
    """Aware UTC timestamp for a caller-supplied `now` (naive values are taken as UTC)."""
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


def recall_probability(elapsed_days: float, stability: float) -> float:
    """
    Calculate recall probability using base-2 exponential decay.

    Formula: p = 2^(-Δt / S)

    Interpretation:
    - Immediately after a review: p ≈ 1.0
    - After S·log2(1/TAU) days: p == TAU (the item is due)
    - After S days: p == 0.5

    Args:
        elapsed_days: Time since the mode was last seen, in days
        stability: Current stability in days (non-positive values use S_MIN)

    Returns:
        Recall probability between 0 and 1
    """
    if stability <= 0:
        stability = S_MIN
    return 2.0 ** (-elapsed_days / stability)


def interval_days(stability: float) -> float:
    """Length of the review interval implied by a stability, in days."""
    return stability * LOG2_INV_TAU


def due_from(now: datetime, stability: float) -> datetime:
    """
    Calculate the due date for a stability.

    Formula: due = now + S·log2(1/TAU)

    This is the exact inverse of the decay curve, so the recall
    probability at the returned moment equals TAU.
    """
    return now + timedelta(days=interval_days(stability))


def stability_max(max_interval_days: float) -> float:
    """Largest stability whose interval still fits under the configured cap."""
    return max_interval_days / LOG2_INV_TAU


def elapsed_days(
    last_seen: datetime,
    now: datetime,
    floor: float = MIN_ELAPSED_DAYS
) -> float:
    """
    Days between last_seen and now, floored to a small epsilon.

    The floor keeps an immediate re-review from looking like p == 1.0,
    which would zero the success gradient.
    """
    delta = (now - last_seen).total_seconds() / SECONDS_PER_DAY
    return max(floor, delta)


def days_between(start: datetime, end: datetime) -> float:
    """Signed number of days from start to end."""
    return (end - start).total_seconds() / SECONDS_PER_DAY


def leitner_box(stability: float, leitner_days: Sequence[float]) -> int:
    """
    Virtual Leitner box for a stability.

    The box is the index of the largest ladder entry that does not exceed
    the current interval. The ladder is assumed sorted ascending.
    """
    interval = interval_days(stability)
    box = 0
    for index, threshold in enumerate(leitner_days):
        if interval >= threshold:
            box = index
        else:
            break
    return box
