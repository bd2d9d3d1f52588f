"""
Memory model for the card engine.

This package implements the retention side of the scheduler:
- Base-2 forgetting curve: p = 2^(-Δt/S)
- Due dates as the exact inverse of the curve at target reliability TAU
- Log-space stability updates with streak-adapted learning rates
- Accuracy EWMA per mode

Quick start:
    from cardengine import memory

    p = memory.recall_probability(2.0, 0.75)
    due = memory.due_from(now, 0.75)

The relational store lives in `cardengine.memory.database` and is imported
explicitly by callers that need it.
"""

# Retention curve
from cardengine.memory.retention import (
    days_between,
    due_from,
    elapsed_days,
    interval_days,
    leitner_box,
    recall_probability,
    resolve_now,
    stability_max,
)

# Update rules
from cardengine.memory.updates import (
    learning_rate,
    mode_learning_rate,
    review_mode_state,
    stability_gradient,
    update_accuracy,
    update_stability,
)

# Constants and parameters
from cardengine.memory.constants import (
    DELTA,
    ETA,
    LAMBDA,
    LOG2_INV_TAU,
    MIN_ELAPSED_DAYS,
    Mode,
    Q_DOWN,
    RHO,
    S_MIN,
    TAU,
)


__all__ = [
    # Retention
    "days_between",
    "due_from",
    "elapsed_days",
    "interval_days",
    "leitner_box",
    "recall_probability",
    "resolve_now",
    "stability_max",

    # Updates
    "learning_rate",
    "mode_learning_rate",
    "review_mode_state",
    "stability_gradient",
    "update_accuracy",
    "update_stability",

    # Enums
    "Mode",

    # Parameters
    "DELTA",
    "ETA",
    "LAMBDA",
    "LOG2_INV_TAU",
    "MIN_ELAPSED_DAYS",
    "Q_DOWN",
    "RHO",
    "S_MIN",
    "TAU",
]
