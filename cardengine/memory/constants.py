"""
Card Engine Constants and Parameters

All fixed parameters of the retention model, selection policy and
admission controller in one place. Per-library tunables (ladder,
promotion thresholds, interval cap, new-item share) live in
ScheduleSettings instead.
"""

from __future__ import annotations

import math
from datetime import timedelta
from enum import Enum


# ---- Skill Modes ----

class Mode(str, Enum):
    """Skill mode an item is practised in, from easiest to hardest."""
    RECOGNITION = "recognition"  # Pick the right answer among options
    CHUNKING = "chunking"        # Assemble the answer from chunks
    COMPOSING = "composing"      # Produce the answer freely


# ---- Retention Model ----

TAU = 0.9                 # Target recall probability at the due date
DELTA = 0.05              # Width of the "nearly due" band above TAU
LAMBDA = 0.2              # Extra penalty for a confident miss
RHO = 0.2                 # Accuracy EWMA coefficient
S_MIN = 0.25              # Stability floor (days)
MIN_ELAPSED_DAYS = 1 / 1440  # One minute; avoids blow-up on instant re-review

LOG2_INV_TAU = math.log2(1 / TAU)

# Base learning rate per mode (harder modes learn faster per success)
ETA = {
    Mode.RECOGNITION: 0.30,
    Mode.CHUNKING: 0.36,
    Mode.COMPOSING: 0.45,
}

# Confident-streak acceleration
STREAK_BOOST_MIN = 2      # Streak length at which rate adaptation kicks in
STREAK_BOOST_STEP = 0.1   # Rate multiplier gain per streak step
STREAK_BOOST_CAP = 5      # Streak steps counted at most
STREAK_MISS_FACTOR = 0.5  # Rate multiplier for a miss inside a streak


# ---- Initial Mode State ----

INIT_STABILITY = {
    Mode.RECOGNITION: 0.75,
    Mode.CHUNKING: 0.60,
    Mode.COMPOSING: 0.50,
}
INIT_ACCURACY = 0.5
INIT_STREAK = 0


# ---- Stage Machine ----

Q_DOWN = 0.55             # Accuracy at/below which a mode counts as shaky
CARRY_STABILITY_FACTOR = 0.8  # Under-carry so the new mode gets a real review
CARRY_STREAK_CAP = 3

# Fast-track promotion: (min shown, min accuracy) per source mode
FAST_TRACK = {
    Mode.RECOGNITION: (8, 0.92),
    Mode.CHUNKING: (10, 0.90),
}


# ---- Priority Scoring ----

ALPHA = 0.5               # Weight of (1 - accuracy)
BETA = 0.3                # Weight of the overdue ratio
KAPPA = 6.0               # Softmax sharpness
HOT_POOL_SIZE = 30        # Fallback pool when nothing is (nearly) due


# ---- New-Item Admission ----

BACKLOG_LOW = 20          # Debt below which new items are welcome
THETA = 0.7               # Weight of the low-backlog term
KAPPA_COVERAGE = 0.5      # Weight of the under-coverage term


# ---- Quick Retry ----

QUICK_RETRY_DELAY = timedelta(minutes=2)


# ---- Verb Frames ----

FRAME_ETA = 0.36
FRAME_MAX_INTERVAL_DAYS = 60
FRAME_INIT_STABILITY = 0.5
FRAME_INIT_ACCURACY = 0.5
FRAME_FULL_SCORE = 4      # Card score at/above which a frame counts as recalled
FRAME_PARTIAL_SCORE = 3   # Card score that earns partial credit
FRAME_CARD_STEPS = 5      # Slots drilled per frame card
