"""
Stage Machine - Recognition → Chunking → Composing

Each item keeps three parallel mode states; `stage` points at the active one.

Rules:
- Promotion is only checked for the current stage, after a success
- Promotion carries part of the source mode's progress forward
- Demotion happens after a miss that leaves the reviewed mode shaky
- Neither direction ever discards a mode's accumulated state
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from cardengine.memory.constants import (
    CARRY_STABILITY_FACTOR,
    CARRY_STREAK_CAP,
    FAST_TRACK,
    Mode,
    Q_DOWN,
)
from cardengine.memory.retention import leitner_box
from cardengine.schemas import ItemStats, ModeState, PromotionThresholds, ScheduleSettings

logger = logging.getLogger(__name__)


# ---- Transition Tables ----
# One entry per Mode; tests assert the tables stay exhaustive.

NEXT_MODE: dict[Mode, Optional[Mode]] = {
    Mode.RECOGNITION: Mode.CHUNKING,
    Mode.CHUNKING: Mode.COMPOSING,
    Mode.COMPOSING: None,
}

PREVIOUS_MODE: dict[Mode, Optional[Mode]] = {
    Mode.RECOGNITION: None,
    Mode.CHUNKING: Mode.RECOGNITION,
    Mode.COMPOSING: Mode.CHUNKING,
}


def promotion_thresholds(settings: ScheduleSettings, mode: Mode) -> Optional[PromotionThresholds]:
    """Thresholds for leaving `mode`, or None for the most advanced mode."""
    table: dict[Mode, Optional[PromotionThresholds]] = {
        Mode.RECOGNITION: settings.to_chunking,
        Mode.CHUNKING: settings.to_composing,
        Mode.COMPOSING: None,
    }
    return table[mode]


def is_ready_for_promotion(
    state: ModeState,
    mode: Mode,
    settings: ScheduleSettings
) -> bool:
    """
    Check whether a mode state qualifies for promotion.

    Ready when EITHER:
    - box >= min_box AND shown >= min_shown AND accuracy >= min_accuracy
    - the fast-track rule for the mode holds (many shows at high accuracy)
    """
    thresholds = promotion_thresholds(settings, mode)
    if thresholds is None:
        return False

    box = leitner_box(state.stability, settings.leitner_days)
    ready = (
        box >= thresholds.min_box
        and state.shown >= thresholds.min_shown
        and state.accuracy >= thresholds.min_accuracy
    )
    fast_shown, fast_accuracy = FAST_TRACK[mode]
    fast = state.shown >= fast_shown and state.accuracy >= fast_accuracy
    return ready or fast


def carry_forward(source: ModeState, target: ModeState, now: datetime) -> None:
    """
    Seed the destination mode from the source mode (modifies target in place).

    - accuracy: the better of the two
    - stability: under-carried (80%) so the new mode still needs a real review
    - streak: inherited, capped at 3
    - last_seen = due = now, so the new mode shows up immediately
    - shown is left alone; it counts presentations in the new mode only
    """
    target.accuracy = max(target.accuracy, source.accuracy)
    target.stability = max(target.stability, source.stability * CARRY_STABILITY_FACTOR)
    target.streak = min(source.streak, CARRY_STREAK_CAP)
    target.last_seen = now
    target.due = now


def maybe_promote(stats: ItemStats, settings: ScheduleSettings, now: datetime) -> Optional[Mode]:
    """
    Promote the item one stage if its current stage qualifies.

    Only the current stage's transition is evaluated, so a promotion is
    never re-checked once the item has moved on.

    Returns:
        The new stage if promoted, otherwise None
    """
    stage = stats.stage
    target = NEXT_MODE[stage]
    if target is None:
        return None

    source_state = stats.mode_state(stage)
    if not is_ready_for_promotion(source_state, stage, settings):
        return None

    carry_forward(source_state, stats.mode_state(target), now)
    stats.stage = target
    logger.info("Promoted %s: %s -> %s", stats.item_id, stage.value, target.value)
    return target


def maybe_demote(stats: ItemStats, reviewed_mode: Mode) -> Optional[Mode]:
    """
    Demote the item one stage after a miss, if the reviewed mode is shaky.

    Only the stage pointer moves; the vacated mode keeps its state.
    Recognition is the floor.

    Returns:
        The new stage if demoted, otherwise None
    """
    if stats.mode_state(reviewed_mode).accuracy > Q_DOWN:
        return None

    stage = stats.stage
    target = PREVIOUS_MODE[stage]
    if target is None:
        return None

    stats.stage = target
    logger.info("Demoted %s: %s -> %s", stats.item_id, stage.value, target.value)
    return target


def presented_mode(stats: ItemStats) -> Mode:
    """
    Mode to present for an item, with the soft stage override.

    When the active stage's accuracy is at/below Q_DOWN, the next-lower
    mode is presented instead. Nothing is persisted, so the returned mode
    can differ from the recorded stage until a miss triggers a real
    demotion.
    """
    stage = stats.stage
    if stats.mode_state(stage).accuracy > Q_DOWN:
        return stage

    lower = PREVIOUS_MODE[stage] or Mode.RECOGNITION
    if lower != stage:
        logger.debug(
            "Soft override for %s: stage %s presented as %s",
            stats.item_id, stage.value, lower.value,
        )
    return lower
