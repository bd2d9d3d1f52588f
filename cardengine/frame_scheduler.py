"""
Frame Scheduler - Verb Frame Drills

Schedules verb frames on the same forgetting curve as items, without a
stage machine. A frame is drilled as a five-step card; each step targets
one slot of the frame (lemma, case ending, past tense, ...), rotating
through the slots the frame's data supports.

Scoring (0..5 first-attempt successes per card):
- FULL (>= 4): stability grows, accuracy credited, streak extended
- PARTIAL (3): stability shrinks, accuracy credited, streak extended
- MISS (<= 2): stability shrinks, streak reset
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional, Sequence

from cardengine.memory.constants import (
    FRAME_CARD_STEPS,
    FRAME_ETA,
    FRAME_FULL_SCORE,
    FRAME_MAX_INTERVAL_DAYS,
    FRAME_PARTIAL_SCORE,
)
from cardengine.memory.retention import (
    due_from,
    elapsed_days,
    recall_probability,
    resolve_now,
    stability_max,
)
from cardengine.memory.updates import update_accuracy, update_stability
from cardengine.schemas import FrameStats
from cardengine.storage import FrameStore

logger = logging.getLogger(__name__)


class Outcome(str, Enum):
    FULL = "full"
    PARTIAL = "partial"
    MISS = "miss"


def score_outcome(score: int) -> Outcome:
    """Map a 0..5 card score to its outcome."""
    if score >= FRAME_FULL_SCORE:
        return Outcome.FULL
    if score >= FRAME_PARTIAL_SCORE:
        return Outcome.PARTIAL
    return Outcome.MISS


# ---- Slots ----

class Slot(str, Enum):
    LEMMA = "LEMMA"
    CASE_ENDING = "CASE_ENDING"
    PRAET = "PRAET"
    PART2_AUX = "PART2_AUX"
    COLLOCATION = "COLLOCATION"
    SYNTAX = "SYNTAX"
    AUDIO = "AUDIO"


# Canonical rotation order; SYNTAX and AUDIO close the cycle when present
SLOT_SEQUENCE: tuple[Slot, ...] = (
    Slot.LEMMA,
    Slot.CASE_ENDING,
    Slot.PRAET,
    Slot.PART2_AUX,
    Slot.COLLOCATION,
    Slot.SYNTAX,
    Slot.AUDIO,
)
FALLBACK_SLOT = Slot.LEMMA


def available_slots(bundle: Optional[Mapping[str, Any]]) -> set[Slot]:
    """
    Slots a frame bundle has data for.

    Expected bundle shape (every key optional):
        {
            "verb": {"lemma", "aux"},
            "frame": {"probe_answer", "case_core", "prep_case",
                      "syntax", "audio", "metadata": {"slot5"}},
            "morph": {"praet_3sg", "part2"},
            "colls": [...],
        }

    `frame.metadata.slot5` may name SYNTAX, AUDIO or COLLOCATION to force
    that slot on.
    """
    slots: set[Slot] = set()
    if not bundle:
        return slots

    verb = bundle.get("verb") or {}
    frame = bundle.get("frame") or {}
    morph = bundle.get("morph") or {}
    metadata = frame.get("metadata") or {}

    if verb.get("lemma"):
        slots.add(Slot.LEMMA)
    if frame.get("probe_answer") or frame.get("case_core") or frame.get("prep_case"):
        slots.add(Slot.CASE_ENDING)
    if morph.get("praet_3sg"):
        slots.add(Slot.PRAET)
    if morph.get("part2") or verb.get("aux"):
        slots.add(Slot.PART2_AUX)
    if bundle.get("colls"):
        slots.add(Slot.COLLOCATION)
    if frame.get("syntax"):
        slots.add(Slot.SYNTAX)
    if frame.get("audio"):
        slots.add(Slot.AUDIO)

    forced = metadata.get("slot5")
    if forced in (Slot.SYNTAX.value, Slot.AUDIO.value, Slot.COLLOCATION.value):
        slots.add(Slot(forced))
    return slots


def pick_slot(bundle: Optional[Mapping[str, Any]], step: int) -> Slot:
    """
    Slot to drill at a given card step.

    Rotates through the available slots in canonical order; a bundle with
    no usable data always drills the lemma.
    """
    available = available_slots(bundle)
    picked = [slot for slot in SLOT_SEQUENCE if slot in available]
    if not picked:
        return FALLBACK_SLOT
    return picked[step % len(picked)]


# ---- Scheduler ----

class FrameScheduler:
    """
    Forgetting-curve scheduler for verb frames.

    Args:
        store: Frame storage collaborator
        max_interval_days: Interval cap for frames
    """

    def __init__(self, store: FrameStore, max_interval_days: float = FRAME_MAX_INTERVAL_DAYS):
        self.store = store
        self.max_interval_days = max_interval_days

    async def update_srs(
        self,
        frame_id: str,
        score: int,
        now: Optional[datetime] = None
    ) -> FrameStats:
        """
        Apply a card score (0..5) to a frame's memory state.

        Returns:
            The updated, persisted FrameStats
        """
        now = resolve_now(now)
        if not 0 <= score <= FRAME_CARD_STEPS:
            raise ValueError(f"score must be in 0..{FRAME_CARD_STEPS}, got {score}")

        stats = await self.store.ensure_frame_stats(frame_id)
        outcome = score_outcome(score)
        credited = outcome != Outcome.MISS

        p = recall_probability(elapsed_days(stats.last_seen, now), stats.stability)
        stats.stability = update_stability(
            stats.stability,
            outcome == Outcome.FULL,
            p,
            FRAME_ETA,
            s_max=stability_max(self.max_interval_days),
        )
        stats.last_seen = now
        stats.due = due_from(now, stats.stability)
        stats.accuracy = update_accuracy(stats.accuracy, credited)
        stats.streak = stats.streak + 1 if credited else 0
        stats.shown += 1

        await self.store.put_frame_stats(stats)
        logger.debug(
            "Frame %s scored %d (%s): S=%.3f",
            frame_id, score, outcome.value, stats.stability,
        )
        return stats

    async def ensure_stats_for_all(self) -> None:
        """Create default stats for every frame in the catalog."""
        for frame_id in await self.store.list_frame_ids():
            await self.store.ensure_frame_stats(frame_id)

    async def pick_next_frames(
        self,
        limit: int = 5,
        now: Optional[datetime] = None
    ) -> list[str]:
        """
        Frame ids for the next session.

        Due frames come first (earliest due first, up to 3x limit scanned),
        then the remaining catalog fills the list in catalog order.
        """
        now = resolve_now(now)
        if limit <= 0:
            return []

        await self.ensure_stats_for_all()

        picked: list[str] = []
        for stats in await self.store.list_due_frames(now, limit * 3):
            if stats.frame_id not in picked:
                picked.append(stats.frame_id)
                if len(picked) >= limit:
                    return picked

        for frame_id in await self.store.list_frame_ids():
            if frame_id not in picked:
                picked.append(frame_id)
                if len(picked) >= limit:
                    break
        return picked

    async def record_card(
        self,
        frame_id: str,
        slot_results: Sequence[bool],
        now: Optional[datetime] = None
    ) -> FrameStats:
        """
        Score a finished card and update the frame.

        Args:
            frame_id: Drilled frame
            slot_results: First-attempt correctness per step (at most five)
            now: Timestamp of the card's completion

        Returns:
            The updated FrameStats
        """
        if len(slot_results) > FRAME_CARD_STEPS:
            raise ValueError(f"A card has at most {FRAME_CARD_STEPS} steps")
        score = sum(1 for correct in slot_results if correct)
        return await self.update_srs(frame_id, score, now)
