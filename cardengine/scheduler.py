"""
Card Scheduler - Turn Orchestration

Picks the next (item, mode) to present and applies review outcomes.

Main workflow per turn (sample_next):
1. Serve a ready quick retry, if any
2. Collect candidates (due / nearly due / introduced)
3. Maybe introduce a new item (admission controller)
4. Otherwise softmax-sample due → nearly due → hot pool
5. Apply the soft stage override

Main workflow per answer (on_review):
1. Load stats (repairing invalid fields)
2. Update the reviewed mode's memory state
3. Promote after a success, demote and queue a retry after a miss
4. Persist the record and its review event in one store call

Settings and the retry queue are owned by the instance; two schedulers
never share them.
"""

from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta
from typing import Any, Mapping, Optional, Union

from cardengine.admission import new_item_probability, should_introduce
from cardengine.errors import FatalNoData
from cardengine.memory.constants import QUICK_RETRY_DELAY, Mode
from cardengine.memory.retention import resolve_now
from cardengine.memory.updates import review_mode_state
from cardengine.schemas import ItemStats, ReviewEvent, ScheduleSettings
from cardengine.selection import (
    QuickRetryQueue,
    collect_candidates,
    hot_pool,
    pick_by_softmax,
)
from cardengine.session_types import Pick, Progress
from cardengine.stages import maybe_demote, maybe_promote, presented_mode
from cardengine.storage import StatsStore

logger = logging.getLogger(__name__)


class CardScheduler:
    """
    Adaptive scheduler over a StatsStore.

    Args:
        store: Storage collaborator
        settings: Initial settings (defaults if omitted)
        rng: Random source for admission and sampling (seed it in tests)
        retry_delay: Delay before a missed item is re-presented
    """

    def __init__(
        self,
        store: StatsStore,
        settings: Optional[ScheduleSettings] = None,
        rng: Optional[random.Random] = None,
        retry_delay: timedelta = QUICK_RETRY_DELAY
    ):
        self.store = store
        self._settings = settings or ScheduleSettings()
        self.rng = rng or random.Random()
        self.retry_queue = QuickRetryQueue(retry_delay)

    @property
    def settings(self) -> ScheduleSettings:
        return self._settings

    def configure(self, partial: Optional[Mapping[str, Any]] = None) -> ScheduleSettings:
        """
        Merge a partial mapping into this scheduler's settings.

        Raises pydantic.ValidationError on invalid values; the current
        settings are left untouched in that case.
        """
        self._settings = self._settings.merged(partial)
        return self._settings

    # ---- Stats access ----

    async def _load_stats(self, item_id: str) -> ItemStats:
        stats = await self.store.get_stats(item_id)
        if stats is None:
            stats = await self.store.ensure_stats(item_id)
        return stats

    async def get_stats_safe(self, item_id: str) -> ItemStats:
        """
        Stored stats for an item, created with defaults if absent.

        A record that needed repair on load is written back.
        """
        stats = await self._load_stats(item_id)
        if stats.needs_repair:
            logger.debug("Writing back repaired stats for %s", item_id)
            await self.store.put_stats(stats)
        return stats

    async def introduce(self, item_id: str, now: Optional[datetime] = None) -> ItemStats:
        """
        Mark an item introduced at Recognition, due immediately.
        """
        now = resolve_now(now)
        stats = await self._load_stats(item_id)
        stats.introduced = True
        stats.stage = Mode.RECOGNITION
        stats.recognition.last_seen = now
        stats.recognition.due = now
        await self.store.put_stats(stats)
        logger.info("Introduced %s", item_id)
        return stats

    # ---- Selection ----

    async def _introduce_random(self, now: datetime) -> Optional[Pick]:
        new_ids = await self.store.list_unintroduced_ids()
        if not new_ids:
            return None
        item_id = self.rng.choice(new_ids)
        await self.introduce(item_id, now)
        return Pick(item_id=item_id, mode=Mode.RECOGNITION)

    async def sample_next(self, now: Optional[datetime] = None) -> Pick:
        """
        Choose the next item and mode to present.

        Raises:
            FatalNoData: No introduced items and nothing left to introduce
            StorageUnavailable: Propagated from the store
        """
        now = resolve_now(now)

        retry = self.retry_queue.pickup(now)
        if retry is not None:
            stats = await self.get_stats_safe(retry.item_id)
            if not stats.introduced:
                await self.introduce(retry.item_id, now)
            logger.debug("Quick retry: %s (%s)", retry.item_id, retry.mode.value)
            return Pick(item_id=retry.item_id, mode=retry.mode)

        pools = await collect_candidates(self.store, now)
        p_new = new_item_probability(pools.debt, pools.coverage, self._settings.target_new_share)
        if should_introduce(p_new, self.rng):
            logger.debug("Admission fired (p_new=%.3f)", p_new)
            pick = await self._introduce_random(now)
            if pick is not None:
                return pick

        if pools.due:
            chosen = pick_by_softmax(pools.due, now, self.rng)
        elif pools.nearly:
            chosen = pick_by_softmax(pools.nearly, now, self.rng)
        else:
            # Fallback: hot pool of the top-priority introduced items
            chosen = pick_by_softmax(hot_pool(pools.introduced, now), now, self.rng)

        if chosen is None:
            pick = await self._introduce_random(now)
            if pick is not None:
                return pick
            raise FatalNoData("No items to present")

        return Pick(item_id=chosen.item_id, mode=presented_mode(chosen))

    # ---- Review ----

    async def on_review(
        self,
        item_id: str,
        mode: Union[Mode, str],
        success: bool,
        now: Optional[datetime] = None
    ) -> ReviewEvent:
        """
        Apply one answer and persist the result.

        This is the only operation that mutates persisted item state.
        Callers must not run two on_review calls for the same item
        concurrently.

        Args:
            item_id: Reviewed item
            mode: Mode the item was presented in
            success: Whether the answer was correct
            now: Review timestamp (defaults to now)

        Returns:
            The ReviewEvent written alongside the stats
        """
        now = resolve_now(now)
        mode = Mode(mode)

        stats = await self._load_stats(item_id)
        stage_before = stats.stage
        state = stats.mode_state(mode)

        review = review_mode_state(state, mode, success, now, self._settings.max_interval_days)

        if success:
            maybe_promote(stats, self._settings, now)
        else:
            maybe_demote(stats, mode)
            self.retry_queue.enqueue(item_id, mode, now)

        event = ReviewEvent(
            item_id=item_id,
            mode=mode,
            success=success,
            timestamp=now,
            recall_before=review["recall_before"],
            stability_before=review["stability_before"],
            stability_after=review["stability_after"],
            due_after=state.due,
            accuracy_after=state.accuracy,
            streak_after=state.streak,
            stage_before=stage_before,
            stage_after=stats.stage,
        )
        await self.store.put_stats(stats, event)
        return event

    # ---- Progress ----

    async def get_progress(self, now: Optional[datetime] = None) -> Progress:
        """Coverage and backlog snapshot; never writes."""
        now = resolve_now(now)
        pools = await collect_candidates(self.store, now)
        return Progress(
            coverage=pools.coverage,
            debt=len(pools.due),
            nearly_debt=len(pools.nearly),
            total_introduced=pools.total_introduced,
            total_items=pools.total_items,
        )
