"""
Card Engine - Adaptive Spaced-Repetition Scheduler

Decides which item to show next and in which skill mode, and updates each
item's memory state after every answer.

Key concepts:
- Three skill modes per item: Recognition → Chunking → Composing
- Base-2 forgetting curve with log-space stability updates
- Softmax selection over due / nearly-due / hot pools
- Probabilistic admission of new items based on backlog and coverage
- In-session quick retries after a miss

Quick start:
    from cardengine import CardScheduler, InMemoryStatsStore

    store = InMemoryStatsStore(item_ids=["huis", "boom"])
    scheduler = CardScheduler(store)

    pick = await scheduler.sample_next()
    await scheduler.on_review(pick.item_id, pick.mode, success=True)

The SQL store lives in `cardengine.memory.database` (SqlStatsStore).
"""

from cardengine.errors import CardEngineError, FatalNoData, StorageUnavailable
from cardengine.frame_scheduler import FrameScheduler, Slot, available_slots, pick_slot
from cardengine.memory.constants import Mode
from cardengine.scheduler import CardScheduler
from cardengine.schemas import (
    FrameStats,
    ItemStats,
    ModeState,
    PromotionThresholds,
    ReviewEvent,
    ScheduleSettings,
)
from cardengine.session_types import Pick, Progress
from cardengine.storage import FrameStore, InMemoryStatsStore, StatsStore

__all__ = [
    # Schedulers
    "CardScheduler",
    "FrameScheduler",

    # Frame slots
    "Slot",
    "available_slots",
    "pick_slot",

    # Records
    "Mode",
    "ModeState",
    "ItemStats",
    "FrameStats",
    "ReviewEvent",
    "PromotionThresholds",
    "ScheduleSettings",
    "Pick",
    "Progress",

    # Storage
    "StatsStore",
    "FrameStore",
    "InMemoryStatsStore",

    # Errors
    "CardEngineError",
    "FatalNoData",
    "StorageUnavailable",
]
