"""
Tests for CardScheduler: selection, reviews, configuration and progress.
"""

import random
from collections import Counter
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from cardengine import (
    CardScheduler,
    FatalNoData,
    InMemoryStatsStore,
    Mode,
    Pick,
    ScheduleSettings,
    StorageUnavailable,
)
from cardengine.memory.constants import S_MIN


# ---- Selection ----

@pytest.mark.asyncio
async def test_empty_library_raises_fatal_no_data(scheduler, now):
    with pytest.raises(FatalNoData):
        await scheduler.sample_next(now)


@pytest.mark.asyncio
async def test_admission_introduces_permanently(memory_store, now):
    memory_store.add_items(["huis"])
    scheduler = CardScheduler(memory_store, rng=random.Random(1))
    assert await memory_store.list_unintroduced_ids() == ["huis"]

    pick = await scheduler.sample_next(now)

    assert pick == Pick(item_id="huis", mode=Mode.RECOGNITION)
    assert await memory_store.list_unintroduced_ids() == []
    stats = await memory_store.get_stats("huis")
    assert stats.introduced
    assert stats.recognition.due == now

    # Misses never revert the flag
    for minute in range(3):
        await scheduler.on_review("huis", Mode.RECOGNITION, False, now + timedelta(minutes=minute))
    assert (await memory_store.get_stats("huis")).introduced
    assert await memory_store.list_unintroduced_ids() == []


@pytest.mark.asyncio
async def test_due_item_is_picked_when_admission_cannot_fire(memory_store, now, make_stats):
    memory_store.add_items(["huis"])
    await memory_store.put_stats(make_stats("huis", now, recognition={
        "stability": 0.75, "last_seen": now - timedelta(days=2), "due": now - timedelta(days=1),
    }))
    scheduler = CardScheduler(memory_store, rng=random.Random(5))

    for _ in range(20):
        assert await scheduler.sample_next(now) == Pick("huis", Mode.RECOGNITION)


@pytest.mark.asyncio
async def test_equal_priority_candidates_are_both_drawn(memory_store, now, make_stats):
    memory_store.add_items(["a", "b"])
    state = {"stability": 1.0, "last_seen": now - timedelta(days=1), "due": now - timedelta(hours=20)}
    for item_id in ("a", "b"):
        await memory_store.put_stats(make_stats(item_id, now, recognition=dict(state)))
    scheduler = CardScheduler(memory_store, rng=random.Random(11))

    drawn = Counter()
    for _ in range(200):
        drawn[(await scheduler.sample_next(now)).item_id] += 1

    assert drawn["a"] > 0
    assert drawn["b"] > 0


@pytest.mark.asyncio
async def test_hot_pool_fallback_when_nothing_due(memory_store, now, make_stats):
    memory_store.add_items(["huis"])
    await memory_store.put_stats(make_stats("huis", now, recognition={
        "stability": 30.0, "last_seen": now, "due": now + timedelta(days=4),
    }))
    # Admission still fires with p = 0.7, but there is nothing new to introduce
    scheduler = CardScheduler(memory_store, rng=random.Random(2))

    assert (await scheduler.sample_next(now)).item_id == "huis"


@pytest.mark.asyncio
async def test_soft_override_presents_lower_mode(memory_store, now, make_stats):
    memory_store.add_items(["huis"])
    await memory_store.put_stats(make_stats(
        "huis", now, stage=Mode.COMPOSING,
        composing={"accuracy": 0.5, "last_seen": now - timedelta(days=1), "due": now - timedelta(hours=1)},
    ))
    scheduler = CardScheduler(memory_store, rng=random.Random(3))

    pick = await scheduler.sample_next(now)

    assert pick.mode == Mode.CHUNKING
    assert (await memory_store.get_stats("huis")).stage == Mode.COMPOSING


@pytest.mark.asyncio
async def test_ready_retry_is_served_first(memory_store, now, make_stats):
    memory_store.add_items(["huis", "boom"])
    await memory_store.put_stats(make_stats("boom", now, recognition={
        "last_seen": now - timedelta(days=3), "due": now - timedelta(days=2),
    }))
    scheduler = CardScheduler(memory_store, rng=random.Random(4))
    scheduler.retry_queue.enqueue("huis", Mode.CHUNKING, now)

    pick = await scheduler.sample_next(now + timedelta(minutes=2))

    assert pick == Pick("huis", Mode.CHUNKING)
    # The retried item is introduced on the way
    assert (await memory_store.get_stats("huis")).introduced


# ---- Reviews ----

@pytest.mark.asyncio
async def test_streak_counts_successes_and_resets_on_miss(scheduler, memory_store, now):
    memory_store.add_items(["huis"])
    await scheduler.introduce("huis", now)

    for n in range(1, 7):
        await scheduler.on_review("huis", Mode.RECOGNITION, True, now + timedelta(hours=n))
        stats = await memory_store.get_stats("huis")
        assert stats.recognition.streak == n
        assert stats.recognition.shown == n

    await scheduler.on_review("huis", Mode.RECOGNITION, False, now + timedelta(hours=8))
    assert (await memory_store.get_stats("huis")).recognition.streak == 0


@pytest.mark.asyncio
async def test_review_persists_state_and_event(scheduler, memory_store, now):
    memory_store.add_items(["huis"])
    await scheduler.introduce("huis", now - timedelta(days=1))

    event = await scheduler.on_review("huis", "recognition", True, now)

    stats = await memory_store.get_stats("huis")
    assert stats.recognition.last_seen == now
    assert stats.recognition.stability > 0.75
    assert stats.recognition.due > now
    assert event.stability_after == stats.recognition.stability
    assert event.recall_before == pytest.approx(2.0 ** (-1.0 / 0.75))
    assert event.stage_before == event.stage_after == Mode.RECOGNITION
    assert await memory_store.list_review_events("huis") == [event]


@pytest.mark.asyncio
async def test_naive_timestamps_are_taken_as_utc(scheduler, memory_store):
    memory_store.add_items(["huis"])
    await scheduler.introduce("huis", datetime(2026, 1, 1, tzinfo=timezone.utc))

    event = await scheduler.on_review("huis", Mode.RECOGNITION, True, datetime(2026, 1, 2))

    assert event.timestamp == datetime(2026, 1, 2, tzinfo=timezone.utc)
    assert event.recall_before == pytest.approx(2.0 ** (-1.0 / 0.75))
    stats = await memory_store.get_stats("huis")
    assert stats.recognition.last_seen == datetime(2026, 1, 2, tzinfo=timezone.utc)

    assert (await scheduler.get_progress(datetime(2026, 1, 2))).total_introduced == 1
    assert (await scheduler.sample_next(datetime(2026, 3, 1))).item_id == "huis"


@pytest.mark.asyncio
async def test_tiny_interval_cap_is_refused_before_reviews(scheduler, memory_store, now):
    memory_store.add_items(["huis"])
    await scheduler.introduce("huis", now - timedelta(days=1))
    with pytest.raises(ValidationError):
        scheduler.configure({"max_interval_days": 0.02})

    await scheduler.on_review("huis", Mode.RECOGNITION, True, now)

    assert (await memory_store.get_stats("huis")).recognition.stability >= S_MIN


@pytest.mark.asyncio
async def test_review_of_unregistered_item_joins_catalog(store, now):
    scheduler = CardScheduler(store, rng=random.Random(1))

    await scheduler.on_review("huis", Mode.RECOGNITION, True, now)

    assert await store.list_ids() == ["huis"]
    assert len(await store.list_review_events("huis")) == 1


class _UnavailableStore(InMemoryStatsStore):
    """Store whose reads fail like a lost database connection."""

    def __init__(self, error, **kwargs):
        super().__init__(**kwargs)
        self.error = error

    async def get_stats(self, item_id):
        raise self.error


@pytest.mark.asyncio
async def test_storage_failures_pass_through(now):
    error = StorageUnavailable("database is down")
    scheduler = CardScheduler(_UnavailableStore(error, item_ids=["huis"]), rng=random.Random(3))

    with pytest.raises(StorageUnavailable) as sampled:
        await scheduler.sample_next(now)
    assert sampled.value is error

    with pytest.raises(StorageUnavailable) as reviewed:
        await scheduler.on_review("huis", Mode.RECOGNITION, True, now)
    assert reviewed.value is error


@pytest.mark.asyncio
async def test_chunking_miss_demotes_and_queues_retry(memory_store, now, make_stats):
    memory_store.add_items(["huis"])
    await memory_store.put_stats(make_stats("huis", now, stage=Mode.CHUNKING, chunking={"accuracy": 0.6}))
    scheduler = CardScheduler(memory_store, rng=random.Random(9))

    event = await scheduler.on_review("huis", Mode.CHUNKING, False, now)

    stats = await memory_store.get_stats("huis")
    assert stats.chunking.accuracy == pytest.approx(0.48)
    assert stats.stage == Mode.RECOGNITION
    assert event.stage_before == Mode.CHUNKING
    assert event.stage_after == Mode.RECOGNITION

    assert scheduler.retry_queue.pickup(now + timedelta(minutes=1)) is None
    entry = scheduler.retry_queue.pickup(now + timedelta(minutes=2))
    assert entry.item_id == "huis"
    assert entry.mode == Mode.CHUNKING


@pytest.mark.asyncio
async def test_promotion_is_forward_only(memory_store, now, make_stats):
    memory_store.add_items(["huis"])
    await memory_store.put_stats(make_stats("huis", now, recognition={"shown": 8, "accuracy": 0.95}))
    scheduler = CardScheduler(memory_store, rng=random.Random(6))

    await scheduler.on_review("huis", Mode.RECOGNITION, True, now)
    stats = await memory_store.get_stats("huis")
    assert stats.stage == Mode.CHUNKING
    assert stats.chunking.due == now
    chunking_before = stats.chunking

    # Recognition still qualifies, but it is no longer the active stage
    await scheduler.on_review("huis", Mode.RECOGNITION, True, now + timedelta(hours=1))
    stats = await memory_store.get_stats("huis")
    assert stats.stage == Mode.CHUNKING
    assert stats.chunking == chunking_before


@pytest.mark.asyncio
async def test_schedulers_do_not_share_retry_queues(memory_store, now):
    memory_store.add_items(["huis"])
    first = CardScheduler(memory_store, rng=random.Random(1))
    second = CardScheduler(memory_store, rng=random.Random(1))

    await first.on_review("huis", Mode.RECOGNITION, False, now)

    assert len(first.retry_queue) == 1
    assert len(second.retry_queue) == 0


# ---- Stats access ----

@pytest.mark.asyncio
async def test_get_stats_safe_creates_defaults(scheduler, memory_store):
    stats = await scheduler.get_stats_safe("nieuw")
    assert not stats.introduced
    assert stats.stage == Mode.RECOGNITION
    assert await memory_store.get_stats("nieuw") == stats


@pytest.mark.asyncio
async def test_get_stats_safe_writes_back_repairs(scheduler, memory_store, now):
    memory_store.add_items(["huis"])
    memory_store.put_raw_stats("huis", {
        "stage": "bogus",
        "introduced": True,
        "recognition": {"stability": -2, "last_seen": now.isoformat(), "accuracy": 3.0, "streak": -1},
    })

    stats = await scheduler.get_stats_safe("huis")

    assert stats.needs_repair
    assert stats.stage == Mode.RECOGNITION
    assert stats.recognition.stability == 0.25
    assert stats.recognition.accuracy == 1.0
    assert stats.recognition.streak == 0
    assert stats.recognition.shown == 0
    assert not (await memory_store.get_stats("huis")).needs_repair


# ---- Configuration ----

def test_configure_merges_nested_thresholds(scheduler):
    settings = scheduler.configure({"to_chunking": {"min_shown": 7}, "max_interval_days": 30})

    assert settings.to_chunking.min_shown == 7
    assert settings.to_chunking.min_box == 3
    assert settings.to_chunking.min_accuracy == 0.75
    assert settings.max_interval_days == 30
    assert scheduler.settings is settings


def test_configure_copies_ladder(scheduler):
    ladder = [0, 2, 4]
    scheduler.configure({"leitner_days": ladder})
    ladder.append(8)
    assert scheduler.settings.leitner_days == (0, 2, 4)


@pytest.mark.parametrize("partial", [
    {"target_new_share": 1.5},
    {"max_interval_days": 0},
    {"max_interval_days": 0.02},
    {"leitner_days": [3, 1]},
    {"to_composing": {"min_accuracy": 2}},
    {"unknown": 1},
])
def test_invalid_configuration_is_rejected(scheduler, partial):
    before = scheduler.settings
    with pytest.raises(ValidationError):
        scheduler.configure(partial)
    assert scheduler.settings == before


def test_settings_are_per_instance(memory_store):
    first = CardScheduler(memory_store)
    second = CardScheduler(memory_store)
    first.configure({"target_new_share": 0.2})
    assert second.settings == ScheduleSettings()


# ---- Progress ----

@pytest.mark.asyncio
async def test_progress_coverage(scheduler, memory_store, now):
    memory_store.add_items([f"item{i}" for i in range(10)])
    for i in range(4):
        await scheduler.introduce(f"item{i}", now)

    progress = await scheduler.get_progress(now)

    assert progress.coverage == 0.4
    assert progress.total_introduced == 4
    assert progress.total_items == 10
    # Introduced items are due immediately
    assert progress.debt == 4
    assert progress.nearly_debt == 0


@pytest.mark.asyncio
async def test_progress_on_empty_library(scheduler, now):
    progress = await scheduler.get_progress(now)
    assert progress.coverage == 0.0
    assert progress.total_items == 0
