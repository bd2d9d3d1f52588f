"""
Shared fixtures for card engine tests.
"""

import random
from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from cardengine import CardScheduler, InMemoryStatsStore, ItemStats, Mode
from cardengine.memory.database import SqlStatsStore, init_db


@pytest.fixture
def now():
    # Truncated so SQL round-trips compare equal
    return datetime.now(timezone.utc).replace(microsecond=0)


@pytest.fixture
def memory_store():
    return InMemoryStatsStore()


@pytest.fixture
def sql_engine():
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def sql_store(sql_engine):
    return SqlStatsStore(sql_engine)


@pytest.fixture(params=["memory", "sql"])
def store(request):
    """Every store implementation, for contract tests."""
    if request.param == "memory":
        return request.getfixturevalue("memory_store")
    return request.getfixturevalue("sql_store")


@pytest.fixture
def scheduler(memory_store):
    return CardScheduler(memory_store, rng=random.Random(42))


@pytest.fixture
def make_stats():
    """
    Build an ItemStats with a chosen stage and overrides for its mode states.

    Usage:
        make_stats("huis", now, stage=Mode.CHUNKING, chunking={"accuracy": 0.6})
    """
    def _make(item_id, now, stage=Mode.RECOGNITION, introduced=True, **modes):
        stats = ItemStats.new(item_id, now)
        stats.stage = stage
        stats.introduced = introduced
        for mode in Mode:
            for key, value in modes.get(mode.value, {}).items():
                setattr(stats.mode_state(mode), key, value)
        return stats
    return _make
