"""
Tests for the Recognition → Chunking → Composing stage machine.
"""

from datetime import datetime, timedelta, timezone

import pytest

from cardengine.memory.constants import ETA, FAST_TRACK, INIT_STABILITY, Mode
from cardengine.schemas import ItemStats, ModeState, ScheduleSettings
from cardengine.stages import (
    NEXT_MODE,
    PREVIOUS_MODE,
    carry_forward,
    is_ready_for_promotion,
    maybe_demote,
    maybe_promote,
    presented_mode,
    promotion_thresholds,
)

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
SETTINGS = ScheduleSettings()


def _stats(stage=Mode.RECOGNITION):
    stats = ItemStats.new("huis", NOW)
    stats.introduced = True
    stats.stage = stage
    return stats


@pytest.mark.parametrize("table", [NEXT_MODE, PREVIOUS_MODE, ETA, INIT_STABILITY])
def test_mode_tables_are_exhaustive(table):
    assert set(table) == set(Mode)


def test_every_mode_has_a_state_record():
    stats = _stats()
    for mode in Mode:
        assert isinstance(stats.mode_state(mode), ModeState)
        assert stats.mode_state(mode).stability == INIT_STABILITY[mode]


def test_threshold_lookup():
    assert promotion_thresholds(SETTINGS, Mode.RECOGNITION) == SETTINGS.to_chunking
    assert promotion_thresholds(SETTINGS, Mode.CHUNKING) == SETTINGS.to_composing
    assert promotion_thresholds(SETTINGS, Mode.COMPOSING) is None
    assert set(FAST_TRACK) == {Mode.RECOGNITION, Mode.CHUNKING}


def test_ready_by_thresholds():
    # box 3 needs an interval of at least 7 days
    state = ModeState(stability=50.0, last_seen=NOW, due=NOW, accuracy=0.8, streak=2, shown=5)
    assert is_ready_for_promotion(state, Mode.RECOGNITION, SETTINGS)

    state.shown = 4
    assert not is_ready_for_promotion(state, Mode.RECOGNITION, SETTINGS)


def test_ready_by_fast_track():
    state = ModeState(stability=0.75, last_seen=NOW, due=NOW, accuracy=0.93, streak=8, shown=8)
    assert is_ready_for_promotion(state, Mode.RECOGNITION, SETTINGS)

    state.accuracy = 0.91
    assert not is_ready_for_promotion(state, Mode.RECOGNITION, SETTINGS)
    assert not is_ready_for_promotion(state, Mode.COMPOSING, SETTINGS)


def test_carry_forward():
    source = ModeState(stability=10.0, last_seen=NOW, due=NOW, accuracy=0.9, streak=7, shown=12)
    target = ModeState(stability=0.6, last_seen=NOW - timedelta(days=3), due=NOW, accuracy=0.5, streak=0, shown=2)
    later = NOW + timedelta(minutes=5)

    carry_forward(source, target, later)

    assert target.accuracy == 0.9
    assert target.stability == pytest.approx(8.0)
    assert target.streak == 3
    assert target.last_seen == later
    assert target.due == later
    assert target.shown == 2


def test_carry_forward_keeps_better_target_values():
    source = ModeState(stability=1.0, last_seen=NOW, due=NOW, accuracy=0.6, streak=1, shown=5)
    target = ModeState(stability=4.0, last_seen=NOW, due=NOW, accuracy=0.8, streak=0, shown=0)
    carry_forward(source, target, NOW)
    assert target.accuracy == 0.8
    assert target.stability == 4.0
    assert target.streak == 1


def test_promote_moves_one_stage():
    stats = _stats()
    stats.recognition.shown = 8
    stats.recognition.accuracy = 0.95

    assert maybe_promote(stats, SETTINGS, NOW) == Mode.CHUNKING
    assert stats.stage == Mode.CHUNKING
    assert stats.chunking.accuracy == 0.95
    # Recognition state is kept
    assert stats.recognition.shown == 8


def test_promote_checks_current_stage_only():
    stats = _stats(Mode.CHUNKING)
    # Recognition would qualify, but the item is already past it
    stats.recognition.shown = 20
    stats.recognition.accuracy = 0.99
    before = stats.chunking.model_copy()

    assert maybe_promote(stats, SETTINGS, NOW) is None
    assert stats.stage == Mode.CHUNKING
    assert stats.chunking == before


def test_composing_has_no_successor():
    stats = _stats(Mode.COMPOSING)
    stats.composing.shown = 50
    stats.composing.accuracy = 1.0
    assert maybe_promote(stats, SETTINGS, NOW) is None
    assert stats.stage == Mode.COMPOSING


@pytest.mark.parametrize("stage, expected", [
    (Mode.COMPOSING, Mode.CHUNKING),
    (Mode.CHUNKING, Mode.RECOGNITION),
    (Mode.RECOGNITION, None),
])
def test_demote_when_shaky(stage, expected):
    stats = _stats(stage)
    stats.mode_state(stage).accuracy = 0.55
    assert maybe_demote(stats, stage) == expected
    assert stats.stage == (expected or Mode.RECOGNITION)


def test_no_demote_when_accuracy_is_fine():
    stats = _stats(Mode.COMPOSING)
    stats.composing.accuracy = 0.56
    assert maybe_demote(stats, Mode.COMPOSING) is None
    assert stats.stage == Mode.COMPOSING


def test_demote_keeps_mode_states():
    stats = _stats(Mode.CHUNKING)
    stats.chunking.accuracy = 0.3
    stats.chunking.shown = 7
    maybe_demote(stats, Mode.CHUNKING)
    assert stats.chunking.shown == 7
    assert stats.chunking.accuracy == 0.3


@pytest.mark.parametrize("stage, accuracy, expected", [
    (Mode.COMPOSING, 0.4, Mode.CHUNKING),
    (Mode.CHUNKING, 0.55, Mode.RECOGNITION),
    (Mode.RECOGNITION, 0.1, Mode.RECOGNITION),
    (Mode.COMPOSING, 0.9, Mode.COMPOSING),
])
def test_soft_override(stage, accuracy, expected):
    stats = _stats(stage)
    stats.mode_state(stage).accuracy = accuracy
    assert presented_mode(stats) == expected
    # Nothing is recorded
    assert stats.stage == stage
