"""
Pydantic models for card engine records.

These models are the only schema contract with the storage collaborator.
Records are validated once at the storage boundary: defaults are applied
and invalid numeric fields are repaired at construction, so the rest of
the engine never re-checks them.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from cardengine.memory.constants import (
    FRAME_INIT_STABILITY,
    INIT_ACCURACY,
    INIT_STABILITY,
    INIT_STREAK,
    LOG2_INV_TAU,
    Mode,
    S_MIN,
)
from cardengine.memory.retention import due_from


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_float(value: Any) -> Optional[float]:
    """Coerce a stored numeric value, or None when it is unusable."""
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _is_missing_timestamp(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, datetime):
        return False
    if isinstance(value, str):
        return not value.strip()
    number = _as_float(value)
    return number is None or number <= 0


def _repair_memory_fields(data: dict, default_stability: float) -> dict:
    """
    Repair the numeric fields shared by mode and frame records.

    Rules:
    - stability missing -> record default; unusable or <= 0 -> S_MIN
    - last_seen missing -> now
    - due missing or <= 0 -> derived from stability
    - accuracy missing -> INIT_ACCURACY, otherwise clamped to [0, 1]
    - streak / shown missing or negative -> 0
    """
    repaired = False
    now = _utcnow()

    raw_stability = data.get("stability")
    stability = _as_float(raw_stability)
    if stability is None or stability <= 0:
        data["stability"] = default_stability if raw_stability is None else S_MIN
        repaired = True

    if _is_missing_timestamp(data.get("last_seen")):
        data["last_seen"] = now
        repaired = True

    if _is_missing_timestamp(data.get("due")):
        data["due"] = due_from(now, data["stability"])
        repaired = True

    accuracy = _as_float(data.get("accuracy"))
    if accuracy is None:
        data["accuracy"] = INIT_ACCURACY
        repaired = True
    elif not 0.0 <= accuracy <= 1.0:
        data["accuracy"] = min(1.0, max(0.0, accuracy))
        repaired = True

    for key in ("streak", "shown"):
        count = _as_float(data.get(key))
        if count is None or count < 0:
            data[key] = INIT_STREAK
            repaired = True
        else:
            data[key] = int(count)

    if repaired:
        data["repaired"] = True
    return data


# ---- Mode State ----

class ModeState(BaseModel):
    """
    Memory state of one item in one skill mode.
    """
    stability: float = Field(default=S_MIN, gt=0, description="S, in days")
    last_seen: datetime = Field(default_factory=_utcnow)
    due: datetime = Field(default_factory=_utcnow)
    accuracy: float = Field(default=INIT_ACCURACY, ge=0.0, le=1.0, description="q, EWMA of correctness")
    streak: int = Field(default=INIT_STREAK, ge=0)
    shown: int = Field(default=0, ge=0, description="n, presentations in this mode")

    # Set when construction had to repair stored values; never persisted
    repaired: bool = Field(default=False, exclude=True)

    @model_validator(mode="before")
    @classmethod
    def _repair(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        return _repair_memory_fields(dict(data), cls.model_fields["stability"].default)

    @field_validator("last_seen", "due")
    @classmethod
    def _ensure_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


def default_mode_state(mode: Mode, now: datetime) -> ModeState:
    """Fresh state for a mode that was never practised."""
    return ModeState(
        stability=INIT_STABILITY[mode],
        last_seen=now,
        due=now,
        accuracy=INIT_ACCURACY,
        streak=INIT_STREAK,
        shown=0,
    )


# ---- Item Stats ----

_MODE_FIELDS: dict[Mode, str] = {
    Mode.RECOGNITION: "recognition",
    Mode.CHUNKING: "chunking",
    Mode.COMPOSING: "composing",
}


class ItemStats(BaseModel):
    """
    Persistent learning state for a single item (term or frame).

    Holds all three mode states; `stage` points at the active one.
    """
    item_id: str
    stage: Mode = Mode.RECOGNITION
    introduced: bool = False
    recognition: ModeState
    chunking: ModeState
    composing: ModeState

    repaired: bool = Field(default=False, exclude=True)

    @model_validator(mode="before")
    @classmethod
    def _fill_defaults(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        now = _utcnow()

        try:
            data["stage"] = Mode(data.get("stage"))
        except ValueError:
            data["stage"] = Mode.RECOGNITION
            data["repaired"] = True

        if data.get("introduced") is None:
            data["introduced"] = False

        # Mode states are created lazily on first reference
        for mode, field_name in _MODE_FIELDS.items():
            if data.get(field_name) is None:
                data[field_name] = default_mode_state(mode, now)
                data["repaired"] = True
        return data

    @classmethod
    def new(cls, item_id: str, now: Optional[datetime] = None) -> "ItemStats":
        """Default record for an item that has no stats yet."""
        if now is None:
            now = _utcnow()
        return cls(
            item_id=item_id,
            stage=Mode.RECOGNITION,
            introduced=False,
            **{field_name: default_mode_state(mode, now) for mode, field_name in _MODE_FIELDS.items()},
        )

    def mode_state(self, mode: Mode) -> ModeState:
        """Return the state record for a mode."""
        return getattr(self, _MODE_FIELDS[mode])

    @property
    def active_state(self) -> ModeState:
        """State record of the current stage."""
        return self.mode_state(self.stage)

    @property
    def needs_repair(self) -> bool:
        """True when construction repaired any stored value."""
        return self.repaired or any(self.mode_state(mode).repaired for mode in Mode)


# ---- Settings ----

class PromotionThresholds(BaseModel):
    """Minimums a mode must reach before the next mode unlocks."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    min_box: int = Field(..., ge=0)
    min_shown: int = Field(..., ge=0)
    min_accuracy: float = Field(..., ge=0.0, le=1.0)


class ScheduleSettings(BaseModel):
    """
    Per-scheduler tunables.

    Owned by a scheduler instance; replaced wholesale by `merged`.
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    leitner_days: tuple[float, ...] = (0, 1, 3, 7, 15, 30, 60)
    to_chunking: PromotionThresholds = PromotionThresholds(min_box=3, min_shown=5, min_accuracy=0.75)
    to_composing: PromotionThresholds = PromotionThresholds(min_box=2, min_shown=10, min_accuracy=0.70)
    max_interval_days: float = Field(default=60, gt=0)
    target_new_share: float = Field(default=0.6, ge=0.0, le=1.0)

    @field_validator("leitner_days")
    @classmethod
    def _check_ladder(cls, value: tuple[float, ...]) -> tuple[float, ...]:
        if not value:
            raise ValueError("leitner_days must not be empty")
        if any(day < 0 for day in value):
            raise ValueError("leitner_days must be non-negative")
        if list(value) != sorted(value):
            raise ValueError("leitner_days must be sorted ascending")
        return value

    @field_validator("max_interval_days")
    @classmethod
    def _check_interval_cap(cls, value: float) -> float:
        # The cap must leave room for the stability floor
        if value < S_MIN * LOG2_INV_TAU:
            raise ValueError(
                f"max_interval_days must be at least {S_MIN * LOG2_INV_TAU:.4f}"
            )
        return value

    def merged(self, partial: Optional[Mapping[str, Any]]) -> "ScheduleSettings":
        """
        Shallow-merge a partial mapping into a new settings value.

        Promotion threshold mappings are merged key by key so a caller can
        change a single threshold without restating the others.
        """
        if not partial:
            return self
        data = self.model_dump()
        for key, value in partial.items():
            if key in ("to_chunking", "to_composing") and isinstance(value, Mapping):
                data[key] = {**data[key], **value}
            elif isinstance(value, BaseModel):
                data[key] = value.model_dump()
            else:
                data[key] = value
        return ScheduleSettings.model_validate(data)


# ---- Verb Frames ----

class FrameStats(ModeState):
    """
    Memory state of a verb frame.

    Structurally a single mode state; frames have no stage machine.
    """
    frame_id: str
    stability: float = Field(default=FRAME_INIT_STABILITY, gt=0, description="S, in days")

    @classmethod
    def new(cls, frame_id: str, now: Optional[datetime] = None) -> "FrameStats":
        if now is None:
            now = _utcnow()
        return cls(
            frame_id=frame_id,
            stability=FRAME_INIT_STABILITY,
            last_seen=now,
            due=now,
            accuracy=INIT_ACCURACY,
            streak=INIT_STREAK,
            shown=0,
        )


# ---- Review Log ----

class ReviewEvent(BaseModel):
    """
    Log entry for a single answer.

    Captures the reviewed mode's state before and after the update.
    """
    model_config = ConfigDict(frozen=True)

    item_id: str
    mode: Mode
    success: bool
    timestamp: datetime
    recall_before: float
    stability_before: float
    stability_after: float
    due_after: datetime
    accuracy_after: float
    streak_after: int
    stage_before: Mode
    stage_after: Mode

    @field_validator("timestamp", "due_after")
    @classmethod
    def _ensure_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
