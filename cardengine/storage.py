"""
Storage collaborator contract and an in-memory implementation.

Every store call is a coroutine that returns a typed value or raises
StorageUnavailable. Calls are atomic individually; nothing spans calls.

Single-writer rule: at most one `on_review` may be in flight per item.
Stores do no locking; concurrent writes to the same item are out of scope.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Optional, Protocol, runtime_checkable

from cardengine.schemas import FrameStats, ItemStats, ReviewEvent


@runtime_checkable
class StatsStore(Protocol):
    """Item stats storage consumed by CardScheduler."""

    async def list_ids(self) -> list[str]:
        """All item ids in the library, introduced or not."""
        ...

    async def get_stats(self, item_id: str) -> Optional[ItemStats]:
        """Stored record, or None when the item has no stats yet."""
        ...

    async def ensure_stats(self, item_id: str) -> ItemStats:
        """Stored record, creating and storing defaults if absent (idempotent)."""
        ...

    async def put_stats(self, stats: ItemStats, event: Optional[ReviewEvent] = None) -> None:
        """Replace the full record; append `event` to the review log atomically."""
        ...

    async def list_unintroduced_ids(self) -> list[str]:
        """Item ids with no stats or with introduced == False."""
        ...

    async def list_review_events(self, item_id: Optional[str] = None) -> list[ReviewEvent]:
        """Review log, oldest first, optionally for one item."""
        ...


@runtime_checkable
class FrameStore(Protocol):
    """Frame stats storage consumed by FrameScheduler."""

    async def list_frame_ids(self) -> list[str]:
        ...

    async def get_frame_stats(self, frame_id: str) -> Optional[FrameStats]:
        ...

    async def ensure_frame_stats(self, frame_id: str) -> FrameStats:
        ...

    async def put_frame_stats(self, stats: FrameStats) -> None:
        ...

    async def list_due_frames(self, now: datetime, limit: int) -> list[FrameStats]:
        """Frames with due <= now, earliest due first, at most `limit`."""
        ...


class InMemoryStatsStore:
    """
    Dict-backed store implementing StatsStore and FrameStore.

    Records are kept as JSON-mode dumps and re-validated on every read,
    so they cross the same validation boundary as a real backend and
    callers never share mutable state with the store.
    """

    def __init__(
        self,
        item_ids: Iterable[str] = (),
        frame_ids: Iterable[str] = ()
    ):
        self._item_ids: list[str] = []
        self._stats: dict[str, dict] = {}
        self._events: list[dict] = []
        self._frame_ids: list[str] = []
        self._frame_stats: dict[str, dict] = {}
        self.add_items(item_ids)
        self.add_frames(frame_ids)

    # ---- Catalog ----

    def add_items(self, item_ids: Iterable[str]) -> None:
        """Register item ids (duplicates are ignored)."""
        for item_id in item_ids:
            if item_id not in self._item_ids:
                self._item_ids.append(item_id)

    def add_frames(self, frame_ids: Iterable[str]) -> None:
        """Register frame ids (duplicates are ignored)."""
        for frame_id in frame_ids:
            if frame_id not in self._frame_ids:
                self._frame_ids.append(frame_id)

    def put_raw_stats(self, item_id: str, raw: dict) -> None:
        """Store a raw record as-is (used to simulate legacy or damaged data)."""
        self._stats[item_id] = dict(raw, item_id=item_id)

    # ---- Item stats ----

    async def list_ids(self) -> list[str]:
        return list(self._item_ids)

    async def get_stats(self, item_id: str) -> Optional[ItemStats]:
        raw = self._stats.get(item_id)
        if raw is None:
            return None
        return ItemStats.model_validate(raw)

    async def ensure_stats(self, item_id: str) -> ItemStats:
        if item_id not in self._stats:
            self.add_items([item_id])
            stats = ItemStats.new(item_id, datetime.now(timezone.utc))
            self._stats[item_id] = stats.model_dump(mode="json")
        return ItemStats.model_validate(self._stats[item_id])

    async def put_stats(self, stats: ItemStats, event: Optional[ReviewEvent] = None) -> None:
        self.add_items([stats.item_id])
        self._stats[stats.item_id] = stats.model_dump(mode="json")
        if event is not None:
            self._events.append(event.model_dump(mode="json"))

    async def list_unintroduced_ids(self) -> list[str]:
        return [
            item_id for item_id in self._item_ids
            if not self._stats.get(item_id, {}).get("introduced")
        ]

    async def list_review_events(self, item_id: Optional[str] = None) -> list[ReviewEvent]:
        return [
            ReviewEvent.model_validate(raw)
            for raw in self._events
            if item_id is None or raw["item_id"] == item_id
        ]

    # ---- Frame stats ----

    async def list_frame_ids(self) -> list[str]:
        return list(self._frame_ids)

    async def get_frame_stats(self, frame_id: str) -> Optional[FrameStats]:
        raw = self._frame_stats.get(frame_id)
        if raw is None:
            return None
        return FrameStats.model_validate(raw)

    async def ensure_frame_stats(self, frame_id: str) -> FrameStats:
        if frame_id not in self._frame_stats:
            self.add_frames([frame_id])
            stats = FrameStats.new(frame_id, datetime.now(timezone.utc))
            self._frame_stats[frame_id] = stats.model_dump(mode="json")
        return FrameStats.model_validate(self._frame_stats[frame_id])

    async def put_frame_stats(self, stats: FrameStats) -> None:
        self.add_frames([stats.frame_id])
        self._frame_stats[stats.frame_id] = stats.model_dump(mode="json")

    async def list_due_frames(self, now: datetime, limit: int) -> list[FrameStats]:
        frames = [FrameStats.model_validate(raw) for raw in self._frame_stats.values()]
        due = [frame for frame in frames if frame.due <= now]
        due.sort(key=lambda frame: frame.due)
        return due[:limit]
