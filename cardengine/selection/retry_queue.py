"""
Quick-retry queue.

Session-local memory of recent misses. Every miss schedules a forced
re-encounter a couple of minutes later, independent of the long-horizon
stability schedule. Held by a scheduler instance and never persisted;
losing it on reload is acceptable.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from cardengine.memory.constants import QUICK_RETRY_DELAY, Mode


@dataclass(frozen=True)
class QuickRetryEntry:
    """A pending re-presentation of a missed item."""
    item_id: str
    mode: Mode
    available_at: datetime


class QuickRetryQueue:
    """
    FIFO-ish retry queue.

    Entries are returned in insertion order among those already available;
    an entry is never returned before its `available_at`.
    """

    def __init__(self, delay: timedelta = QUICK_RETRY_DELAY):
        self.delay = delay
        self._entries: list[QuickRetryEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    def enqueue(self, item_id: str, mode: Mode, now: datetime) -> QuickRetryEntry:
        """Schedule a retry of `item_id` in `mode` after the delay."""
        entry = QuickRetryEntry(item_id=item_id, mode=mode, available_at=now + self.delay)
        self._entries.append(entry)
        return entry

    def pickup(self, now: datetime) -> Optional[QuickRetryEntry]:
        """Remove and return the first available entry, if any."""
        for index, entry in enumerate(self._entries):
            if entry.available_at <= now:
                return self._entries.pop(index)
        return None

    def pending(self) -> list[QuickRetryEntry]:
        """Snapshot of queued entries, in insertion order."""
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()
