"""
Constants for library statistics.
"""

from __future__ import annotations

from typing import Final

from cardengine.memory.constants import Mode


STAGE_LABELS: Final[dict[Mode, str]] = {
    Mode.RECOGNITION: "Recognition",
    Mode.CHUNKING: "Chunking",
    Mode.COMPOSING: "Composing",
}

ITEM_STATS_COLUMNS: Final[list[str]] = [
    "item_id", "introduced", "stage", "stability", "accuracy", "due", "shown",
]

REVIEW_EVENT_COLUMNS: Final[list[str]] = [
    "item_id", "mode", "success", "timestamp", "day_utc",
]
