"""
Return types of the scheduler's public operations.
"""

from __future__ import annotations

from dataclasses import dataclass

from cardengine.memory.constants import Mode


@dataclass(frozen=True)
class Pick:
    """The item and mode to present next."""
    item_id: str
    mode: Mode


@dataclass(frozen=True)
class Progress:
    """Read-only library progress snapshot."""
    coverage: float
    debt: int
    nearly_debt: int
    total_introduced: int
    total_items: int
