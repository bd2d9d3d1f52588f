"""
Typed pool models shared across the selection helpers.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from cardengine.schemas import ItemStats


@dataclass
class CandidatePools:
    """
    Turn-scoped snapshot of the library, partitioned for selection.
    """
    due: list[ItemStats] = field(default_factory=list)
    nearly: list[ItemStats] = field(default_factory=list)
    introduced: list[ItemStats] = field(default_factory=list)
    total_items: int = 0

    @property
    def total_introduced(self) -> int:
        return len(self.introduced)

    @property
    def debt(self) -> int:
        """Items currently due or nearly due."""
        return len(self.due) + len(self.nearly)

    @property
    def coverage(self) -> float:
        """Fraction of the library ever introduced (0 for an empty library)."""
        if self.total_items == 0:
            return 0.0
        return self.total_introduced / self.total_items
