"""
Candidate collection.

Reads a snapshot of every item's stats once per turn and partitions the
introduced items into due and nearly-due pools. Staleness from concurrent
writes during the scan is tolerated; the next turn sees fresh data.
"""

from __future__ import annotations

import logging
from datetime import datetime

from cardengine.memory.constants import DELTA, TAU
from cardengine.selection.pool_types import CandidatePools
from cardengine.selection.pool_utils import current_recall
from cardengine.storage import StatsStore

logger = logging.getLogger(__name__)


async def collect_candidates(store: StatsStore, now: datetime) -> CandidatePools:
    """
    Build the turn's candidate pools.

    - due: active stage's due <= now
    - nearly: TAU < p <= TAU + DELTA (about to become due)

    Items without stats are counted in the library total only.

    Args:
        store: Storage collaborator
        now: Turn timestamp

    Returns:
        CandidatePools snapshot
    """
    item_ids = await store.list_ids()
    pools = CandidatePools(total_items=len(item_ids))

    for item_id in item_ids:
        stats = await store.get_stats(item_id)
        if stats is None or not stats.introduced:
            continue
        pools.introduced.append(stats)

        if stats.active_state.due <= now:
            pools.due.append(stats)
            continue

        p = current_recall(stats, now)
        if TAU < p <= TAU + DELTA:
            pools.nearly.append(stats)

    logger.debug(
        "Candidates: %d due, %d nearly due, %d/%d introduced",
        len(pools.due), len(pools.nearly), pools.total_introduced, pools.total_items,
    )
    return pools
