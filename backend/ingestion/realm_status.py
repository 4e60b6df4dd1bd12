"""
Flag players who stopped appearing in snapshots as having left the realm.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from analytics.numbers import parse_int
from repositories.player_repo import PlayerRepository
from repositories.snapshot_repo import SnapshotRepository

logger = logging.getLogger(__name__)

DEFAULT_POWER_FLOOR = 10_000_000
DEFAULT_CUTOFF_DAYS = 7


async def update_realm_status(
    session: AsyncSession,
    current_ids: Iterable[str],
    timestamp: datetime,
    power_floor: int = DEFAULT_POWER_FLOOR,
    cutoff_days: int = DEFAULT_CUTOFF_DAYS,
) -> int:
    """Mark absent, previously significant players as left; return how many were marked.

    A candidate is absent from ``current_ids``, not already flagged, and last seen
    before ``timestamp - cutoff_days``. Only candidates whose latest snapshot shows
    ``current_power >= power_floor`` are flagged. Does not commit.
    """
    present = set(current_ids)
    cutoff = timestamp - timedelta(days=cutoff_days)

    players = PlayerRepository(session)
    candidates = [
        p for p in await players.find_realm_candidates(cutoff) if p.lord_id not in present
    ]
    if not candidates:
        return 0

    latest_power = await SnapshotRepository(session).latest_current_power(
        [p.lord_id for p in candidates]
    )
    marked = 0
    for player in candidates:
        if parse_int(latest_power.get(player.lord_id)) >= power_floor:
            player.has_left_realm = True
            player.left_realm_at = timestamp
            marked += 1

    logger.info(
        "Realm status: %s absent players, %s marked as left (power floor %s)",
        len(candidates),
        marked,
        f"{power_floor:,}",
    )
    return marked
