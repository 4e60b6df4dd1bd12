"""
Name and alliance change detection between a player's consecutive snapshots.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ingestion.schema import PlayerRow
from repositories.change_repo import AllianceChangeRepository, NameChangeRepository
from repositories.snapshot_repo import SnapshotRepository

logger = logging.getLogger(__name__)


@dataclass
class DetectedChanges:
    name_changed: bool = False
    old_name: Optional[str] = None
    new_name: Optional[str] = None
    alliance_changed: bool = False
    old_alliance: Optional[str] = None
    old_alliance_id: Optional[str] = None
    new_alliance: Optional[str] = None
    new_alliance_id: Optional[str] = None


def detect_changes(row: PlayerRow, previous: Optional[Any]) -> DetectedChanges:
    """Compare a new row with the player's previous snapshot row.

    Empty and missing alliance tags are the same thing (no alliance).
    """
    if previous is None:
        return DetectedChanges()

    changes = DetectedChanges()
    if (previous.name or "") != (row.name or ""):
        changes.name_changed = True
        changes.old_name = previous.name or ""
        changes.new_name = row.name or ""

    old_tag = previous.alliance_tag or None
    new_tag = row.alliance_tag or None
    if old_tag != new_tag:
        changes.alliance_changed = True
        changes.old_alliance = old_tag
        changes.old_alliance_id = previous.alliance_id or None
        changes.new_alliance = new_tag
        changes.new_alliance_id = row.alliance_id or None
    return changes


class ChangeDetector:
    """Persists NameChange/AllianceChange rows for one ingestion.

    Callers count the returned changes once the row has been flushed.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.snapshots = SnapshotRepository(session)
        self.name_changes = NameChangeRepository(session)
        self.alliance_changes = AllianceChangeRepository(session)

    async def process(
        self, row: PlayerRow, timestamp: datetime, snapshot_id: int
    ) -> DetectedChanges:
        previous = await self.snapshots.get_prior_player_row(
            row.lord_id, before=timestamp, exclude_snapshot_id=snapshot_id
        )
        changes = detect_changes(row, previous)

        if changes.name_changed:
            await self.name_changes.record(
                row.lord_id,
                changes.old_name or "",
                changes.new_name or "",
                timestamp,
                snapshot_id=snapshot_id,
            )
            logger.debug(
                "Name change for %s: %r -> %r", row.lord_id, changes.old_name, changes.new_name
            )

        if changes.alliance_changed:
            await self.alliance_changes.record(
                row.lord_id,
                old_alliance=changes.old_alliance,
                old_alliance_id=changes.old_alliance_id,
                new_alliance=changes.new_alliance,
                new_alliance_id=changes.new_alliance_id,
                detected_at=timestamp,
                snapshot_id=snapshot_id,
            )
            logger.debug(
                "Alliance change for %s: %s -> %s",
                row.lord_id,
                changes.old_alliance,
                changes.new_alliance,
            )

        return changes
