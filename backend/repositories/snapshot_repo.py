from __future__ import annotations

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set, Tuple

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.change import AllianceChange, NameChange
from models.snapshot import PlayerSnapshot, Snapshot
from .base import BaseRepository

# Keeps IN (...) lists under SQLite's bound-parameter limit.
_IN_CHUNK = 500


def _chunks(values: List[str], size: int = _IN_CHUNK) -> Iterable[List[str]]:
    for i in range(0, len(values), size):
        yield values[i : i + size]


class SnapshotRepository(BaseRepository[Snapshot]):
    """Repository for Snapshot entities and the player rows they own."""

    model = Snapshot

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def get_latest(self) -> Optional[Snapshot]:
        stmt = select(Snapshot).order_by(Snapshot.timestamp.desc(), Snapshot.id.desc()).limit(1)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_previous(self, snapshot: Snapshot) -> Optional[Snapshot]:
        """Most recent snapshot strictly older than ``snapshot``."""
        stmt = (
            select(Snapshot)
            .where(Snapshot.timestamp < snapshot.timestamp)
            .order_by(Snapshot.timestamp.desc(), Snapshot.id.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_at_or_before(self, when: datetime) -> Optional[Snapshot]:
        stmt = (
            select(Snapshot)
            .where(Snapshot.timestamp <= when)
            .order_by(Snapshot.timestamp.desc(), Snapshot.id.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def for_upload(self, upload_id: int) -> List[Snapshot]:
        stmt = select(Snapshot).where(Snapshot.upload_id == upload_id).order_by(Snapshot.id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def discard(self, snapshot_id: int) -> int:
        """Delete a snapshot with its player rows and the changes it recorded.

        Returns the number of player rows removed.
        """
        for model in (NameChange, AllianceChange):
            await self.session.execute(delete(model).where(model.snapshot_id == snapshot_id))
        removed = await self.session.execute(
            delete(PlayerSnapshot).where(PlayerSnapshot.snapshot_id == snapshot_id)
        )
        await self.session.execute(delete(Snapshot).where(Snapshot.id == snapshot_id))
        return removed.rowcount or 0

    async def list_with_player_counts(
        self, limit: int = 50, offset: int = 0
    ) -> Tuple[List[Tuple[Snapshot, int]], int]:
        """Snapshots newest first with the number of player rows each holds."""
        counts = (
            select(
                PlayerSnapshot.snapshot_id.label("snapshot_id"),
                func.count(PlayerSnapshot.id).label("player_count"),
            )
            .group_by(PlayerSnapshot.snapshot_id)
            .subquery()
        )
        stmt = (
            select(Snapshot, func.coalesce(counts.c.player_count, 0))
            .outerjoin(counts, counts.c.snapshot_id == Snapshot.id)
            .order_by(Snapshot.timestamp.desc(), Snapshot.id.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(stmt)
        rows = [(snap, int(count)) for snap, count in result.all()]
        return rows, await self.count()

    # Player rows

    async def rows_for_snapshot(self, snapshot_id: int) -> List[PlayerSnapshot]:
        stmt = (
            select(PlayerSnapshot)
            .where(PlayerSnapshot.snapshot_id == snapshot_id)
            .order_by(PlayerSnapshot.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def player_ids_in_snapshot(self, snapshot_id: int) -> Set[str]:
        stmt = select(PlayerSnapshot.player_id).where(PlayerSnapshot.snapshot_id == snapshot_id)
        result = await self.session.execute(stmt)
        return set(result.scalars().all())

    async def get_player_row(
        self, player_id: str, snapshot_id: int
    ) -> Optional[PlayerSnapshot]:
        stmt = (
            select(PlayerSnapshot)
            .where(PlayerSnapshot.player_id == player_id)
            .where(PlayerSnapshot.snapshot_id == snapshot_id)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_prior_player_row(
        self,
        player_id: str,
        before: datetime,
        exclude_snapshot_id: int,
    ) -> Optional[PlayerSnapshot]:
        """Player's most recent row from another snapshot not newer than ``before``."""
        stmt = (
            select(PlayerSnapshot)
            .join(Snapshot, Snapshot.id == PlayerSnapshot.snapshot_id)
            .where(PlayerSnapshot.player_id == player_id)
            .where(PlayerSnapshot.snapshot_id != exclude_snapshot_id)
            .where(Snapshot.timestamp <= before)
            .order_by(Snapshot.timestamp.desc(), Snapshot.id.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def player_history(
        self, player_id: str, limit: Optional[int] = None
    ) -> List[Tuple[PlayerSnapshot, datetime]]:
        """Player rows with their snapshot timestamps, newest first."""
        stmt = (
            select(PlayerSnapshot, Snapshot.timestamp)
            .join(Snapshot, Snapshot.id == PlayerSnapshot.snapshot_id)
            .where(PlayerSnapshot.player_id == player_id)
            .order_by(Snapshot.timestamp.desc(), Snapshot.id.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return [(row, ts) for row, ts in result.all()]

    async def histories_since(
        self, player_ids: List[str], since: datetime
    ) -> Dict[str, List[Tuple[PlayerSnapshot, datetime]]]:
        """Rows per player at or after ``since``, newest first."""
        out: Dict[str, List[Tuple[PlayerSnapshot, datetime]]] = {pid: [] for pid in player_ids}
        for chunk in _chunks(player_ids):
            stmt = (
                select(PlayerSnapshot, Snapshot.timestamp)
                .join(Snapshot, Snapshot.id == PlayerSnapshot.snapshot_id)
                .where(PlayerSnapshot.player_id.in_(chunk))
                .where(Snapshot.timestamp >= since)
                .order_by(Snapshot.timestamp.desc(), Snapshot.id.desc())
            )
            result = await self.session.execute(stmt)
            for row, ts in result.all():
                out[row.player_id].append((row, ts))
        return out

    async def latest_current_power(self, player_ids: List[str]) -> Dict[str, str]:
        """current_power from each player's most recent row."""
        latest: Dict[str, str] = {}
        for chunk in _chunks(player_ids):
            stmt = (
                select(PlayerSnapshot.player_id, PlayerSnapshot.current_power)
                .join(Snapshot, Snapshot.id == PlayerSnapshot.snapshot_id)
                .where(PlayerSnapshot.player_id.in_(chunk))
                .order_by(Snapshot.timestamp.desc(), Snapshot.id.desc())
            )
            result = await self.session.execute(stmt)
            for player_id, power in result.all():
                latest.setdefault(player_id, power)
        return latest
