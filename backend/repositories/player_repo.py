from __future__ import annotations

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.player import Player
from models.snapshot import PlayerSnapshot
from .base import BaseRepository


class PlayerRepository(BaseRepository[Player]):
    """Repository for Player entities."""

    model = Player

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def get_by_lord_id(self, lord_id: str) -> Optional[Player]:
        return await self.get(lord_id)

    async def get_many(self, lord_ids: Iterable[str]) -> Dict[str, Player]:
        """Load players by lord id; missing ids are simply absent from the result."""
        ids = list(lord_ids)
        if not ids:
            return {}
        stmt = select(Player).where(Player.lord_id.in_(ids))
        result = await self.session.execute(stmt)
        return {p.lord_id: p for p in result.scalars().all()}

    async def find_last_seen_at(self, timestamp: datetime) -> List[Player]:
        stmt = select(Player).where(Player.last_seen_at == timestamp)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def delete_without_snapshots(self) -> int:
        """Remove players that have no snapshot row left; returns how many."""
        has_rows = (
            select(PlayerSnapshot.id).where(PlayerSnapshot.player_id == Player.lord_id).exists()
        )
        result = await self.session.execute(
            delete(Player).where(~has_rows).execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def find_realm_candidates(self, seen_before: datetime) -> List[Player]:
        """Players not yet flagged as left whose last sighting predates ``seen_before``."""
        stmt = (
            select(Player)
            .where(Player.has_left_realm == False)  # noqa: E712
            .where(Player.last_seen_at.is_not(None))
            .where(Player.last_seen_at < seen_before)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_left_realm(
        self, limit: int = 50, offset: int = 0
    ) -> Tuple[List[Player], int]:
        """Players flagged as left, most recent departures first, plus total count."""
        base = select(Player).where(Player.has_left_realm == True)  # noqa: E712
        total = await self.session.execute(
            select(func.count()).select_from(base.subquery())
        )
        stmt = (
            base.order_by(Player.left_realm_at.desc(), Player.lord_id)
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), int(total.scalar_one())

    async def left_realm_ids(self) -> List[str]:
        stmt = select(Player.lord_id).where(Player.has_left_realm == True)  # noqa: E712
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def created_since(self, since: datetime) -> List[Player]:
        stmt = (
            select(Player)
            .where(Player.created_at >= since)
            .order_by(Player.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
