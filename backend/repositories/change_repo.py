from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.change import AllianceChange, NameChange
from models.player import Player
from .base import BaseRepository


class NameChangeRepository(BaseRepository[NameChange]):
    """Repository for NameChange rows. Append-only."""

    model = NameChange

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def record(
        self,
        player_id: str,
        old_name: str,
        new_name: str,
        detected_at: datetime,
        snapshot_id: Optional[int] = None,
    ) -> NameChange:
        change = NameChange(
            player_id=player_id,
            old_name=old_name,
            new_name=new_name,
            detected_at=detected_at,
            snapshot_id=snapshot_id,
        )
        await self.add(change)
        return change

    async def search(
        self,
        query: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Tuple[NameChange, Optional[str]]], int]:
        """Changes newest first with the player's current name, plus total count.

        ``query`` matches old name, new name, current name, or lord id.
        """
        stmt = select(NameChange, Player.current_name).join(
            Player, Player.lord_id == NameChange.player_id
        )
        if query:
            pattern = f"%{query.lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(NameChange.old_name).like(pattern),
                    func.lower(NameChange.new_name).like(pattern),
                    func.lower(Player.current_name).like(pattern),
                    NameChange.player_id == query,
                )
            )
        if since is not None:
            stmt = stmt.where(NameChange.detected_at >= since)

        total = await self.session.execute(select(func.count()).select_from(stmt.subquery()))
        stmt = (
            stmt.order_by(NameChange.detected_at.desc(), NameChange.id.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(stmt)
        return [(c, name) for c, name in result.all()], int(total.scalar_one())

    async def for_player(self, player_id: str) -> List[NameChange]:
        stmt = (
            select(NameChange)
            .where(NameChange.player_id == player_id)
            .order_by(NameChange.detected_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())


class AllianceChangeRepository(BaseRepository[AllianceChange]):
    """Repository for AllianceChange rows. Append-only."""

    model = AllianceChange

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def record(
        self,
        player_id: str,
        old_alliance: Optional[str],
        old_alliance_id: Optional[str],
        new_alliance: Optional[str],
        new_alliance_id: Optional[str],
        detected_at: datetime,
        snapshot_id: Optional[int] = None,
    ) -> AllianceChange:
        change = AllianceChange(
            player_id=player_id,
            old_alliance=old_alliance,
            old_alliance_id=old_alliance_id,
            new_alliance=new_alliance,
            new_alliance_id=new_alliance_id,
            detected_at=detected_at,
            snapshot_id=snapshot_id,
        )
        await self.add(change)
        return change

    async def search(
        self,
        alliance: Optional[str] = None,
        player_id: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Tuple[AllianceChange, Optional[str]]], int]:
        """Moves newest first with the player's current name; ``alliance`` matches either side."""
        stmt = select(AllianceChange, Player.current_name).join(
            Player, Player.lord_id == AllianceChange.player_id
        )
        if alliance:
            stmt = stmt.where(
                or_(
                    AllianceChange.old_alliance == alliance,
                    AllianceChange.new_alliance == alliance,
                )
            )
        if player_id:
            stmt = stmt.where(AllianceChange.player_id == player_id)
        if since is not None:
            stmt = stmt.where(AllianceChange.detected_at >= since)

        total = await self.session.execute(select(func.count()).select_from(stmt.subquery()))
        stmt = (
            stmt.order_by(AllianceChange.detected_at.desc(), AllianceChange.id.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(stmt)
        return [(c, name) for c, name in result.all()], int(total.scalar_one())

    async def for_player(self, player_id: str) -> List[AllianceChange]:
        stmt = (
            select(AllianceChange)
            .where(AllianceChange.player_id == player_id)
            .order_by(AllianceChange.detected_at.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
