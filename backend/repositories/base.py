from __future__ import annotations

from typing import Generic, Optional, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.base import Base

T = TypeVar("T", bound=Base)


class BaseRepository(Generic[T]):
    """Base repository with common CRUD helpers.

    No commits are performed here - commit responsibility is left to the
    service layer (ingestion commits per batch, API requests per request).
    """

    model: Type[T]

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def add(self, entity: T) -> T:
        """Add an entity to the session (not committed)."""
        self.session.add(entity)
        return entity

    async def get(self, id_value: str | int) -> Optional[T]:
        """Get an entity by its primary key."""
        return await self.session.get(self.model, id_value)

    async def count(self) -> int:
        stmt = select(func.count()).select_from(self.model)
        result = await self.session.execute(stmt)
        return int(result.scalar_one())

    async def flush(self) -> None:
        """Flush pending inserts so generated ids become available."""
        await self.session.flush()
