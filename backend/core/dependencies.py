from dataclasses import dataclass
from typing import AsyncGenerator

from fastapi import Query
from sqlalchemy.ext.asyncio import AsyncSession

from .database import get_database_manager


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding an AsyncSession from the DatabaseManager.

    The session commits when the handler returns and rolls back if it raises.
    """
    manager = get_database_manager()
    async with manager.session() as session:
        yield session


@dataclass
class Pagination:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def get_pagination(
    page: int = Query(1, ge=1, description="1-based page number"),
    limit: int = Query(50, ge=1, le=500, description="Items per page"),
) -> Pagination:
    """FastAPI dependency for page/limit query parameters."""
    return Pagination(page=page, limit=limit)
