from __future__ import annotations

from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.upload import UPLOAD_PROCESSING, Upload
from .base import BaseRepository


class UploadRepository(BaseRepository[Upload]):
    """Repository for Upload bookkeeping rows."""

    model = Upload

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def create(self, filename: str, user_id: Optional[int]) -> Upload:
        upload = Upload(filename=filename, user_id=user_id, status=UPLOAD_PROCESSING)
        await self.add(upload)
        await self.flush()
        return upload

    async def list_recent(self, limit: int = 50, offset: int = 0) -> Tuple[List[Upload], int]:
        stmt = (
            select(Upload)
            .order_by(Upload.created_at.desc(), Upload.id.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(stmt)
        total = await self.session.execute(select(func.count()).select_from(Upload))
        return list(result.scalars().all()), int(total.scalar_one())
