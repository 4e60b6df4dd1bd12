"""GET /api/v1/snapshots: stored snapshots, newest first, with player counts."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from core.dependencies import Pagination, get_db_session, get_pagination
from core.responses import pagination_metadata, success_envelope
from core.security import AuthenticatedUser, require_viewer
from services.player_service import list_snapshots

router = APIRouter(prefix="/snapshots", tags=["snapshots"])


@router.get("", summary="List snapshots")
async def get_snapshots(
    pagination: Pagination = Depends(get_pagination),
    _: AuthenticatedUser = Depends(require_viewer),
    session: AsyncSession = Depends(get_db_session),
) -> dict:
    items, total = await list_snapshots(session, limit=pagination.limit, offset=pagination.offset)
    return success_envelope(
        items, pagination=pagination_metadata(pagination.page, pagination.limit, total)
    )
