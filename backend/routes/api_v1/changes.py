"""Name and alliance change history."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from core.dependencies import Pagination, get_db_session, get_pagination
from core.responses import pagination_metadata, success_envelope
from core.security import AuthenticatedUser, require_viewer
from services.player_service import alliance_changes, name_changes

router = APIRouter(prefix="/changes", tags=["changes"])


@router.get("/names", summary="Name changes, newest first")
async def get_name_changes(
    search: Optional[str] = Query(None),
    days: int = Query(30, ge=0, description="0 means all time"),
    pagination: Pagination = Depends(get_pagination),
    _: AuthenticatedUser = Depends(require_viewer),
    session: AsyncSession = Depends(get_db_session),
) -> dict:
    items, total = await name_changes(
        session, search_text=search, days=days, limit=pagination.limit, offset=pagination.offset
    )
    return success_envelope(
        items, pagination=pagination_metadata(pagination.page, pagination.limit, total)
    )


@router.get("/alliances", summary="Alliance moves, newest first")
async def get_alliance_changes(
    alliance: Optional[str] = Query(None, description="Matches either side of the move"),
    player_id: Optional[str] = Query(None),
    days: int = Query(30, ge=0, description="0 means all time"),
    pagination: Pagination = Depends(get_pagination),
    _: AuthenticatedUser = Depends(require_viewer),
    session: AsyncSession = Depends(get_db_session),
) -> dict:
    items, total = await alliance_changes(
        session,
        alliance=alliance,
        player_id=player_id,
        days=days,
        limit=pagination.limit,
        offset=pagination.offset,
    )
    return success_envelope(
        items, pagination=pagination_metadata(pagination.page, pagination.limit, total)
    )
