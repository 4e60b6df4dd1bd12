"""Player listings, realm membership, comparison and the per-player card.

Static paths are declared before /{lord_id} so they are not captured by it.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import Settings, get_settings
from core.dependencies import Pagination, get_db_session, get_pagination
from core.errors import ValidationError
from core.responses import pagination_metadata, success_envelope
from core.security import AuthenticatedUser, require_viewer
from services import analytics_service, player_service

router = APIRouter(prefix="/players", tags=["players"])

MAX_COMPARE = 10


@router.get("", summary="Players in the latest snapshot")
async def get_players(
    alliance: str = Query("all", description="all | managed | others | <tag>"),
    include_left_realm: bool = Query(False),
    _: AuthenticatedUser = Depends(require_viewer),
    session: AsyncSession = Depends(get_db_session),
    settings: Settings = Depends(get_settings),
) -> dict:
    data = await player_service.list_players(session, settings, alliance, include_left_realm)
    return success_envelope(data, total=len(data["players"]))


@router.get("/left-realm", summary="Players flagged as having left the realm")
async def get_left_realm(
    pagination: Pagination = Depends(get_pagination),
    _: AuthenticatedUser = Depends(require_viewer),
    session: AsyncSession = Depends(get_db_session),
) -> dict:
    items, total = await player_service.left_realm(
        session, limit=pagination.limit, offset=pagination.offset
    )
    return success_envelope(
        items, pagination=pagination_metadata(pagination.page, pagination.limit, total)
    )


@router.get(
    "/joined-realm",
    summary="Players new to the realm",
    description="mode=creation: first seen within days_ago. mode=snapshot: present in to_snapshot but not from_snapshot.",
)
async def get_joined_realm(
    mode: str = Query("creation", description="creation | snapshot"),
    from_snapshot_id: Optional[int] = Query(None),
    to_snapshot_id: Optional[int] = Query(None),
    days_ago: int = Query(30, ge=1, le=365),
    pagination: Pagination = Depends(get_pagination),
    _: AuthenticatedUser = Depends(require_viewer),
    session: AsyncSession = Depends(get_db_session),
) -> dict:
    data = await player_service.joined_realm(
        session,
        mode=mode,
        from_snapshot_id=from_snapshot_id,
        to_snapshot_id=to_snapshot_id,
        days_ago=days_ago,
        limit=pagination.limit,
        offset=pagination.offset,
    )
    return success_envelope(
        data, pagination=pagination_metadata(pagination.page, pagination.limit, data["total"])
    )


@router.get("/compare", summary="Compare several players")
async def get_compare(
    ids: str = Query(..., description="Comma-separated lord ids"),
    _: AuthenticatedUser = Depends(require_viewer),
    session: AsyncSession = Depends(get_db_session),
) -> dict:
    lord_ids = [i.strip() for i in ids.split(",") if i.strip()]
    if len(lord_ids) < 2:
        raise ValidationError("At least two player ids are required")
    if len(lord_ids) > MAX_COMPARE:
        raise ValidationError(f"At most {MAX_COMPARE} players can be compared")
    return success_envelope(await analytics_service.compare_players(session, lord_ids))


@router.get("/{lord_id}", summary="Player card")
async def get_player(
    lord_id: str,
    _: AuthenticatedUser = Depends(require_viewer),
    session: AsyncSession = Depends(get_db_session),
) -> dict:
    return success_envelope(await analytics_service.player_analysis(session, lord_id))
