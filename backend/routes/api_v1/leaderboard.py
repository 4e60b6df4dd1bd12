"""Leaderboards: players, merit efficiency, alliances, and bulk export."""

from typing import List

from fastapi import APIRouter, Depends, Query
from pydantic import AliasChoices, BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import Settings, get_settings
from core.dependencies import Pagination, get_db_session, get_pagination
from core.responses import pagination_metadata, success_envelope
from core.security import AuthenticatedUser, require_viewer
from services import analytics_service, player_service

router = APIRouter(prefix="/leaderboard", tags=["leaderboard"])


class BulkExportBody(BaseModel):
    player_ids: List[str] = Field(
        default_factory=list, validation_alias=AliasChoices("player_ids", "playerIds")
    )
    format: str = Field(default="detailed", description="basic | detailed")
    include_history: bool = Field(
        default=False, validation_alias=AliasChoices("include_history", "includeHistory")
    )


@router.get("", summary="Player leaderboard")
async def get_leaderboard(
    sort_by: str = Query(player_service.DEFAULT_SORT),
    order: str = Query("desc", description="asc | desc"),
    alliance: str = Query("all"),
    pagination: Pagination = Depends(get_pagination),
    _: AuthenticatedUser = Depends(require_viewer),
    session: AsyncSession = Depends(get_db_session),
    settings: Settings = Depends(get_settings),
) -> dict:
    data = await player_service.leaderboard(
        session,
        settings,
        sort_by=sort_by,
        order=order,
        alliance=alliance,
        limit=pagination.limit,
        offset=pagination.offset,
    )
    return success_envelope(
        data,
        pagination=pagination_metadata(pagination.page, pagination.limit, data["total"]),
        sortable_fields=player_service.sortable_fields(),
    )


@router.get("/efficiency", summary="Merit efficiency leaderboard")
async def get_efficiency(
    alliance: str = Query("all"),
    pagination: Pagination = Depends(get_pagination),
    _: AuthenticatedUser = Depends(require_viewer),
    session: AsyncSession = Depends(get_db_session),
    settings: Settings = Depends(get_settings),
) -> dict:
    data = await analytics_service.efficiency_leaderboard(
        session, settings, alliance=alliance, limit=pagination.limit, offset=pagination.offset
    )
    return success_envelope(
        data, pagination=pagination_metadata(pagination.page, pagination.limit, data["total"])
    )


@router.get("/alliances", summary="Alliance leaderboard")
async def get_alliances(
    sort_by: str = Query("total_power"),
    order: str = Query("desc"),
    limit: int = Query(50, ge=1, le=500),
    _: AuthenticatedUser = Depends(require_viewer),
    session: AsyncSession = Depends(get_db_session),
) -> dict:
    data = await analytics_service.alliance_leaderboard(
        session, sort_by=sort_by, order=order, limit=limit
    )
    return success_envelope(data)


@router.post("/bulk-export", summary="Export selected players")
async def post_bulk_export(
    body: BulkExportBody,
    _: AuthenticatedUser = Depends(require_viewer),
    session: AsyncSession = Depends(get_db_session),
) -> dict:
    data = await player_service.bulk_export(
        session, body.player_ids, fmt=body.format, include_history=body.include_history
    )
    return success_envelope(data)
