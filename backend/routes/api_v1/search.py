"""GET /api/v1/search: substring search over players and alliance tags."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import Settings, get_settings
from core.dependencies import get_db_session
from core.responses import success_envelope
from core.security import AuthenticatedUser, require_viewer
from services.player_service import search

router = APIRouter(prefix="/search", tags=["search"])


@router.get("", summary="Search players and alliances")
async def get_search(
    q: str = Query("", description="At least 2 characters"),
    search_type: str = Query("all", alias="type", description="all | players | alliances"),
    limit: int = Query(20, ge=1, le=100),
    include_left_realm: bool = Query(False),
    _: AuthenticatedUser = Depends(require_viewer),
    session: AsyncSession = Depends(get_db_session),
    settings: Settings = Depends(get_settings),
) -> dict:
    data = await search(
        session,
        settings,
        q,
        limit=limit,
        include_left_realm=include_left_realm,
        search_type=search_type,
    )
    return success_envelope(data, query=q.strip())
