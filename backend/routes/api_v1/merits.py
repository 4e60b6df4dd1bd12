"""GET /api/v1/merits: merit analytics and top lists."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import Settings, get_settings
from core.dependencies import get_db_session
from core.responses import success_envelope
from core.security import AuthenticatedUser, require_viewer
from services.analytics_service import merit_analytics

router = APIRouter(prefix="/merits", tags=["merits"])


@router.get("", summary="Merit analytics")
async def get_merits(
    timeframe: str = Query("current", description="current | week | month"),
    alliance: str = Query("all"),
    _: AuthenticatedUser = Depends(require_viewer),
    session: AsyncSession = Depends(get_db_session),
    settings: Settings = Depends(get_settings),
) -> dict:
    data = await merit_analytics(session, settings, timeframe=timeframe, alliance=alliance)
    return success_envelope(data)
