"""GET /api/v1/dashboard/alliance: alliance health KPIs between two snapshots."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import Settings, get_settings
from core.dependencies import get_db_session
from core.responses import success_envelope
from core.security import AuthenticatedUser, require_viewer
from services.analytics_service import DASHBOARD_COMBINED, alliance_dashboard

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/alliance", summary="Alliance health dashboard")
async def get_alliance_dashboard(
    alliance: str = Query(DASHBOARD_COMBINED, description="combined or an alliance tag"),
    snapshot_id: Optional[int] = Query(None),
    previous_snapshot_id: Optional[int] = Query(None),
    _: AuthenticatedUser = Depends(require_viewer),
    session: AsyncSession = Depends(get_db_session),
    settings: Settings = Depends(get_settings),
) -> dict:
    data = await alliance_dashboard(
        session,
        settings,
        selection=alliance,
        snapshot_id=snapshot_id,
        previous_snapshot_id=previous_snapshot_id,
    )
    return success_envelope(data)
