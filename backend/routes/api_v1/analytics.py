"""Kingdom analytics: power distribution and inactivity."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import Settings, get_settings
from core.dependencies import get_db_session
from core.responses import success_envelope
from core.security import AuthenticatedUser, require_viewer
from services.analytics_service import inactivity_report, power_distribution_report

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("/power-distribution", summary="Power bracket distribution")
async def get_power_distribution(
    snapshot_id: Optional[int] = Query(None, description="Defaults to the latest snapshot"),
    alliance: str = Query("all"),
    _: AuthenticatedUser = Depends(require_viewer),
    session: AsyncSession = Depends(get_db_session),
    settings: Settings = Depends(get_settings),
) -> dict:
    data = await power_distribution_report(
        session, settings, snapshot_id=snapshot_id, alliance=alliance
    )
    return success_envelope(data)


@router.get(
    "/inactivity",
    summary="Inactivity report",
    description="Compares two snapshots (default: latest and the one before it).",
)
async def get_inactivity(
    current_snapshot_id: Optional[int] = Query(None),
    previous_snapshot_id: Optional[int] = Query(None),
    alliance: str = Query("all"),
    _: AuthenticatedUser = Depends(require_viewer),
    session: AsyncSession = Depends(get_db_session),
    settings: Settings = Depends(get_settings),
) -> dict:
    data = await inactivity_report(
        session,
        settings,
        current_snapshot_id=current_snapshot_id,
        previous_snapshot_id=previous_snapshot_id,
        alliance=alliance,
    )
    return success_envelope(data)
