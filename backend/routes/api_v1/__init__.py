"""API v1: every router mounted under /api/v1."""

from fastapi import APIRouter

from .admin import router as admin_router
from .analytics import router as analytics_router
from .auth import router as auth_router
from .changes import router as changes_router
from .dashboard import router as dashboard_router
from .leaderboard import router as leaderboard_router
from .merits import router as merits_router
from .players import router as players_router
from .search import router as search_router
from .snapshots import router as snapshots_router
from .uploads import router as uploads_router

router = APIRouter(prefix="/api/v1")
router.include_router(auth_router)
router.include_router(uploads_router)
router.include_router(snapshots_router)
router.include_router(players_router)
router.include_router(search_router)
router.include_router(leaderboard_router)
router.include_router(merits_router)
router.include_router(dashboard_router)
router.include_router(analytics_router)
router.include_router(changes_router)
router.include_router(admin_router)

api_v1_router = router
