"""POST /api/v1/auth/token: exchange credentials for a bearer token."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import Settings, get_settings
from core.dependencies import get_db_session
from core.responses import success_envelope
from services.user_service import authenticate

router = APIRouter(prefix="/auth", tags=["auth"])


class TokenRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


@router.post(
    "/token",
    summary="Issue bearer token",
    description="Verifies username/password and returns a signed token carrying the user's role.",
)
async def post_token(
    body: TokenRequest,
    session: AsyncSession = Depends(get_db_session),
    settings: Settings = Depends(get_settings),
) -> dict:
    return success_envelope(await authenticate(session, body.username, body.password, settings))
