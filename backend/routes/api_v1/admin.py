"""User management. Admin only."""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import Settings, get_settings
from core.dependencies import get_db_session
from core.errors import ValidationError
from core.responses import success_envelope
from core.security import ROLE_VIEWER, AuthenticatedUser, require_admin
from services.user_service import create_user, list_users, update_user, user_to_dict

router = APIRouter(prefix="/admin/users", tags=["admin"])


class CreateUserBody(BaseModel):
    username: str
    password: str
    role: str = Field(default=ROLE_VIEWER, description="ADMIN | VIEWER")


class UpdateUserBody(BaseModel):
    role: Optional[str] = None
    is_active: Optional[bool] = None


@router.get("", summary="List users")
async def get_users(
    _: AuthenticatedUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
) -> dict:
    return success_envelope(await list_users(session))


@router.post("", summary="Create user", status_code=201)
async def post_user(
    body: CreateUserBody,
    _: AuthenticatedUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
    settings: Settings = Depends(get_settings),
) -> dict:
    user = await create_user(session, body.username, body.password, body.role, settings)
    return success_envelope(user_to_dict(user))


@router.patch("/{user_id}", summary="Change role or active flag")
async def patch_user(
    user_id: int,
    body: UpdateUserBody,
    admin: AuthenticatedUser = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
) -> dict:
    if user_id == admin.user_id and body.is_active is False:
        raise ValidationError("You cannot deactivate your own account")
    user = await update_user(session, user_id, role=body.role, is_active=body.is_active)
    return success_envelope(user_to_dict(user))
