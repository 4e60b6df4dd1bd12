"""User management and token issue."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from core.config import Settings
from core.errors import AuthenticationError, NotFoundError, ValidationError
from core.security import (
    ROLE_ADMIN,
    ROLES,
    create_access_token,
    hash_password,
    validate_password_policy,
    verify_password,
)
from models.user import User
from repositories.user_repo import UserRepository

logger = logging.getLogger(__name__)


def user_to_dict(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "username": user.username,
        "role": user.role,
        "is_active": user.is_active,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


def _check_role(role: str) -> str:
    role = (role or "").upper()
    if role not in ROLES:
        raise ValidationError(f"Role must be one of {', '.join(ROLES)}")
    return role


async def authenticate(
    session: AsyncSession, username: str, password: str, settings: Settings
) -> Dict[str, Any]:
    """Verify credentials and return a bearer token with the user's role."""
    user = await UserRepository(session).get_by_username(username)
    if user is None or not user.is_active or not verify_password(password, user.password_hash):
        raise AuthenticationError("Invalid username or password")
    token = create_access_token(user.id, user.username, user.role, settings)
    return {
        "access_token": token,
        "token_type": "bearer",
        "expires_in": settings.auth_token_ttl_minutes * 60,
        "user": user_to_dict(user),
    }


async def create_user(
    session: AsyncSession,
    username: str,
    password: str,
    role: str,
    settings: Settings,
) -> User:
    username = (username or "").strip()
    if len(username) < 3:
        raise ValidationError("Username must be at least 3 characters long")
    role = _check_role(role)
    validate_password_policy(password, settings)

    users = UserRepository(session)
    if await users.get_by_username(username) is not None:
        raise ValidationError(f"Username '{username}' is already taken")

    user = User(username=username, password_hash=hash_password(password), role=role)
    await users.add(user)
    await users.flush()
    logger.info("Created user %s with role %s", username, role)
    return user


async def update_user(
    session: AsyncSession,
    user_id: int,
    role: Optional[str] = None,
    is_active: Optional[bool] = None,
) -> User:
    users = UserRepository(session)
    user = await users.get(user_id)
    if user is None:
        raise NotFoundError("User", str(user_id))
    if role is not None:
        user.role = _check_role(role)
    if is_active is not None:
        user.is_active = is_active
    await users.flush()
    return user


async def list_users(session: AsyncSession) -> List[Dict[str, Any]]:
    return [user_to_dict(u) for u in await UserRepository(session).list_all()]


async def ensure_bootstrap_admin(session: AsyncSession, settings: Settings) -> Optional[User]:
    """Create the configured admin account when the user table is empty."""
    if not settings.admin_username or not settings.admin_password:
        return None
    users = UserRepository(session)
    if await users.count() > 0:
        return None
    user = await create_user(
        session, settings.admin_username, settings.admin_password, ROLE_ADMIN, settings
    )
    logger.info("Bootstrapped admin user %s", settings.admin_username)
    return user
