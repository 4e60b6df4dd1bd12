"""Password hashing, bearer tokens, and role checks for API routes."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext

from .config import Settings, get_settings
from .errors import AuthenticationError, AuthorizationError, ValidationError

logger = logging.getLogger(__name__)

ROLE_ADMIN = "ADMIN"
ROLE_VIEWER = "VIEWER"
ROLES = (ROLE_ADMIN, ROLE_VIEWER)

JWT_ALGORITHM = "HS256"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class AuthenticatedUser:
    """Identity decoded from a bearer token."""

    user_id: int
    username: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def validate_password_policy(password: str, settings: Settings) -> None:
    """Minimum length plus at least one letter and one digit."""
    if len(password) < settings.password_min_length:
        raise ValidationError(
            f"Password must be at least {settings.password_min_length} characters long"
        )
    if not any(c.isalpha() for c in password) or not any(c.isdigit() for c in password):
        raise ValidationError("Password must contain at least one letter and one digit")


def create_access_token(
    user_id: int,
    username: str,
    role: str,
    settings: Settings,
    now: Optional[datetime] = None,
) -> str:
    issued_at = now or datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "username": username,
        "role": role,
        "iat": issued_at,
        "exp": issued_at + timedelta(minutes=settings.auth_token_ttl_minutes),
    }
    return jwt.encode(payload, settings.auth_secret, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str, settings: Settings) -> AuthenticatedUser:
    try:
        payload = jwt.decode(token, settings.auth_secret, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError as e:
        raise AuthenticationError("Token expired") from e
    except jwt.InvalidTokenError as e:
        raise AuthenticationError("Invalid token") from e

    role = payload.get("role")
    if role not in ROLES:
        raise AuthenticationError("Invalid token")
    try:
        user_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError) as e:
        raise AuthenticationError("Invalid token") from e
    return AuthenticatedUser(user_id=user_id, username=payload.get("username", ""), role=role)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> AuthenticatedUser:
    """FastAPI dependency: decode the bearer token or raise 401."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Not authenticated")
    return decode_access_token(credentials.credentials, settings)


async def require_viewer(
    user: AuthenticatedUser = Depends(get_current_user),
) -> AuthenticatedUser:
    """Any authenticated role may read."""
    return user


async def require_admin(
    user: AuthenticatedUser = Depends(get_current_user),
) -> AuthenticatedUser:
    if not user.is_admin:
        logger.info("Denied admin route to user_id=%s role=%s", user.user_id, user.role)
        raise AuthorizationError("Admin role required")
    return user
