"""
Bearer-token authentication and role checks.

Access tokens are HS256 JWTs with ``sub`` (user id) and ``email`` claims and
an audience of ``authenticated``. The caller's role lives on their profile
row; a user seen for the first time gets a ``Client`` profile.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from accountify.config import Settings, get_settings
from accountify.db import DbClient, ProfileRecord
from accountify.dependencies import get_db_client
from accountify.enums import UserRole

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"

security = HTTPBearer(auto_error=False)


@dataclass
class CurrentUser:
    id: str
    email: Optional[str]
    profile: ProfileRecord

    @property
    def role(self) -> UserRole:
        return self.profile.role

    @property
    def is_staff(self) -> bool:
        return self.profile.role.is_staff


def create_access_token(
    user_id: str,
    email: str | None = None,
    *,
    settings: Settings | None = None,
    expires_in: int | None = None,
    **claims,
) -> str:
    settings = settings or get_settings()
    now = int(time.time())
    payload = {
        "sub": user_id,
        "email": email,
        "aud": settings.jwt_audience,
        "iat": now,
        "exp": now + (expires_in or settings.jwt_expires_seconds),
        **claims,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=JWT_ALGORITHM)


def decode_token(token: str, settings: Settings | None = None) -> dict:
    """Decode and verify a token; raises ``jwt.PyJWTError`` when invalid."""
    settings = settings or get_settings()
    return jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=[JWT_ALGORITHM],
        audience=settings.jwt_audience,
        options={"require": ["sub", "exp"]},
    )


def resolve_user(token: str, db: DbClient) -> CurrentUser:
    try:
        claims = decode_token(token)
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token has expired")
    except jwt.PyJWTError as exc:
        logger.info("Rejected access token: %s", exc)
        raise HTTPException(status_code=401, detail="Invalid token")

    user_id = str(claims["sub"])
    email = claims.get("email")
    profile = db.get_profile(user_id)
    if profile is None:
        metadata = claims.get("user_metadata") or {}
        profile = db.save_profile(
            ProfileRecord(
                id=user_id,
                role=UserRole.CLIENT,
                email=email,
                full_name=metadata.get("full_name"),
                avatar_url=metadata.get("avatar_url"),
            )
        )
        logger.info("Created profile for new user %s", user_id)
    return CurrentUser(id=user_id, email=email or profile.email, profile=profile)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: DbClient = Depends(get_db_client),
) -> CurrentUser:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return resolve_user(credentials.credentials, db)


def require_staff(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_staff:
        raise HTTPException(status_code=403, detail="Staff access required")
    return user


def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if user.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=403, detail="Only administrators can manage user roles"
        )
    return user
