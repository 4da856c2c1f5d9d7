"""
Authentication against the managed auth provider

The front end signs users in directly with the provider and forwards the
access token as "Authorization: Bearer <token>". The token is resolved to a
user by the provider's /auth/v1/user endpoint on every request.
"""

import logging
from typing import Optional

import httpx
from fastapi import Depends, Header, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from patentbot.internal.settings import get_settings
from patentbot.models import UserRole
from patentbot.schemas import AuthUser

logger = logging.getLogger(__name__)


def bearer_token(authorization: Optional[str]) -> str:
    if not authorization:
        raise HTTPException(status_code=401, detail="No authorization header provided")
    return authorization.replace("Bearer ", "", 1).strip()


async def fetch_auth_user(token: str) -> AuthUser:
    """
    Ask the auth provider who owns a token

    Raises:
        HTTPException(401) when the token is rejected or the provider is unreachable
    """
    settings = get_settings()
    if not settings.auth_url:
        raise HTTPException(status_code=500, detail="AUTH_URL is not configured")

    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.get(
                f"{settings.auth_url}/auth/v1/user",
                headers={"apikey": settings.auth_anon_key, "Authorization": f"Bearer {token}"},
            )
    except httpx.HTTPError as e:
        logger.error(f"Auth provider unreachable: {e}")
        raise HTTPException(status_code=401, detail=f"Authentication error: {e}")

    if response.status_code != 200:
        logger.warning(f"Token rejected by auth provider: {response.status_code}")
        raise HTTPException(status_code=401, detail="Unauthorized")

    return AuthUser.model_validate(response.json())


async def get_current_user(authorization: Optional[str] = Header(default=None)) -> AuthUser:
    """FastAPI dependency resolving the bearer token to a user"""
    return await fetch_auth_user(bearer_token(authorization))


async def get_current_user_with_email(user: AuthUser = Depends(get_current_user)) -> AuthUser:
    """Payment routes need an email to look up the processor customer"""
    if not user.email:
        raise HTTPException(status_code=401, detail="User not authenticated or email not available")
    return user


def is_admin(db: Session, user: AuthUser, allow_email: bool = True) -> bool:
    """
    Admin = a user_roles row with role 'admin', or (optionally) an email in ADMIN_EMAILS
    """
    role = db.scalar(
        select(UserRole).where(UserRole.user_id == user.id, UserRole.role == "admin")
    )
    if role:
        return True
    if allow_email and user.email:
        return user.email.lower() in get_settings().admin_emails
    return False
