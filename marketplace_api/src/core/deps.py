from __future__ import annotations

import logging
from typing import AsyncGenerator, Optional
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.logging import bind_user
from src.core.security import decode_token
from src.db.models.profiles import Profile
from src.db.session import get_async_session
from src.repositories.profiles import ProfileRepository

logger = logging.getLogger(__name__)

# OAuth2 bearer (used by docs); login endpoint path referenced here
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)

ADMIN_FORBIDDEN_DETAIL = "Forbidden - Admin access required"


# PUBLIC_INTERFACE
async def get_session(
    session: AsyncSession = Depends(get_async_session),
) -> AsyncGenerator[AsyncSession, None]:
    """Yield the request-scoped AsyncSession; FastAPI closes it after the response."""
    yield session


async def _profile_from_token(token: str, session: AsyncSession) -> Profile:
    try:
        payload = decode_token(token)
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    if payload.get("type") != "access":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    subject = payload.get("sub")
    try:
        profile_id = UUID(str(subject))
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    profile = await ProfileRepository(session).get_profile_by_id(profile_id)
    if not profile:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    bind_user(str(profile.id))
    return profile


# PUBLIC_INTERFACE
async def get_current_user(
    token: str = Depends(oauth2_scheme),
    session: AsyncSession = Depends(get_session),
) -> Profile:
    """
    Resolve the calling profile from the Authorization bearer token.

    Raises:
        HTTPException: 401 when the token is missing, invalid, not an access token
        or points to an unknown profile.
    """
    return await _profile_from_token(token, session)


# PUBLIC_INTERFACE
async def get_current_active_user(user: Profile = Depends(get_current_user)) -> Profile:
    """Ensure user is active."""
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Inactive user")
    return user


# PUBLIC_INTERFACE
async def get_optional_user(
    token: Optional[str] = Depends(optional_oauth2_scheme),
    session: AsyncSession = Depends(get_session),
) -> Optional[Profile]:
    """Calling profile for endpoints that are public but owner-aware; None when anonymous."""
    if not token:
        return None
    return await _profile_from_token(token, session)


# PUBLIC_INTERFACE
def require_roles(*required: str):
    """
    Create a dependency that requires the current profile to hold one of the given roles.
    """

    async def _dep(user: Profile = Depends(get_current_active_user)) -> Profile:
        if user.role not in required:
            logger.warning("Profile %s with role %s denied; needs one of %s", user.id, user.role, required)
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=ADMIN_FORBIDDEN_DETAIL)
        return user

    return _dep
