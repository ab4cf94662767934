from __future__ import annotations

import logging
from typing import Any, Dict
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.deps import get_current_active_user, get_session
from src.core.security import (
    create_access_token,
    create_refresh_token,
    decode_token,
    get_password_hash,
    verify_password,
)
from src.db.models.profiles import Profile
from src.repositories.profiles import ProfileRepository
from src.schemas.auth import (
    Message,
    ProfileRead,
    RefreshRequest,
    RegisterRequest,
    TokenPair,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/auth", tags=["Auth"])


def _issue_tokens(profile: Profile) -> TokenPair:
    return TokenPair(
        access_token=create_access_token(subject=str(profile.id), role=profile.role),
        refresh_token=create_refresh_token(subject=str(profile.id)),
    )


# PUBLIC_INTERFACE
@router.post(
    "/register",
    response_model=ProfileRead,
    status_code=status.HTTP_201_CREATED,
    summary="Register profile",
    description="Create a new marketplace profile with the 'user' role.",
)
async def register_user(
    payload: RegisterRequest,
    session: AsyncSession = Depends(get_session),
) -> ProfileRead:
    """Register a new profile."""
    repo = ProfileRepository(session)
    existing = await repo.get_profile_by_email(payload.email)
    if existing:
        raise HTTPException(status_code=400, detail="User with this email already exists")

    profile = await repo.create_profile(
        email=payload.email,
        hashed_password=get_password_hash(payload.password),
        display_name=payload.display_name or payload.email.split("@")[0],
    )
    logger.info("Registered profile %s", profile.id)
    return ProfileRead.model_validate(profile)


# PUBLIC_INTERFACE
@router.post(
    "/login",
    response_model=TokenPair,
    summary="Login",
    description="Authenticate using OAuth2 password form (username = email) and receive access/refresh tokens.",
)
async def login_for_tokens(
    form_data: OAuth2PasswordRequestForm = Depends(),
    session: AsyncSession = Depends(get_session),
) -> TokenPair:
    """Authenticate a profile and issue tokens."""
    repo = ProfileRepository(session)
    profile = await repo.get_profile_by_email(form_data.username)
    if not profile or not verify_password(form_data.password, profile.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    if not profile.is_active:
        raise HTTPException(status_code=400, detail="User is inactive")
    return _issue_tokens(profile)


# PUBLIC_INTERFACE
@router.post(
    "/refresh",
    response_model=TokenPair,
    summary="Refresh access token",
    description="Issue a new token pair from a valid refresh token.",
)
async def refresh_token(
    payload: RefreshRequest,
    session: AsyncSession = Depends(get_session),
) -> TokenPair:
    """Validate refresh token and issue a new access token pair."""
    try:
        claims: Dict[str, Any] = decode_token(payload.refresh_token)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid refresh token")

    if claims.get("type") != "refresh":
        raise HTTPException(status_code=401, detail="Invalid token type")

    try:
        profile_id = UUID(str(claims.get("sub")))
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid refresh token")

    profile = await ProfileRepository(session).get_profile_by_id(profile_id)
    if not profile or not profile.is_active:
        raise HTTPException(status_code=401, detail="User not found or inactive")
    return _issue_tokens(profile)


# PUBLIC_INTERFACE
@router.post(
    "/logout",
    response_model=Message,
    summary="Logout",
    description="Stateless logout. Clients should discard tokens. No server state maintained.",
)
async def logout() -> Message:
    """Acknowledge logout in stateless JWT systems."""
    return Message(message="Logged out")


# PUBLIC_INTERFACE
@router.get(
    "/me",
    response_model=ProfileRead,
    summary="Read current profile",
    description="Return the authenticated profile, including its role.",
)
async def read_current_user(user: Profile = Depends(get_current_active_user)) -> ProfileRead:
    """Return current profile."""
    return ProfileRead.model_validate(user)
