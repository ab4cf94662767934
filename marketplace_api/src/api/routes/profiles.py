from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict
from uuid import UUID

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.deps import get_current_active_user, get_session
from src.db.models.profiles import Profile
from src.schemas.auth import (
    NotificationPreferencesRead,
    NotificationPreferencesUpdate,
    ProfilePublic,
    ProfileRead,
    ProfileUpdate,
)
from src.services.profiles import ProfileService

router = APIRouter(prefix="/api/v1/profiles", tags=["Profiles"])


# PUBLIC_INTERFACE
@router.get("/me", response_model=ProfileRead, summary="Read own profile")
async def read_my_profile(user: Profile = Depends(get_current_active_user)) -> ProfileRead:
    return ProfileRead.model_validate(user)


# PUBLIC_INTERFACE
@router.patch(
    "/me",
    response_model=ProfileRead,
    summary="Update own profile",
    description="Update display name, bio, location or phone. Role and active flag are admin-managed.",
)
async def update_my_profile(
    payload: ProfileUpdate,
    user: Profile = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
) -> ProfileRead:
    profile = await ProfileService(session).update_me(user, payload)
    return ProfileRead.model_validate(profile)


# PUBLIC_INTERFACE
@router.post(
    "/me/avatar",
    summary="Upload avatar",
    description="Store a JPEG, PNG or WebP avatar (max 5MB) and set it as the profile image.",
)
async def upload_avatar(
    file: UploadFile = File(...),
    user: Profile = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
) -> Dict[str, Any]:
    stored = await ProfileService(session).upload_avatar(user, file)
    return {"success": True, "image": asdict(stored), "profile_image_url": stored.url}


# PUBLIC_INTERFACE
@router.get(
    "/me/notification-preferences",
    response_model=NotificationPreferencesRead,
    summary="Read notification preferences",
    description="Defaults are created on first access.",
)
async def read_notification_preferences(
    user: Profile = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
) -> NotificationPreferencesRead:
    prefs = await ProfileService(session).get_preferences(user.id)
    return NotificationPreferencesRead.model_validate(prefs)


# PUBLIC_INTERFACE
@router.put(
    "/me/notification-preferences",
    response_model=NotificationPreferencesRead,
    summary="Update notification preferences",
    description="Quiet hours need HH:MM start and end when enabled; disabling clears them.",
)
async def update_notification_preferences(
    payload: NotificationPreferencesUpdate,
    user: Profile = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
) -> NotificationPreferencesRead:
    prefs = await ProfileService(session).update_preferences(user.id, payload)
    return NotificationPreferencesRead.model_validate(prefs)


# PUBLIC_INTERFACE
@router.get("/{profile_id}", response_model=ProfilePublic, summary="Read public profile")
async def read_public_profile(
    profile_id: UUID,
    session: AsyncSession = Depends(get_session),
) -> ProfilePublic:
    profile = await ProfileService(session).public_profile(profile_id)
    return ProfilePublic.model_validate(profile)
