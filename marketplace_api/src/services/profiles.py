from __future__ import annotations

import logging
import re
from typing import Optional
from uuid import UUID

from fastapi import UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.models.profiles import NotificationPreference, Profile
from src.repositories.profiles import ProfileRepository
from src.schemas.auth import NotificationPreferencesUpdate, ProfileUpdate
from src.services.base import BaseService
from src.services.errors import NotFoundError, ValidationFailed
from src.services.storage import StoredFile, store_image

logger = logging.getLogger(__name__)

QUIET_HOURS_PATTERN = re.compile(r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$")


def validate_quiet_hours(enabled: bool, start: Optional[str], end: Optional[str]) -> None:
    """Start and end are required in 24h HH:MM form when quiet hours are enabled."""
    if not enabled:
        return
    if not start or not end:
        raise ValidationFailed("Quiet hours start and end times are required when quiet hours are enabled")
    if not QUIET_HOURS_PATTERN.match(start) or not QUIET_HOURS_PATTERN.match(end):
        raise ValidationFailed("Invalid time format. Use HH:MM format (e.g., 22:00)")


class ProfileService(BaseService):
    """Self-service profile management, public profiles and notification preferences."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = ProfileRepository(session)

    # PUBLIC_INTERFACE
    async def update_me(self, profile: Profile, payload: ProfileUpdate) -> Profile:
        updated = await self.repo.update_profile(profile.id, **payload.model_dump(exclude_unset=True))
        if updated is None:
            raise NotFoundError("Profile not found")
        return updated

    # PUBLIC_INTERFACE
    async def public_profile(self, profile_id: UUID) -> Profile:
        profile = await self.repo.get_profile_by_id(profile_id)
        if profile is None or not profile.is_active:
            raise NotFoundError("Profile not found")
        return profile

    # PUBLIC_INTERFACE
    async def upload_avatar(self, profile: Profile, upload: UploadFile) -> StoredFile:
        """Store a new avatar under {profile}/avatars/ and point profile_image_url at it."""
        stored = await store_image(upload, profile.id, "avatars")
        await self.repo.update_profile(profile.id, profile_image_url=stored.url)
        logger.info("Avatar updated for %s", profile.id)
        return stored

    # PUBLIC_INTERFACE
    async def get_preferences(self, user_id: UUID) -> NotificationPreference:
        """Return preferences, creating the defaults on first access."""
        prefs = await self.repo.get_preferences(user_id)
        if prefs is None:
            prefs = await self.repo.create_preferences(user_id)
        return prefs

    # PUBLIC_INTERFACE
    async def update_preferences(self, user_id: UUID, payload: NotificationPreferencesUpdate) -> NotificationPreference:
        prefs = await self.get_preferences(user_id)
        values = payload.model_dump(exclude_unset=True)

        enabled = values.get("quiet_hours_enabled", prefs.quiet_hours_enabled)
        start = values.get("quiet_hours_start", prefs.quiet_hours_start)
        end = values.get("quiet_hours_end", prefs.quiet_hours_end)
        validate_quiet_hours(bool(enabled), start, end)

        for name, value in values.items():
            if name.startswith("quiet_hours_") or value is None:
                continue
            setattr(prefs, name, value)
        prefs.quiet_hours_enabled = bool(enabled)
        prefs.quiet_hours_start = start if enabled else None
        prefs.quiet_hours_end = end if enabled else None
        await self.repo.commit()
        return prefs
