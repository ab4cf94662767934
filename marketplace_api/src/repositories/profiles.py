from __future__ import annotations

from typing import Dict, Iterable, Optional
from uuid import UUID

from sqlalchemy import func, select

from src.db.models.profiles import NotificationPreference, Profile
from .base import BaseRepository


class ProfileRepository(BaseRepository):
    """Repository for profiles and their notification preferences."""

    # Profiles
    async def get_profile_by_email(self, email: str) -> Optional[Profile]:
        stmt = select(Profile).where(func.lower(Profile.email) == email.lower())
        return await self.scalar_one_or_none(stmt)

    async def get_profile_by_id(self, profile_id: UUID) -> Optional[Profile]:
        stmt = select(Profile).where(Profile.id == profile_id)
        return await self.scalar_one_or_none(stmt)

    async def get_profiles(self, profile_ids: Iterable[UUID]) -> Dict[UUID, Profile]:
        ids = list({pid for pid in profile_ids if pid is not None})
        if not ids:
            return {}
        res = await self.scalars(select(Profile).where(Profile.id.in_(ids)))
        return {p.id: p for p in res}

    async def count_profiles(self) -> int:
        result = await self.execute(select(func.count(Profile.id)))
        return int(result.scalar_one())

    async def create_profile(
        self,
        *,
        email: str,
        hashed_password: str,
        display_name: Optional[str] = None,
        role: str = "user",
        is_active: bool = True,
    ) -> Profile:
        profile = Profile(
            email=email,
            hashed_password=hashed_password,
            display_name=display_name,
            role=role,
            is_active=is_active,
        )
        await self.add(profile)
        await self.commit()
        return profile

    async def update_profile(self, profile_id: UUID, **values) -> Optional[Profile]:
        profile = await self.get_profile_by_id(profile_id)
        if not profile:
            return None
        changed = False
        for key, value in values.items():
            if value is not None:
                setattr(profile, key, value)
                changed = True
        if changed:
            await self.commit()
        return profile

    # Notification preferences
    async def get_preferences(self, user_id: UUID) -> Optional[NotificationPreference]:
        stmt = select(NotificationPreference).where(NotificationPreference.user_id == user_id)
        return await self.scalar_one_or_none(stmt)

    async def create_preferences(self, user_id: UUID, **values) -> NotificationPreference:
        prefs = NotificationPreference(user_id=user_id, **values)
        await self.add(prefs)
        await self.commit()
        return prefs
