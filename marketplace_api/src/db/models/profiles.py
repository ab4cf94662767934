from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from src.db.base import Base, UUIDPkMixin, TimestampMixin

PROFILE_ROLES = ("user", "moderator", "admin")
STAFF_ROLES = ("admin", "moderator")


class Profile(UUIDPkMixin, TimestampMixin, Base):
    """Marketplace account; buyers and sellers share the same profile."""
    __tablename__ = "profiles"

    email: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    hashed_password: Mapped[str] = mapped_column(Text, nullable=False)
    display_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    profile_image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    location: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    role: Mapped[str] = mapped_column(Text, nullable=False, default="user", server_default="user")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


class NotificationPreference(UUIDPkMixin, TimestampMixin, Base):
    """Per-profile notification channel toggles and quiet hours."""
    __tablename__ = "notification_preferences"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    in_app_new_messages: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    in_app_replies: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    in_app_mentions: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    email_new_messages: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    email_replies: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    email_mentions: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    email_daily_digest: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    push_new_messages: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    push_replies: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    push_mentions: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    quiet_hours_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    quiet_hours_start: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    quiet_hours_end: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
