from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from src.db.base import as_utc, utcnow
from src.db.models.messaging import InAppNotification
from src.repositories.messaging import NotificationRepository
from src.repositories.profiles import ProfileRepository
from src.schemas.messaging import NotificationCreate, NotificationRead, NotificationUpdate
from src.services.base import BaseService
from src.services.errors import NotFoundError, ValidationFailed
from src.services.realtime import broadcast_manager

logger = logging.getLogger(__name__)

MONTH_ABBREVIATIONS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def time_ago(created_at: datetime, now: Optional[datetime] = None) -> str:
    """Short relative age: 'Just now', 'Nm ago', 'Nh ago', 'Nd ago', then 'Mon D'."""
    now = as_utc(now) or utcnow()
    created = as_utc(created_at)
    seconds = int((now - created).total_seconds())  # type: ignore[operator]
    if seconds < 60:
        return "Just now"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    if seconds < 86400:
        return f"{seconds // 3600}h ago"
    if seconds < 604800:
        return f"{seconds // 86400}d ago"
    return f"{MONTH_ABBREVIATIONS[created.month - 1]} {created.day}"  # type: ignore[union-attr]


def notification_payload(notification: InAppNotification) -> NotificationRead:
    item = NotificationRead.model_validate(notification)
    item.time_ago = time_ago(notification.created_at)
    return item


async def push_notification(notification: InAppNotification) -> None:
    """Publish a committed notification to its owner's realtime topic."""
    await broadcast_manager.publish_notification(
        notification.user_id, notification_payload(notification).model_dump(mode="json")
    )


class NotificationService(BaseService):
    """In-app notifications of the calling profile."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = NotificationRepository(session)
        self.profiles = ProfileRepository(session)

    # PUBLIC_INTERFACE
    async def list_notifications(
        self,
        user_id: UUID,
        *,
        limit: int = 50,
        offset: int = 0,
        unread_only: bool = False,
        notification_type: Optional[str] = None,
    ) -> Dict[str, Any]:
        items, total = await self.repo.list_notifications(
            user_id, unread_only=unread_only, notification_type=notification_type, limit=limit, offset=offset
        )
        return {
            "notifications": [notification_payload(item) for item in items],
            "unread_count": await self.repo.unread_count(user_id),
            "total": total,
            "has_more": offset + len(items) < total,
        }

    # PUBLIC_INTERFACE
    async def create_notification(self, payload: NotificationCreate) -> InAppNotification:
        """Create a notification for payload.user_id and push it over the realtime channel."""
        if await self.profiles.get_profile_by_id(payload.user_id) is None:
            raise NotFoundError("Target user not found")
        notification = self.repo.add_notification(**payload.model_dump())
        await self.repo.commit()
        await push_notification(notification)
        logger.info("Notification %s created for %s", notification.id, payload.user_id)
        return notification

    # PUBLIC_INTERFACE
    async def update_notifications(self, user_id: UUID, payload: NotificationUpdate) -> int:
        if payload.mark_all_read:
            return await self.repo.mark_read(user_id, ids=None, is_read=payload.is_read)
        if payload.notification_ids:
            return await self.repo.mark_read(user_id, ids=list(payload.notification_ids), is_read=payload.is_read)
        raise ValidationFailed("Must specify notification_ids or mark_all_read")

    # PUBLIC_INTERFACE
    async def delete_notifications(
        self,
        user_id: UUID,
        *,
        ids: Optional[List[UUID]] = None,
        delete_all: bool = False,
        older_than_days: Optional[int] = None,
    ) -> int:
        """Delete all, older than N days, or the given ids (first matching mode wins)."""
        if delete_all:
            return await self.repo.delete_notifications(user_id)
        if older_than_days is not None:
            return await self.repo.delete_notifications(
                user_id, older_than=utcnow() - timedelta(days=older_than_days)
            )
        if ids:
            return await self.repo.delete_notifications(user_id, ids=ids)
        raise ValidationFailed("Must specify notification IDs, delete_all, or older_than_days")
