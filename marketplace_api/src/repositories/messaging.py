from __future__ import annotations

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import delete, func, or_, select, update

from src.db.base import utcnow
from src.db.models.messaging import ConversationSetting, InAppNotification, Message
from .base import BaseRepository


class MessageRepository(BaseRepository):
    """Repository for messages and per-user conversation settings."""

    async def get_message(self, message_id: UUID) -> Optional[Message]:
        return await self.scalar_one_or_none(select(Message).where(Message.id == message_id))

    async def next_thread_order(self, thread_id: UUID) -> int:
        res = await self.execute(select(func.max(Message.thread_order)).where(Message.thread_id == thread_id))
        current = res.scalar_one_or_none()
        return int(current or 0) + 1

    async def create_message(self, message: Message) -> Message:
        await self.add(message)
        await self.commit()
        return message

    async def list_conversation_messages(self, user_id: UUID, listing_id: UUID) -> List[Message]:
        stmt = (
            select(Message)
            .where(
                Message.listing_id == listing_id,
                or_(Message.sender_id == user_id, Message.recipient_id == user_id),
                Message.is_deleted.is_(False),
            )
            .order_by(Message.thread_order.asc(), Message.created_at.asc())
        )
        return list(await self.scalars(stmt))

    async def list_user_messages(self, user_id: UUID) -> List[Message]:
        stmt = (
            select(Message)
            .where(or_(Message.sender_id == user_id, Message.recipient_id == user_id), Message.is_deleted.is_(False))
            .order_by(Message.created_at.desc())
        )
        return list(await self.scalars(stmt))

    async def list_by_ids(self, message_ids: Iterable[UUID]) -> List[Message]:
        ids = list(message_ids)
        if not ids:
            return []
        return list(await self.scalars(select(Message).where(Message.id.in_(ids))))

    async def list_conversation_pair(self, user_id: UUID, listing_id: UUID, other_user_id: UUID) -> List[Message]:
        stmt = select(Message).where(
            Message.listing_id == listing_id,
            or_(
                (Message.sender_id == user_id) & (Message.recipient_id == other_user_id),
                (Message.sender_id == other_user_id) & (Message.recipient_id == user_id),
            ),
        )
        return list(await self.scalars(stmt))

    async def mark_conversation_read(self, user_id: UUID, listing_id: UUID) -> int:
        stmt = (
            update(Message)
            .where(Message.listing_id == listing_id, Message.recipient_id == user_id, Message.is_read.is_(False))
            .values(is_read=True, read_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        res = await self.execute(stmt)
        await self.commit()
        return int(res.rowcount or 0)

    async def mark_messages_read(self, user_id: UUID, message_ids: List[UUID]) -> int:
        if not message_ids:
            return 0
        stmt = (
            update(Message)
            .where(Message.id.in_(message_ids), Message.recipient_id == user_id)
            .values(is_read=True, read_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        res = await self.execute(stmt)
        await self.commit()
        return int(res.rowcount or 0)

    async def soft_delete(self, message_ids: List[UUID]) -> int:
        if not message_ids:
            return 0
        stmt = (
            update(Message)
            .where(Message.id.in_(message_ids))
            .values(is_deleted=True)
            .execution_options(synchronize_session=False)
        )
        res = await self.execute(stmt)
        await self.commit()
        return int(res.rowcount or 0)

    async def hard_delete(self, message_ids: List[UUID]) -> int:
        if not message_ids:
            return 0
        stmt = delete(Message).where(Message.id.in_(message_ids)).execution_options(synchronize_session=False)
        res = await self.execute(stmt)
        await self.commit()
        return int(res.rowcount or 0)

    async def count_messages(self, *, unread_only: bool = False) -> int:
        stmt = select(func.count(Message.id))
        if unread_only:
            stmt = stmt.where(Message.is_read.is_(False))
        return int((await self.execute(stmt)).scalar_one())

    # Conversation settings
    async def get_settings_map(self, user_id: UUID) -> Dict[Tuple[UUID, UUID], ConversationSetting]:
        rows = await self.scalars(select(ConversationSetting).where(ConversationSetting.user_id == user_id))
        return {(s.listing_id, s.other_user_id): s for s in rows}

    async def upsert_archive(self, user_id: UUID, listing_id: UUID, other_user_id: UUID, archive: bool) -> ConversationSetting:
        stmt = select(ConversationSetting).where(
            ConversationSetting.user_id == user_id,
            ConversationSetting.listing_id == listing_id,
            ConversationSetting.other_user_id == other_user_id,
        )
        setting = await self.scalar_one_or_none(stmt)
        if setting is None:
            setting = ConversationSetting(user_id=user_id, listing_id=listing_id, other_user_id=other_user_id)
            await self.add(setting)
        setting.is_archived = archive
        setting.archived_at = utcnow() if archive else None
        return setting

    async def delete_setting(self, user_id: UUID, listing_id: UUID, other_user_id: UUID) -> None:
        """Drop the caller's archive state for a conversation; committed with the surrounding write."""
        await self.execute(
            delete(ConversationSetting).where(
                ConversationSetting.user_id == user_id,
                ConversationSetting.listing_id == listing_id,
                ConversationSetting.other_user_id == other_user_id,
            )
        )


class NotificationRepository(BaseRepository):
    """Repository for in-app notifications."""

    async def list_notifications(
        self,
        user_id: UUID,
        *,
        unread_only: bool,
        notification_type: Optional[str],
        limit: int,
        offset: int,
    ) -> Tuple[List[InAppNotification], int]:
        stmt = select(InAppNotification).where(InAppNotification.user_id == user_id)
        if unread_only:
            stmt = stmt.where(InAppNotification.is_read.is_(False))
        if notification_type:
            stmt = stmt.where(InAppNotification.type == notification_type)
        total = await self.count(stmt)
        stmt = stmt.order_by(InAppNotification.created_at.desc()).offset(offset).limit(limit)
        return list(await self.scalars(stmt)), total

    async def unread_count(self, user_id: UUID) -> int:
        stmt = select(func.count(InAppNotification.id)).where(
            InAppNotification.user_id == user_id, InAppNotification.is_read.is_(False)
        )
        return int((await self.execute(stmt)).scalar_one())

    def add_notification(self, **values) -> InAppNotification:
        notification = InAppNotification(**values)
        self.session.add(notification)
        return notification

    async def mark_read(self, user_id: UUID, *, ids: Optional[List[UUID]], is_read: bool) -> int:
        stmt = update(InAppNotification).where(InAppNotification.user_id == user_id)
        if ids is not None:
            stmt = stmt.where(InAppNotification.id.in_(ids))
        stmt = stmt.values(is_read=is_read, read_at=utcnow() if is_read else None).execution_options(
            synchronize_session=False
        )
        res = await self.execute(stmt)
        await self.commit()
        return int(res.rowcount or 0)

    async def delete_notifications(
        self,
        user_id: UUID,
        *,
        ids: Optional[List[UUID]] = None,
        older_than: Optional[datetime] = None,
    ) -> int:
        stmt = delete(InAppNotification).where(InAppNotification.user_id == user_id)
        if ids is not None:
            stmt = stmt.where(InAppNotification.id.in_(ids))
        if older_than is not None:
            stmt = stmt.where(InAppNotification.created_at < older_than)
        res = await self.execute(stmt.execution_options(synchronize_session=False))
        await self.commit()
        return int(res.rowcount or 0)
