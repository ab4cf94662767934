from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from src.db.base import as_utc
from src.db.models.messaging import Message
from src.repositories.listings import ListingRepository
from src.repositories.messaging import MessageRepository, NotificationRepository
from src.repositories.profiles import ProfileRepository
from src.schemas.auth import ProfileSummary
from src.schemas.listings import ListingSummary
from src.schemas.messaging import (
    Conversation,
    MessageCreate,
    MessageDelete,
    MessageRead,
    MessageUpdate,
    ThreadedMessage,
)
from src.services.base import BaseService
from src.services.errors import ForbiddenError, NotFoundError, ValidationFailed
from src.services.notifications import push_notification
from src.services.realtime import broadcast_manager

logger = logging.getLogger(__name__)

UUID_LENGTH = 36


def parse_conversation_key(key: str) -> Tuple[UUID, UUID]:
    """Split '<listing_id>-<other_user_id>'; both halves are hyphenated UUIDs."""
    try:
        if len(key) != UUID_LENGTH * 2 + 1 or key[UUID_LENGTH] != "-":
            raise ValueError(key)
        return UUID(key[:UUID_LENGTH]), UUID(key[UUID_LENGTH + 1:])
    except ValueError:
        raise ValidationFailed(f"Invalid conversation id: {key}")


def _thread_sort_key(item: ThreadedMessage):
    return (item.thread_order or 0, as_utc(item.created_at))


def build_message_threads(messages: Sequence[Message]) -> List[ThreadedMessage]:
    """
    Nest replies under their parents.

    Roots and each reply list are ordered by thread_order then created_at.
    Replies whose parent is not in the set are dropped from the tree.
    """
    nodes: Dict[UUID, ThreadedMessage] = {}
    for message in messages:
        node = ThreadedMessage.model_validate(message)
        node.thread_root = message.parent_message_id is None
        node.depth_level = message.thread_depth or 0
        nodes[message.id] = node

    roots: List[ThreadedMessage] = []
    for message in messages:
        node = nodes[message.id]
        if message.parent_message_id is None:
            roots.append(node)
            continue
        parent = nodes.get(message.parent_message_id)
        if parent is not None:
            parent.replies.append(node)
            parent.reply_count = len(parent.replies)
            parent.has_replies = True

    for node in nodes.values():
        node.replies.sort(key=_thread_sort_key)
    roots.sort(key=_thread_sort_key)
    return roots


class MessageService(BaseService):
    """Listing conversations: sending, threading, read state, archive and delete."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = MessageRepository(session)
        self.notifications = NotificationRepository(session)
        self.profiles = ProfileRepository(session)
        self.listings = ListingRepository(session)

    # PUBLIC_INTERFACE
    async def send_message(self, sender_id: UUID, payload: MessageCreate) -> Message:
        """
        Store a message, notify the recipient in-app and push it over the realtime channel.

        Raises:
            NotFoundError: recipient, listing or parent message does not exist.
        """
        recipient = await self.profiles.get_profile_by_id(payload.recipient_id)
        if recipient is None:
            raise NotFoundError("Recipient not found")
        listing = await self.listings.get_listing(payload.listing_id)
        if listing is None:
            raise NotFoundError("Listing not found")

        message_id = uuid.uuid4()
        if payload.parent_message_id is not None:
            parent = await self.repo.get_message(payload.parent_message_id)
            if parent is None:
                raise NotFoundError("Parent message not found")
            thread_id = parent.thread_id or parent.id
            thread_depth = (parent.thread_depth or 0) + 1
            thread_order = await self.repo.next_thread_order(thread_id)
        else:
            thread_id = message_id
            thread_depth = 0
            thread_order = 0

        message = Message(
            id=message_id,
            listing_id=listing.id,
            sender_id=sender_id,
            recipient_id=recipient.id,
            message_text=payload.message_text,
            message_type=payload.message_type,
            parent_message_id=payload.parent_message_id,
            thread_id=thread_id,
            thread_depth=thread_depth,
            thread_order=thread_order,
        )
        await self.repo.add(message)

        sender = await self.profiles.get_profile_by_id(sender_id)
        sender_name = (sender.display_name if sender else None) or "Someone"
        is_reply = payload.parent_message_id is not None
        notification = self.notifications.add_notification(
            user_id=recipient.id,
            type="reply" if is_reply else "message",
            title=f"{sender_name} replied to your message" if is_reply else f"New message from {sender_name}",
            message=f"Message about {listing.year} {listing.make} {listing.model}",
            action_url=f"/messages?conversation={listing.id}",
            action_label="View Message",
            priority="medium",
            icon="reply" if is_reply else "message",
            related_entity_id=str(message_id),
            related_entity_type="message",
        )
        await self.repo.commit()
        logger.info("Message %s sent by %s to %s on listing %s", message.id, sender_id, recipient.id, listing.id)

        await broadcast_manager.publish_message(
            recipient.id, MessageRead.model_validate(message).model_dump(mode="json"), listing_id=str(listing.id)
        )
        await push_notification(notification)
        return message

    # PUBLIC_INTERFACE
    async def conversation_messages(self, user_id: UUID, listing_id: UUID) -> Dict[str, Any]:
        messages = await self.repo.list_conversation_messages(user_id, listing_id)
        return {
            "messages": [MessageRead.model_validate(m) for m in messages],
            "threaded_messages": build_message_threads(messages),
        }

    # PUBLIC_INTERFACE
    async def list_conversations(
        self,
        user_id: UUID,
        *,
        search: Optional[str] = None,
        include_archived: bool = False,
        limit: int = 20,
        offset: int = 0,
    ) -> Dict[str, Any]:
        """
        Group the caller's messages by (listing, other participant), newest activity first.
        """
        messages = await self.repo.list_user_messages(user_id)
        settings = await self.repo.get_settings_map(user_id)
        listings = await self.listings.get_listings(m.listing_id for m in messages)

        grouped: Dict[Tuple[UUID, UUID], List[Message]] = {}
        for message in messages:
            other_id = message.recipient_id if message.sender_id == user_id else message.sender_id
            grouped.setdefault((message.listing_id, other_id), []).append(message)

        needle = (search or "").strip().lower()
        selected: List[Tuple[Tuple[UUID, UUID], List[Message], bool]] = []
        for key, items in grouped.items():
            setting = settings.get(key)
            archived = bool(setting and setting.is_archived)
            if archived and not include_archived:
                continue
            if needle:
                listing = listings.get(key[0])
                title = (listing.title if listing else "") or ""
                if needle not in title.lower() and not any(needle in m.message_text.lower() for m in items):
                    continue
            selected.append((key, items, archived))

        # messages arrive newest first, so items[0] is the latest of each group
        selected.sort(key=lambda entry: as_utc(entry[1][0].created_at), reverse=True)
        total = len(selected)
        page = selected[offset: offset + limit]
        participants = await self.profiles.get_profiles(key[1] for key, _, _ in page)

        conversations = []
        for (listing_id, other_id), items, archived in page:
            listing = listings.get(listing_id)
            other = participants.get(other_id)
            is_self = other_id == user_id
            conversations.append(
                Conversation(
                    id=f"{listing_id}-{other_id}",
                    listing_id=listing_id,
                    listing=ListingSummary.model_validate(listing) if listing else None,
                    last_message=MessageRead.model_validate(items[0]),
                    unread_count=sum(1 for m in items if m.recipient_id == user_id and not m.is_read),
                    message_count=len(items),
                    participants=[user_id] if is_self else [user_id, other_id],
                    other_participant=ProfileSummary.model_validate(other) if other else None,
                    is_archived=archived,
                    is_self_conversation=is_self,
                )
            )
        return {"conversations": conversations, "total": total, "has_more": offset + len(page) < total}

    # PUBLIC_INTERFACE
    async def update_messages(self, user_id: UUID, payload: MessageUpdate) -> Dict[str, Any]:
        """Archive/unarchive conversations or mark messages read."""
        if payload.action == "archive":
            keys = [parse_conversation_key(key) for key in payload.conversation_ids or []]
            if not keys:
                raise ValidationFailed("conversation_ids is required")
            for listing_id, other_id in keys:
                await self.repo.upsert_archive(user_id, listing_id, other_id, payload.archive)
            await self.repo.commit()
            verb = "archived" if payload.archive else "unarchived"
            return {"message": f"Conversations {verb} successfully", "updated_count": len(keys)}

        if payload.conversation_id is not None:
            count = await self.repo.mark_conversation_read(user_id, payload.conversation_id)
            return {"message": "Conversation marked as read", "updated_count": count}

        if not payload.message_ids:
            raise ValidationFailed("message_ids is required")
        count = await self.repo.mark_messages_read(user_id, list(payload.message_ids))
        return {"message": "Messages marked as read", "updated_count": count}

    # PUBLIC_INTERFACE
    async def delete_messages(self, user_id: UUID, payload: MessageDelete) -> Dict[str, Any]:
        """
        Soft delete hides messages for both parties; hard delete removes only what the caller sent.

        Raises:
            ValidationFailed: neither conversation_ids nor message_ids given.
            ForbiddenError: hard-deleting a conversation containing messages from the other party.
        """
        if payload.conversation_ids:
            keys = [parse_conversation_key(key) for key in payload.conversation_ids]
            ids: List[UUID] = []
            # every conversation is checked before anything is removed
            for listing_id, other_id in keys:
                messages = await self.repo.list_conversation_pair(user_id, listing_id, other_id)
                if not payload.soft_delete and any(m.sender_id != user_id for m in messages):
                    raise ForbiddenError("Cannot delete messages sent by other users")
                ids.extend(m.id for m in messages)
            for listing_id, other_id in keys:
                await self.repo.delete_setting(user_id, listing_id, other_id)
            if payload.soft_delete:
                await self.repo.soft_delete(ids)
            else:
                await self.repo.hard_delete(ids)
            if not ids:
                # settings-only change
                await self.repo.commit()
            logger.info("Deleted %d conversations for %s (soft=%s)", len(keys), user_id, payload.soft_delete)
            return {"message": "Conversations deleted successfully", "deleted_count": len(keys)}

        if payload.message_ids:
            messages = await self.repo.list_by_ids(payload.message_ids)
            if payload.soft_delete:
                ids = [m.id for m in messages if user_id in (m.sender_id, m.recipient_id)]
                count = await self.repo.soft_delete(ids)
            else:
                ids = [m.id for m in messages if m.sender_id == user_id]
                count = await self.repo.hard_delete(ids)
            return {"message": "Messages deleted successfully", "deleted_count": count}

        raise ValidationFailed("No conversation or message IDs provided")
