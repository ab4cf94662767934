from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from .auth import ProfileSummary
from .listings import ListingSummary


class MessageCreate(BaseModel):
    """Send a message about a listing."""
    listing_id: UUID = Field(..., description="Listing the conversation is about")
    recipient_id: UUID = Field(..., description="Recipient profile")
    message_text: str = Field(..., min_length=1, max_length=5000)
    message_type: Literal["text", "inquiry", "offer"] = Field("text")
    parent_message_id: Optional[UUID] = Field(None, description="Message being replied to")
    thread_id: Optional[UUID] = Field(None, description="Thread root; derived from the parent when omitted")


class MessageRead(BaseModel):
    id: UUID = Field(...)
    listing_id: UUID = Field(...)
    sender_id: UUID = Field(...)
    recipient_id: UUID = Field(...)
    message_text: str = Field(...)
    message_type: str = Field(...)
    is_read: bool = Field(False)
    read_at: Optional[datetime] = Field(None)
    parent_message_id: Optional[UUID] = Field(None)
    thread_id: Optional[UUID] = Field(None)
    thread_depth: int = Field(0)
    thread_order: int = Field(0)
    is_flagged: bool = Field(False)
    moderation_status: Optional[str] = Field(None)
    created_at: datetime = Field(...)

    class Config:
        from_attributes = True


class ThreadedMessage(MessageRead):
    """Message with nested replies."""
    replies: List["ThreadedMessage"] = Field(default_factory=list)
    reply_count: int = Field(0)
    thread_root: bool = Field(False)
    has_replies: bool = Field(False)
    depth_level: int = Field(0)


ThreadedMessage.model_rebuild()


class ConversationMessages(BaseModel):
    messages: List[MessageRead] = Field(...)
    threaded_messages: List[ThreadedMessage] = Field(default_factory=list)


class Conversation(BaseModel):
    """Messages between the caller and one other profile about one listing."""
    id: str = Field(..., description="'<listing_id>-<other_user_id>'")
    listing_id: UUID = Field(...)
    listing: Optional[ListingSummary] = Field(None)
    last_message: MessageRead = Field(...)
    unread_count: int = Field(0)
    message_count: int = Field(0)
    participants: List[UUID] = Field(default_factory=list)
    other_participant: Optional[ProfileSummary] = Field(None)
    is_archived: bool = Field(False)
    is_self_conversation: bool = Field(False)


class ConversationList(BaseModel):
    conversations: List[Conversation] = Field(...)
    total: int = Field(0)
    has_more: bool = Field(False)


class MessageUpdate(BaseModel):
    """Archive conversations or mark messages read."""
    action: Optional[Literal["archive"]] = Field(None)
    conversation_ids: Optional[List[str]] = Field(None, description="'<listing_id>-<other_user_id>' keys")
    archive: bool = Field(True)
    conversation_id: Optional[UUID] = Field(None, description="Listing whose received messages are marked read")
    message_ids: Optional[List[UUID]] = Field(None)


class MessageDelete(BaseModel):
    conversation_ids: Optional[List[str]] = Field(None)
    message_ids: Optional[List[UUID]] = Field(None)
    soft_delete: bool = Field(True)


class NotificationCreate(BaseModel):
    """Create an in-app notification for a profile."""
    user_id: UUID = Field(..., description="Target profile")
    type: Literal["message", "reply", "mention", "system", "offer"] = Field("system")
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=2000)
    action_url: Optional[str] = Field(None)
    action_label: Optional[str] = Field(None)
    priority: Literal["low", "medium", "high"] = Field("medium")
    icon: Optional[str] = Field(None)
    expires_at: Optional[datetime] = Field(None)
    related_entity_id: Optional[str] = Field(None)
    related_entity_type: Optional[str] = Field(None)


class NotificationRead(BaseModel):
    id: UUID = Field(...)
    user_id: UUID = Field(...)
    type: str = Field(...)
    title: str = Field(...)
    message: str = Field(...)
    action_url: Optional[str] = Field(None)
    action_label: Optional[str] = Field(None)
    priority: str = Field(...)
    icon: Optional[str] = Field(None)
    is_read: bool = Field(False)
    read_at: Optional[datetime] = Field(None)
    expires_at: Optional[datetime] = Field(None)
    related_entity_id: Optional[str] = Field(None)
    related_entity_type: Optional[str] = Field(None)
    created_at: datetime = Field(...)
    time_ago: Optional[str] = Field(None, description="Relative age, e.g. '5m ago'")

    class Config:
        from_attributes = True


class NotificationPage(BaseModel):
    notifications: List[NotificationRead] = Field(default_factory=list)
    unread_count: int = Field(0)
    total: int = Field(0)
    has_more: bool = Field(False)


class NotificationUpdate(BaseModel):
    notification_ids: Optional[List[UUID]] = Field(None)
    mark_all_read: bool = Field(False)
    is_read: bool = Field(True)
