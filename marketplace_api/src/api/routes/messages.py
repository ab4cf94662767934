from __future__ import annotations

from typing import Any, Dict, Optional, Union
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.deps import get_current_active_user, get_session
from src.db.models.profiles import Profile
from src.schemas.messaging import (
    ConversationList,
    ConversationMessages,
    MessageCreate,
    MessageDelete,
    MessageRead,
    MessageUpdate,
)
from src.services.messaging import MessageService

router = APIRouter(prefix="/api/v1/messages", tags=["Messages"])


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=Union[ConversationMessages, ConversationList],
    summary="Conversations or conversation messages",
    description=(
        "With conversation_id (a listing id) returns that conversation's messages flat and threaded; "
        "otherwise the caller's conversations grouped by listing and other participant."
    ),
)
async def get_messages(
    conversation_id: Optional[UUID] = Query(None, description="Listing ID of the conversation"),
    search: Optional[str] = Query(None, description="Match listing title or message text"),
    include_archived: bool = Query(False),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: Profile = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
):
    service = MessageService(session)
    if conversation_id is not None:
        return ConversationMessages(**await service.conversation_messages(user.id, conversation_id))
    result = await service.list_conversations(
        user.id, search=search, include_archived=include_archived, limit=limit, offset=offset
    )
    return ConversationList(**result)


# PUBLIC_INTERFACE
@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Send message",
    description="Sends a message or threaded reply and notifies the recipient.",
)
async def send_message(
    payload: MessageCreate,
    user: Profile = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
) -> Dict[str, Any]:
    message = await MessageService(session).send_message(user.id, payload)
    return {"message": MessageRead.model_validate(message), "success": True}


# PUBLIC_INTERFACE
@router.patch(
    "",
    summary="Archive conversations or mark read",
    description=(
        "action=archive with conversation_ids archives or unarchives; conversation_id marks a "
        "conversation read; otherwise message_ids are marked read."
    ),
)
async def update_messages(
    payload: MessageUpdate,
    user: Profile = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
) -> Dict[str, Any]:
    result = await MessageService(session).update_messages(user.id, payload)
    return {"success": True, **result}


# PUBLIC_INTERFACE
@router.delete(
    "",
    summary="Delete messages",
    description="Soft delete hides messages; hard delete only removes messages the caller sent.",
)
async def delete_messages(
    payload: MessageDelete = Body(...),
    user: Profile = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
) -> Dict[str, Any]:
    result = await MessageService(session).delete_messages(user.id, payload)
    return {"success": True, **result}
