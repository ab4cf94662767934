from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.deps import get_current_active_user, get_session, require_roles
from src.db.models.profiles import STAFF_ROLES, Profile
from src.schemas.common import CountResponse
from src.schemas.messaging import NotificationCreate, NotificationPage, NotificationRead, NotificationUpdate
from src.services.notifications import NotificationService, notification_payload

router = APIRouter(prefix="/api/v1/notifications", tags=["Notifications"])


# PUBLIC_INTERFACE
@router.get("", response_model=NotificationPage, summary="List notifications")
async def list_notifications(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    unread_only: bool = Query(False),
    type: Optional[str] = Query(None, description="message | reply | mention | system | offer"),
    user: Profile = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
) -> NotificationPage:
    result = await NotificationService(session).list_notifications(
        user.id, limit=limit, offset=offset, unread_only=unread_only, notification_type=type
    )
    return NotificationPage(**result)


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=NotificationRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create notification",
    description="Staff-only; the notification is pushed to the target's realtime channel.",
    dependencies=[Depends(require_roles(*STAFF_ROLES))],
)
async def create_notification(
    payload: NotificationCreate,
    session: AsyncSession = Depends(get_session),
) -> NotificationRead:
    notification = await NotificationService(session).create_notification(payload)
    return notification_payload(notification)


# PUBLIC_INTERFACE
@router.patch("", response_model=CountResponse, summary="Mark notifications read or unread")
async def update_notifications(
    payload: NotificationUpdate,
    user: Profile = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
) -> CountResponse:
    updated = await NotificationService(session).update_notifications(user.id, payload)
    return CountResponse(updated_count=updated)


# PUBLIC_INTERFACE
@router.delete("", response_model=CountResponse, summary="Delete notifications")
async def delete_notifications(
    ids: Optional[List[UUID]] = Query(None, description="Notification IDs"),
    delete_all: bool = Query(False),
    older_than_days: Optional[int] = Query(None, ge=0),
    user: Profile = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
) -> CountResponse:
    deleted = await NotificationService(session).delete_notifications(
        user.id, ids=ids, delete_all=delete_all, older_than_days=older_than_days
    )
    return CountResponse(deleted_count=deleted)
