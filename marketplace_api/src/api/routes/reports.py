from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.deps import get_current_active_user, get_session, require_roles
from src.db.models.profiles import STAFF_ROLES, Profile
from src.schemas.common import offset_page
from src.schemas.moderation import ReportCreate, ReportEnvelope, ReportPage, ReportRead, ReportUpdate
from src.services.errors import ValidationFailed
from src.services.moderation import ReportService

# PUBLIC_INTERFACE
router = APIRouter(
    prefix="/api/v1/reports",
    tags=["Reports"],
)


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=ReportEnvelope,
    status_code=status.HTTP_201_CREATED,
    summary="Report a message",
    description="Report a received message; the message is flagged for moderation.",
)
async def create_report(
    payload: ReportCreate,
    user: Profile = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_session),
) -> ReportEnvelope:
    report = await ReportService(session).create_report(user.id, payload)
    return ReportEnvelope(report=ReportRead.model_validate(report))


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=ReportPage,
    summary="List reports",
    description="Moderation queue, newest first.",
    dependencies=[Depends(require_roles(*STAFF_ROLES))],
)
async def list_reports(
    status_filter: Optional[str] = Query(None, alias="status", description="pending | reviewed | resolved | dismissed"),
    reason: Optional[str] = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_session),
) -> ReportPage:
    reports, total = await ReportService(session).list_reports(
        status=status_filter, reason=reason, limit=limit, offset=offset
    )
    return ReportPage(
        reports=[ReportRead.model_validate(r) for r in reports],
        pagination=offset_page(total, limit, offset),
    )


# PUBLIC_INTERFACE
@router.patch(
    "",
    response_model=ReportEnvelope,
    summary="Review report",
    description="Record a decision; resolved hides the message and dismissed approves it.",
)
async def review_report(
    payload: ReportUpdate,
    id: Optional[UUID] = Query(None, description="Report ID"),
    staff: Profile = Depends(require_roles(*STAFF_ROLES)),
    session: AsyncSession = Depends(get_session),
) -> ReportEnvelope:
    if id is None:
        raise ValidationFailed("Report ID is required")
    report = await ReportService(session).review_report(id, staff.id, payload)
    return ReportEnvelope(report=ReportRead.model_validate(report))
