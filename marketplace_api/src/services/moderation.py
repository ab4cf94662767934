from __future__ import annotations

import logging
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from src.db.base import utcnow
from src.db.models.moderation import MessageReport
from src.repositories.messaging import MessageRepository
from src.repositories.moderation import ReportRepository
from src.schemas.moderation import ReportCreate, ReportUpdate
from src.services.base import BaseService
from src.services.errors import ForbiddenError, NotFoundError, ValidationFailed

logger = logging.getLogger(__name__)

# Report decision -> moderation status of the reported message
MODERATION_OUTCOMES = {"resolved": "hidden", "dismissed": "approved"}


def moderation_status_for(report_status: str) -> str:
    return MODERATION_OUTCOMES.get(report_status, "pending")


class ReportService(BaseService):
    """Message reports raised by participants and reviewed by staff."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = ReportRepository(session)
        self.messages = MessageRepository(session)

    # PUBLIC_INTERFACE
    async def create_report(self, reporter_id: UUID, payload: ReportCreate) -> MessageReport:
        """
        Report a message and flag it for moderation.

        Raises:
            NotFoundError: message does not exist.
            ValidationFailed: own message or duplicate report.
            ForbiddenError: reporter is not a participant of the conversation.
        """
        message = await self.messages.get_message(payload.message_id)
        if message is None:
            raise NotFoundError("Message not found")
        if message.sender_id == reporter_id:
            raise ValidationFailed("Cannot report your own message")
        if message.recipient_id != reporter_id:
            raise ForbiddenError("Can only report messages in your conversations")
        if await self.repo.find_by_reporter(message.id, reporter_id) is not None:
            raise ValidationFailed("You have already reported this message")

        report = MessageReport(
            message_id=message.id,
            reporter_id=reporter_id,
            reported_user_id=message.sender_id,
            reason=payload.reason,
            description=payload.description,
            status="pending",
        )
        now = utcnow()
        message.is_flagged = True
        message.flagged_at = now
        message.flagged_by = reporter_id
        message.flag_reason = payload.reason
        message.moderation_status = "pending"
        await self.repo.add(report)
        async with self.translate_unique_violation(ValidationFailed("You have already reported this message")):
            await self.repo.commit()
        logger.info("Message %s reported by %s (reason=%s)", message.id, reporter_id, payload.reason)
        return report

    # PUBLIC_INTERFACE
    async def list_reports(
        self, *, status: Optional[str] = None, reason: Optional[str] = None, limit: int = 20, offset: int = 0
    ) -> Tuple[List[MessageReport], int]:
        return await self.repo.list_reports(status=status, reason=reason, limit=limit, offset=offset)

    # PUBLIC_INTERFACE
    async def review_report(self, report_id: UUID, reviewer_id: UUID, payload: ReportUpdate) -> MessageReport:
        """
        Record a staff decision and apply the matching moderation status to the message.
        """
        report = await self.repo.get_report(report_id)
        if report is None:
            raise NotFoundError("Report not found")

        now = utcnow()
        report.status = payload.status
        report.resolution_notes = payload.resolution_notes
        report.reviewed_at = now
        report.reviewed_by = reviewer_id

        message = await self.messages.get_message(report.message_id)
        if message is not None:
            message.moderation_status = moderation_status_for(payload.status)
            message.moderated_at = now
            message.moderated_by = reviewer_id

        await self.repo.commit()
        logger.info("Report %s set to %s by %s", report_id, payload.status, reviewer_id)
        return report
