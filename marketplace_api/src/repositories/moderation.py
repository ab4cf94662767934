from __future__ import annotations

from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select

from src.db.models.moderation import MessageReport
from .base import BaseRepository


class ReportRepository(BaseRepository):
    """Repository for message reports."""

    async def get_report(self, report_id: UUID) -> Optional[MessageReport]:
        return await self.scalar_one_or_none(select(MessageReport).where(MessageReport.id == report_id))

    async def find_by_reporter(self, message_id: UUID, reporter_id: UUID) -> Optional[MessageReport]:
        stmt = select(MessageReport).where(
            MessageReport.message_id == message_id, MessageReport.reporter_id == reporter_id
        )
        return await self.scalar_one_or_none(stmt)

    async def list_reports(
        self,
        *,
        status: Optional[str],
        reason: Optional[str],
        limit: int,
        offset: int,
    ) -> Tuple[List[MessageReport], int]:
        stmt = select(MessageReport)
        if status:
            stmt = stmt.where(MessageReport.status == status)
        if reason:
            stmt = stmt.where(MessageReport.reason == reason)
        total = await self.count(stmt)
        stmt = stmt.order_by(MessageReport.created_at.desc()).offset(offset).limit(limit)
        return list(await self.scalars(stmt)), total
