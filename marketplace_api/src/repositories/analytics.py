from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select

from src.db.models.analytics import SearchEvent
from .base import BaseRepository


class SearchEventRepository(BaseRepository):
    """Repository for recorded searches and clicks."""

    async def create_event(self, event: SearchEvent) -> SearchEvent:
        await self.add(event)
        await self.commit()
        return event

    async def get_event(self, event_id: UUID) -> Optional[SearchEvent]:
        return await self.scalar_one_or_none(select(SearchEvent).where(SearchEvent.id == event_id))

    async def list_since(self, since: datetime) -> List[SearchEvent]:
        stmt = select(SearchEvent).where(SearchEvent.created_at >= since).order_by(SearchEvent.created_at.desc())
        return list(await self.scalars(stmt))
