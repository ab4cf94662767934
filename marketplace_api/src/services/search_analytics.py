from __future__ import annotations

import logging
from datetime import timedelta
from typing import Dict, Optional, Sequence
from uuid import UUID

import pandas as pd
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.base import utcnow
from src.db.models.analytics import SearchEvent
from src.repositories.analytics import SearchEventRepository
from src.schemas.search import PopularTerm, PopularTerms, SearchAnalyticsEvent, SearchSummary
from src.services.base import BaseService
from src.services.errors import NotFoundError, ValidationFailed

logger = logging.getLogger(__name__)

TIMEFRAMES: Dict[str, timedelta] = {
    "1h": timedelta(hours=1),
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}
DEFAULT_TIMEFRAME = "24h"
ANALYTICS_TYPES = ("summary", "popular_terms")


def _parse_uuid(value: Optional[str], field: str) -> UUID:
    try:
        return UUID(str(value))
    except ValueError:
        raise ValidationFailed(f"Invalid {field}")


def events_frame(events: Sequence[SearchEvent]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "session_id": e.session_id,
                "search_query": (e.search_query or "").strip().lower(),
                "results_count": e.results_count or 0,
                "response_time_ms": e.response_time_ms or 0,
                "was_cached": bool(e.was_cached),
                "clicked": e.clicked_listing_id is not None,
            }
            for e in events
        ],
        columns=["session_id", "search_query", "results_count", "response_time_ms", "was_cached", "clicked"],
    )


def summarize_events(events: Sequence[SearchEvent], timeframe: str) -> SearchSummary:
    """Totals and rates over the given events; rates are fractions rounded to 4 places."""
    df = events_frame(events)
    if df.empty:
        return SearchSummary(timeframe=timeframe, total_searches=0)
    return SearchSummary(
        timeframe=timeframe,
        total_searches=int(len(df)),
        unique_sessions=int(df["session_id"].nunique()),
        avg_response_time_ms=round(float(df["response_time_ms"].mean()), 2),
        cache_hit_rate=round(float(df["was_cached"].mean()), 4),
        click_through_rate=round(float(df["clicked"].mean()), 4),
        zero_result_searches=int((df["results_count"] == 0).sum()),
    )


def popular_terms(events: Sequence[SearchEvent], timeframe: str, limit: int = 20) -> PopularTerms:
    """Most frequent non-empty queries with their average result counts."""
    df = events_frame(events)
    df = df[df["search_query"] != ""]
    if df.empty:
        return PopularTerms(timeframe=timeframe, terms=[])
    grouped = (
        df.groupby("search_query")
        .agg(searches=("search_query", "size"), avg_results=("results_count", "mean"))
        .reset_index()
        .sort_values(["searches", "search_query"], ascending=[False, True])
        .head(limit)
    )
    return PopularTerms(
        timeframe=timeframe,
        terms=[
            PopularTerm(term=row.search_query, count=int(row.searches), avg_results=round(float(row.avg_results), 2))
            for row in grouped.itertuples(index=False)
        ],
    )


class SearchAnalyticsService(BaseService):
    """Recording of executed searches and clicks, plus staff-facing aggregates."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = SearchEventRepository(session)

    # PUBLIC_INTERFACE
    async def record(
        self,
        payload: SearchAnalyticsEvent,
        *,
        user_id: Optional[UUID] = None,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> Optional[UUID]:
        """Dispatch on payload.action; returns the stored event id for record_search."""
        if payload.action == "record_search":
            return await self._record_search(payload, user_id, user_agent, ip_address)
        if payload.action == "record_click":
            await self._record_click(payload)
            return None
        raise ValidationFailed("Invalid action")

    async def _record_search(
        self,
        payload: SearchAnalyticsEvent,
        user_id: Optional[UUID],
        user_agent: Optional[str],
        ip_address: Optional[str],
    ) -> UUID:
        if not payload.session_id:
            raise ValidationFailed("session_id is required")
        event = SearchEvent(
            session_id=payload.session_id,
            user_id=user_id,
            search_query=payload.search_query or "",
            filters_used=payload.filters_used or {},
            results_count=payload.results_count,
            response_time_ms=payload.response_time_ms,
            page_number=payload.page_number,
            sort_by=payload.sort_by or "created_at",
            was_cached=payload.was_cached,
            user_agent=user_agent,
            ip_address=ip_address,
        )
        await self.repo.create_event(event)
        return event.id

    async def _record_click(self, payload: SearchAnalyticsEvent) -> None:
        event_id = _parse_uuid(payload.analytics_id, "analytics_id")
        listing_id = _parse_uuid(payload.clicked_listing_id, "clicked_listing_id")
        event = await self.repo.get_event(event_id)
        if event is None:
            raise NotFoundError("Search analytics record not found")
        event.clicked_listing_id = listing_id
        event.clicked_position = payload.clicked_position
        await self.repo.commit()

    # PUBLIC_INTERFACE
    async def report(self, analytics_type: str = "summary", timeframe: str = DEFAULT_TIMEFRAME, limit: int = 20):
        """Aggregate stored events over the timeframe (1h, 24h, 7d, 30d; unknown falls back to 24h)."""
        if analytics_type not in ANALYTICS_TYPES:
            raise ValidationFailed("Invalid type parameter")
        if timeframe not in TIMEFRAMES:
            timeframe = DEFAULT_TIMEFRAME
        events = await self.repo.list_since(utcnow() - TIMEFRAMES[timeframe])
        if analytics_type == "summary":
            return summarize_events(events, timeframe)
        return popular_terms(events, timeframe, limit)
