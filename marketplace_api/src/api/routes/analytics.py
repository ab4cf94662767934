from __future__ import annotations

from typing import Optional, Union

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.deps import get_optional_user, get_session, require_roles
from src.db.models.profiles import STAFF_ROLES, Profile
from src.schemas.search import PopularTerms, SearchAnalyticsEvent, SearchAnalyticsRecorded, SearchSummary
from src.services.search_analytics import DEFAULT_TIMEFRAME, SearchAnalyticsService

router = APIRouter(prefix="/api/v1/analytics", tags=["Analytics"])


# PUBLIC_INTERFACE
@router.post(
    "/search",
    response_model=SearchAnalyticsRecorded,
    summary="Record search analytics",
    description="action=record_search stores an executed search; action=record_click attaches a result click.",
)
async def record_search_analytics(
    payload: SearchAnalyticsEvent,
    request: Request,
    user: Optional[Profile] = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
) -> SearchAnalyticsRecorded:
    event_id = await SearchAnalyticsService(session).record(
        payload,
        user_id=user.id if user else None,
        user_agent=request.headers.get("user-agent"),
        ip_address=request.client.host if request.client else None,
    )
    return SearchAnalyticsRecorded(analytics_id=str(event_id) if event_id else None)


# PUBLIC_INTERFACE
@router.get(
    "/search",
    response_model=Union[SearchSummary, PopularTerms],
    summary="Search analytics report",
    description="type=summary or popular_terms over timeframe 1h, 24h, 7d or 30d.",
    dependencies=[Depends(require_roles(*STAFF_ROLES))],
)
async def search_analytics_report(
    type: str = Query("summary", description="summary | popular_terms"),
    timeframe: str = Query(DEFAULT_TIMEFRAME, description="1h | 24h | 7d | 30d"),
    limit: int = Query(20, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
):
    return await SearchAnalyticsService(session).report(type, timeframe, limit)
