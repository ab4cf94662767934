from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.deps import get_session, require_roles
from src.db.models.profiles import STAFF_ROLES
from src.schemas.common import MessageResponse
from src.schemas.search import (
    AdvancedSearchRequest,
    AdvancedSearchResults,
    CacheStats,
    DynamicSearchRequest,
    DynamicSearchResults,
    OptimizedSearchResults,
    QueryAnalysis,
    QueryAnalysisRequest,
    SearchParams,
    SearchResults,
    SearchSort,
    SimilarListings,
)
from src.services.errors import ValidationFailed
from src.services.search import SearchService
from src.services.search_cache import search_cache

router = APIRouter(prefix="/api/v1", tags=["Search"])


def _csv(value: Optional[str]) -> List[str]:
    return [part.strip() for part in (value or "").split(",") if part.strip()]


def search_params(
    q: str = Query("", description="Free text"),
    make: Optional[str] = Query(None),
    model: Optional[str] = Query(None),
    year_from: Optional[int] = Query(None),
    year_to: Optional[int] = Query(None),
    price_from: Optional[float] = Query(None),
    price_to: Optional[float] = Query(None),
    sort_by: SearchSort = Query("relevance"),
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    mod_categories: Optional[str] = Query(None, description="Comma-separated modification categories"),
    specific_mods: Optional[str] = Query(None, description="Comma-separated modification names"),
    mod_date_from: Optional[str] = Query(None, description="YYYY-MM-DD"),
    mod_date_to: Optional[str] = Query(None, description="YYYY-MM-DD"),
    has_modifications: bool = Query(False),
) -> SearchParams:
    """Collect the GET search query string into SearchParams."""
    return SearchParams(
        q=q,
        make=make,
        model=model,
        year_from=year_from,
        year_to=year_to,
        price_from=price_from,
        price_to=price_to,
        sort_by=sort_by,
        page=page,
        limit=limit,
        mod_categories=_csv(mod_categories),
        specific_mods=_csv(specific_mods),
        mod_date_from=mod_date_from,
        mod_date_to=mod_date_to,
        has_modifications=has_modifications,
    )


# PUBLIC_INTERFACE
@router.get(
    "/search",
    response_model=SearchResults,
    summary="Search listings",
    description="Active listings matching free text, vehicle filters and modification filters.",
)
async def search_listings(
    params: SearchParams = Depends(search_params),
    session: AsyncSession = Depends(get_session),
):
    return await SearchService(session).search(params)


# PUBLIC_INTERFACE
@router.post(
    "/search",
    response_model=AdvancedSearchResults,
    summary="Advanced search",
    description="List filters, numeric ranges, explicit sorting and pagination in a JSON body.",
)
async def advanced_search(
    payload: AdvancedSearchRequest,
    session: AsyncSession = Depends(get_session),
):
    return await SearchService(session).advanced_search(payload)


# PUBLIC_INTERFACE
@router.get(
    "/search/optimized",
    response_model=OptimizedSearchResults,
    summary="Cached search",
    description="Same parameters as GET /search; results are cached for five minutes and limit is capped at 50.",
)
async def optimized_search(
    params: SearchParams = Depends(search_params),
    session: AsyncSession = Depends(get_session),
):
    return await SearchService(session).optimized_search(params)


# PUBLIC_INTERFACE
@router.delete(
    "/search/optimized",
    summary="Manage search cache",
    description="action=clear-cache empties the cache; action=cache-stats reports occupancy and hit rate.",
    dependencies=[Depends(require_roles(*STAFF_ROLES))],
)
async def manage_search_cache(
    action: Optional[Literal["clear-cache", "cache-stats"]] = Query(None),
):
    if action == "clear-cache":
        await search_cache.clear()
        return MessageResponse(message="Search cache cleared")
    if action == "cache-stats":
        stats: CacheStats = search_cache.stats()
        return stats
    raise ValidationFailed("Invalid action")


# PUBLIC_INTERFACE
@router.post(
    "/search/dynamic",
    response_model=DynamicSearchResults,
    response_model_exclude_none=True,
    summary="Dynamic search",
    description="Build a query from a named pattern or a custom query object, optionally optimize it and run it.",
)
async def dynamic_search(
    payload: DynamicSearchRequest,
    session: AsyncSession = Depends(get_session),
):
    return await SearchService(session).dynamic_search(payload)


# PUBLIC_INTERFACE
@router.get(
    "/search/dynamic",
    response_model=DynamicSearchResults,
    response_model_exclude_none=True,
    summary="Dynamic car search from query string",
    description="Runs the carSearch pattern with parameters taken from the query string.",
)
async def dynamic_car_search(
    q: Optional[str] = Query(None),
    make: Optional[str] = Query(None),
    model: Optional[str] = Query(None),
    year_from: Optional[int] = Query(None),
    year_to: Optional[int] = Query(None),
    price_from: Optional[float] = Query(None),
    price_to: Optional[float] = Query(None),
    mileage_from: Optional[int] = Query(None),
    mileage_to: Optional[int] = Query(None),
    condition: Optional[str] = Query(None, description="Comma-separated"),
    transmission: Optional[str] = Query(None, description="Comma-separated"),
    location: Optional[str] = Query(None),
    has_modifications: bool = Query(False),
    mod_categories: Optional[str] = Query(None),
    specific_mods: Optional[str] = Query(None),
    sort_by: str = Query("relevance"),
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    analytics: bool = Query(False),
    optimize: bool = Query(True),
    session: AsyncSession = Depends(get_session),
):
    params: Dict[str, Any] = {
        "search_term": q,
        "make": make,
        "model": model,
        "year_range": {"min": year_from, "max": year_to},
        "price_range": {"min": price_from, "max": price_to},
        "mileage_range": {"min": mileage_from, "max": mileage_to},
        "condition": _csv(condition) or None,
        "transmission": _csv(transmission) or None,
        "location": location,
        "has_modifications": has_modifications or None,
        "modification_categories": _csv(mod_categories) or None,
        "specific_modifications": _csv(specific_mods) or None,
        "sort_by": sort_by,
        "page": page,
        "limit": limit,
    }
    # Drop unset values and ranges without any bound
    params = {
        key: value
        for key, value in params.items()
        if value is not None and not (isinstance(value, dict) and all(v is None for v in value.values()))
    }
    request = DynamicSearchRequest(type="carSearch", params=params, include_analytics=analytics, optimize=optimize)
    return await SearchService(session).dynamic_search(request)


# PUBLIC_INTERFACE
@router.put(
    "/search/dynamic",
    response_model=QueryAnalysis,
    summary="Analyze query",
    description="Validate, score and optimize a query without executing it.",
)
async def analyze_query(
    payload: QueryAnalysisRequest,
    session: AsyncSession = Depends(get_session),
) -> QueryAnalysis:
    return SearchService(session).analyze_query(payload.query)


# PUBLIC_INTERFACE
@router.get(
    "/listings/{listing_id}/similar",
    response_model=SimilarListings,
    summary="Similar listings",
    description="Up to four active listings: same model, then same make, then similar price.",
)
async def similar_listings(
    listing_id: UUID,
    session: AsyncSession = Depends(get_session),
):
    return await SearchService(session).similar_listings(listing_id)
