from __future__ import annotations

import logging
import math
import time
from datetime import datetime, time as dtime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import Select, and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.models.listings import Listing, Modification
from src.repositories.listings import ListingRepository
from src.schemas.listings import ListingRead
from src.schemas.search import (
    AdvancedSearchRequest,
    ComplexQuery,
    DynamicSearchRequest,
    QueryAnalysis,
    SearchPagination,
    SearchParams,
)
from src.services.base import BaseService
from src.services.errors import NotFoundError, ValidationFailed
from src.services.query_builder import DEFAULT_TEXT_FIELDS, QueryValidationError, SearchQueryBuilder
from src.services.query_helpers import CommonQueryPatterns, QueryBuilderHelpers, QueryOptimizer
from src.services.search_cache import SearchCache, search_cache, similar_cache

logger = logging.getLogger(__name__)

OPTIMIZED_MAX_LIMIT = 50
SIMILAR_LIMIT = 4
SIMILAR_YEAR_RANGE = 3
SIMILAR_PRICE_RANGE = 0.3

PATTERNS = {
    "carSearch": CommonQueryPatterns.car_search,
    "advancedSearch": CommonQueryPatterns.advanced_search,
    "modificationSearch": CommonQueryPatterns.modification_search,
    "priceAnalysis": CommonQueryPatterns.price_analysis,
    "locationSearch": CommonQueryPatterns.location_search,
}


def search_pagination(page: int, limit: int, total: int) -> SearchPagination:
    """Pagination block shared by the search endpoints."""
    total_pages = math.ceil(total / limit) if limit else 0
    return SearchPagination(
        page=page,
        limit=limit,
        total_items=total,
        total_pages=total_pages,
        has_next_page=page < total_pages,
        has_prev_page=page > 1,
    )


def serialize_listings(listings: Sequence[Listing]) -> List[Dict[str, Any]]:
    """JSON-ready listing dicts; safe to keep in the search cache."""
    return [ListingRead.model_validate(listing).model_dump(mode="json") for listing in listings]


def _parse_day(value: str, *, end_of_day: bool = False) -> datetime:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise ValidationFailed(f"Invalid date: {value}")
    if len(value) <= 10:
        parsed = datetime.combine(parsed.date(), dtime.max if end_of_day else dtime.min)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def rank_similar(reference: Listing, candidates: Sequence[Listing]) -> List[Listing]:
    """
    Order similar listings: same model first, then same make, then closest price.
    """
    make = (reference.make or "").lower()
    model = (reference.model or "").lower()
    price = float(reference.price or 0)

    def _key(candidate: Listing) -> Tuple[int, int, float]:
        same_make = (candidate.make or "").lower() == make
        same_model = same_make and (candidate.model or "").lower() == model
        return (0 if same_model else 1, 0 if same_make else 1, abs(float(candidate.price or 0) - price))

    return sorted(candidates, key=_key)


class SearchService(BaseService):
    """
    Listing search: plain and advanced search, cached search, dynamic (query builder)
    search and similar listings.
    """

    def __init__(
        self,
        session: AsyncSession,
        cache: Optional[SearchCache] = None,
        similar: Optional[SearchCache] = None,
    ) -> None:
        super().__init__(session)
        self.builder = SearchQueryBuilder(session)
        self.listing_repo = ListingRepository(session)
        self.cache = cache or search_cache
        self.similar = similar or similar_cache

    # Plain search

    def _basic_statement(self, params: SearchParams) -> Select:
        stmt = select(Listing).where(Listing.status == "active")

        term = params.q.strip()
        if term:
            like = f"%{term}%"
            stmt = stmt.where(or_(*[getattr(Listing, name).ilike(like) for name in DEFAULT_TEXT_FIELDS]))
        if params.make:
            stmt = stmt.where(Listing.make.ilike(f"%{params.make}%"))
        if params.model:
            stmt = stmt.where(Listing.model.ilike(f"%{params.model}%"))
        if params.year_from:
            stmt = stmt.where(Listing.year >= params.year_from)
        if params.year_to:
            stmt = stmt.where(Listing.year <= params.year_to)
        if params.price_from:
            stmt = stmt.where(Listing.price >= params.price_from)
        if params.price_to:
            stmt = stmt.where(Listing.price <= params.price_to)

        mod_filters = []
        if params.mod_categories:
            mod_filters.append(Modification.category.in_(params.mod_categories))
        if params.specific_mods:
            mod_filters.append(or_(*[Modification.name.ilike(f"%{name}%") for name in params.specific_mods]))
        if params.mod_date_from:
            mod_filters.append(Modification.created_at >= _parse_day(params.mod_date_from))
        if params.mod_date_to:
            mod_filters.append(Modification.created_at <= _parse_day(params.mod_date_to, end_of_day=True))
        if mod_filters or params.has_modifications:
            # Listings owning at least one modification that matches every filter
            matching = select(Modification.listing_id).where(and_(*mod_filters)) if mod_filters else select(
                Modification.listing_id
            )
            stmt = stmt.where(Listing.id.in_(matching))
        return stmt

    def _basic_order(self, params: SearchParams) -> list:
        if params.sort_by == "relevance" and params.q.strip():
            return [Listing.search_boost.desc(), Listing.view_count.desc(), Listing.created_at.desc()]
        return {
            "price_low": [Listing.price.asc()],
            "price_high": [Listing.price.desc()],
            "year_new": [Listing.year.desc()],
            "year_old": [Listing.year.asc()],
        }.get(params.sort_by, [Listing.created_at.desc()])

    # PUBLIC_INTERFACE
    async def search(self, params: SearchParams) -> Dict[str, Any]:
        """
        Search active listings by free text, vehicle filters and modification filters.

        Returns:
            dict with listings, pagination and the echoed search_params.
        """
        stmt = self._basic_statement(params)
        total = await self.listing_repo.count(stmt)
        stmt = stmt.order_by(*self._basic_order(params))
        stmt = stmt.offset((params.page - 1) * params.limit).limit(params.limit)
        listings = list((await self.session.execute(stmt)).scalars().all())
        logger.info("Listing search q=%r total=%d page=%d", params.q, total, params.page)
        return {
            "listings": serialize_listings(listings),
            "pagination": search_pagination(params.page, params.limit, total).model_dump(),
            "search_params": params.model_dump(mode="json"),
        }

    # PUBLIC_INTERFACE
    async def optimized_search(self, params: SearchParams) -> Dict[str, Any]:
        """Cached variant of search with the page size capped at 50."""
        started = time.perf_counter()
        params = params.model_copy(update={
            "limit": min(params.limit, OPTIMIZED_MAX_LIMIT),
            "mod_categories": sorted(params.mod_categories),
            "specific_mods": sorted(params.specific_mods),
        })
        key = self.cache.make_key(params.model_dump(mode="json"))

        cached = await self.cache.get(key)
        if cached is not None:
            elapsed = int((time.perf_counter() - started) * 1000)
            logger.debug("Search cache hit (%dms)", elapsed)
            return {
                **cached,
                "cached": True,
                "performance": {
                    "response_time_ms": elapsed,
                    "total_items": cached["pagination"]["total_items"],
                    "cached": True,
                },
            }

        result = await self.search(params)
        await self.cache.set(key, result)
        elapsed = int((time.perf_counter() - started) * 1000)
        return {
            **result,
            "cached": False,
            "performance": {
                "response_time_ms": elapsed,
                "total_items": result["pagination"]["total_items"],
                "cached": False,
            },
        }

    # Advanced search

    def _advanced_query(self, request: AdvancedSearchRequest) -> ComplexQuery:
        builder = QueryBuilderHelpers.create()
        text = request.query.strip()
        if text:
            builder.text_search(text, type="websearch", config="english")

        filters = request.filters
        for name in ("make", "model", "condition", "transmission"):
            values = getattr(filters, name)
            if values:
                builder.where_in(name, values)
        for name, column in (("year_range", "year"), ("price_range", "price"), ("mileage_range", "mileage")):
            bounds = getattr(filters, name)
            if bounds:
                builder.where_between(column, bounds.min or None, bounds.max or None)
        if filters.location:
            builder.where_like("location", filters.location)

        if not (text and request.sorting.by == "relevance"):
            column = "created_at" if request.sorting.by == "relevance" else request.sorting.by
            builder.order_by(column, request.sorting.order)

        builder.paginate(request.pagination.page, request.pagination.limit)
        return builder.build()

    # PUBLIC_INTERFACE
    async def advanced_search(self, request: AdvancedSearchRequest) -> Dict[str, Any]:
        """Structured search with list filters, ranges and explicit sorting."""
        query = self._advanced_query(request)
        result = await self.builder.execute_query(query)
        total = result.count or 0 if request.include_total_count else 0
        return {
            "listings": serialize_listings(result.data),
            "pagination": search_pagination(request.pagination.page, request.pagination.limit, total).model_dump(),
            "search_query": request.query,
            "applied_filters": request.filters.model_dump(),
            "sorting": request.sorting.model_dump(),
        }

    # Dynamic search

    # PUBLIC_INTERFACE
    async def dynamic_search(self, request: DynamicSearchRequest) -> Dict[str, Any]:
        """
        Build a ComplexQuery from a named pattern (or take a custom one), optionally
        optimize it, then validate and execute it.

        Raises:
            QueryValidationError: when the final query is invalid.
        """
        started = time.perf_counter()
        query = request.custom_query or PATTERNS[request.type](request.params)
        if request.optimize:
            query = QueryOptimizer.optimize_query(query)

        validation = self.builder.validate_query(query)
        if not validation.is_valid:
            logger.info("Rejected dynamic search type=%s errors=%s", request.type, validation.errors)
            raise QueryValidationError(validation.errors)

        result = await self.builder.execute_query(query)
        response: Dict[str, Any] = {
            "listings": serialize_listings(result.data),
            "query": {"type": request.type, "params": request.params, "optimized": request.optimize},
        }
        if query.pagination and result.count is not None:
            response["pagination"] = search_pagination(
                query.pagination.page, query.pagination.limit, result.count
            ).model_dump()

        if request.include_analytics:
            response["analytics"] = {
                "execution_time_ms": int((time.perf_counter() - started) * 1000),
                "query_execution_time_ms": result.execution_time_ms,
                "validation": validation.model_dump(),
                "complexity": QueryOptimizer.analyze_complexity(query).model_dump(),
                "index_suggestions": QueryOptimizer.suggest_indexes(query),
                "result_count": len(result.data),
                "total_count": result.count,
            }
        if validation.warnings:
            response["warnings"] = validation.warnings
        if validation.optimizations:
            response["optimizations"] = validation.optimizations
        return response

    # PUBLIC_INTERFACE
    def analyze_query(self, query: ComplexQuery) -> QueryAnalysis:
        """Validate, score and optimize a query without executing it."""
        optimized = QueryOptimizer.optimize_query(query)
        return QueryAnalysis(
            validation=self.builder.validate_query(query),
            complexity=QueryOptimizer.analyze_complexity(query),
            index_suggestions=QueryOptimizer.suggest_indexes(query),
            optimized_query=optimized,
            has_optimizations=optimized.model_dump() != query.model_dump(),
        )

    # Similar listings

    async def _similar_step(self, stmt: Select, seen: set, limit: int) -> List[Listing]:
        stmt = stmt.where(Listing.status == "active", Listing.id.not_in(list(seen))).limit(limit)
        return list((await self.session.execute(stmt)).scalars().all())

    # PUBLIC_INTERFACE
    async def similar_listings(self, listing_id: UUID) -> Dict[str, Any]:
        """
        Up to four active listings resembling the given one.

        Candidates come from three queries run while fewer than four are collected:
        same make and model within three model years, same make with another model within
        three model years, then other makes within 30% of the price, newest first.
        """
        key = str(listing_id)
        cached = await self.similar.get(key)
        if cached is not None:
            return {"listings": cached, "cached": True}

        listing = await self.listing_repo.get_listing(listing_id)
        if listing is None:
            raise NotFoundError("Listing not found")

        make = (listing.make or "").lower()
        model = (listing.model or "").lower()
        price = float(listing.price or 0)
        year_window = and_(
            Listing.year >= listing.year - SIMILAR_YEAR_RANGE,
            Listing.year <= listing.year + SIMILAR_YEAR_RANGE,
        )
        steps = [
            select(Listing).where(func.lower(Listing.make) == make, func.lower(Listing.model) == model, year_window),
            select(Listing).where(func.lower(Listing.make) == make, func.lower(Listing.model) != model, year_window),
            select(Listing)
            .where(
                func.lower(Listing.make) != make,
                Listing.price >= price * (1 - SIMILAR_PRICE_RANGE),
                Listing.price <= price * (1 + SIMILAR_PRICE_RANGE),
            )
            .order_by(Listing.created_at.desc()),
        ]

        collected: List[Listing] = []
        seen = {listing.id}
        for stmt in steps:
            if len(collected) >= SIMILAR_LIMIT:
                break
            for candidate in await self._similar_step(stmt, seen, SIMILAR_LIMIT - len(collected)):
                seen.add(candidate.id)
                collected.append(candidate)

        data = serialize_listings(rank_similar(listing, collected))
        await self.similar.set(key, data)
        return {"listings": data, "cached": False}
