from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from .listings import ListingRead


# Query builder description types. Values are kept loose (plain strings) so that
# SearchQueryBuilder.validate_query can report every problem at once.

class SearchCondition(BaseModel):
    """Single predicate against a listing field."""
    field: str = Field(..., description="Listing field, or modifications.<field>")
    operator: str = Field(..., description="eq | neq | gt | gte | lt | lte | like | ilike | in | not_in | is_null | not_null | contains | contained_by | overlaps")
    value: Any = Field(None, description="Operand; a list for in/not_in")
    logic: str = Field("AND", description="AND | OR")


class TextSearchCondition(BaseModel):
    """Free-text match across listing text fields."""
    query: str = Field(..., description="Search terms")
    fields: Optional[List[str]] = Field(None, description="Fields to search; defaults to the listing text fields")
    type: str = Field("websearch", description="websearch | plainto | phraseto | phrase")
    config: str = Field("english", description="english | simple")


class SortCondition(BaseModel):
    field: str = Field(...)
    order: str = Field("desc", description="asc | desc")


class QueryGroup(BaseModel):
    """Conditions (or nested groups) combined with one logic operator."""
    conditions: List[Union[SearchCondition, "QueryGroup"]] = Field(...)
    logic: str = Field("AND", description="AND | OR")


class PaginationSpec(BaseModel):
    page: int = Field(1)
    limit: int = Field(12)


class JoinCondition(BaseModel):
    """Related table to join; an inner join keeps only listings that have related rows."""
    table: str = Field(...)
    type: str = Field("left", description="inner | left | right | full")
    on: str = Field("")
    select: Optional[str] = Field(None)
    alias: Optional[str] = Field(None)


class ComplexQuery(BaseModel):
    """JSON-describable listing query."""
    text_search: Optional[TextSearchCondition] = Field(None)
    conditions: List[SearchCondition] = Field(default_factory=list)
    groups: List[QueryGroup] = Field(default_factory=list)
    sorting: List[SortCondition] = Field(default_factory=list)
    pagination: Optional[PaginationSpec] = Field(None)
    joins: List[JoinCondition] = Field(default_factory=list)


QueryGroup.model_rebuild()
ComplexQuery.model_rebuild()


class QueryValidationResult(BaseModel):
    is_valid: bool = Field(...)
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    optimizations: List[str] = Field(default_factory=list)


class ComplexityReport(BaseModel):
    score: float = Field(0.0, description="0..10")
    recommendations: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


# Search endpoints

SearchSort = Literal["relevance", "price_low", "price_high", "year_new", "year_old", "newest"]


class SearchParams(BaseModel):
    """Normalized query-string parameters of GET /search (also the cache key of optimized search)."""
    q: str = Field("", description="Free text matched against title, make, model, description, engine, transmission")
    make: Optional[str] = Field(None)
    model: Optional[str] = Field(None)
    year_from: Optional[int] = Field(None)
    year_to: Optional[int] = Field(None)
    price_from: Optional[float] = Field(None)
    price_to: Optional[float] = Field(None)
    sort_by: SearchSort = Field("relevance")
    page: int = Field(1, ge=1)
    limit: int = Field(12, ge=1, le=100)
    mod_categories: List[str] = Field(default_factory=list)
    specific_mods: List[str] = Field(default_factory=list)
    mod_date_from: Optional[str] = Field(None, description="YYYY-MM-DD")
    mod_date_to: Optional[str] = Field(None, description="YYYY-MM-DD (inclusive)")
    has_modifications: bool = Field(False)


class SearchPagination(BaseModel):
    page: int = Field(...)
    limit: int = Field(...)
    total_items: int = Field(0)
    total_pages: int = Field(0)
    has_next_page: bool = Field(False)
    has_prev_page: bool = Field(False)


class SearchResults(BaseModel):
    listings: List[ListingRead] = Field(default_factory=list)
    pagination: SearchPagination = Field(...)
    search_params: Dict[str, Any] = Field(default_factory=dict)


class SearchPerformance(BaseModel):
    response_time_ms: int = Field(0)
    total_items: int = Field(0)
    cached: bool = Field(False)


class OptimizedSearchResults(SearchResults):
    cached: bool = Field(False)
    performance: SearchPerformance = Field(...)


class RangeFilter(BaseModel):
    min: Optional[float] = Field(None)
    max: Optional[float] = Field(None)


class AdvancedFilters(BaseModel):
    make: Optional[List[str]] = Field(None)
    model: Optional[List[str]] = Field(None)
    year_range: Optional[RangeFilter] = Field(None)
    price_range: Optional[RangeFilter] = Field(None)
    mileage_range: Optional[RangeFilter] = Field(None)
    condition: Optional[List[str]] = Field(None)
    transmission: Optional[List[str]] = Field(None)
    location: Optional[str] = Field(None)


class AdvancedSorting(BaseModel):
    by: Literal["price", "year", "mileage", "created_at", "relevance"] = Field("relevance")
    order: Literal["asc", "desc"] = Field("desc")


class AdvancedSearchRequest(BaseModel):
    query: str = Field("", max_length=1000)
    filters: AdvancedFilters = Field(default_factory=AdvancedFilters)
    sorting: AdvancedSorting = Field(default_factory=AdvancedSorting)
    pagination: PaginationSpec = Field(default_factory=PaginationSpec)
    include_total_count: bool = Field(True)


class AdvancedSearchResults(BaseModel):
    listings: List[ListingRead] = Field(default_factory=list)
    pagination: SearchPagination = Field(...)
    search_query: str = Field("")
    applied_filters: AdvancedFilters = Field(...)
    sorting: AdvancedSorting = Field(...)


class DynamicSearchRequest(BaseModel):
    type: Literal["carSearch", "advancedSearch", "modificationSearch", "priceAnalysis", "locationSearch"] = Field("carSearch")
    params: Dict[str, Any] = Field(default_factory=dict)
    custom_query: Optional[ComplexQuery] = Field(None)
    include_analytics: bool = Field(False)
    optimize: bool = Field(True)


class DynamicQueryInfo(BaseModel):
    type: str = Field(...)
    params: Dict[str, Any] = Field(default_factory=dict)
    optimized: bool = Field(True)


class DynamicSearchAnalytics(BaseModel):
    execution_time_ms: int = Field(0)
    query_execution_time_ms: int = Field(0)
    validation: QueryValidationResult = Field(...)
    complexity: ComplexityReport = Field(...)
    index_suggestions: List[str] = Field(default_factory=list)
    result_count: int = Field(0)
    total_count: Optional[int] = Field(None)


class DynamicSearchResults(BaseModel):
    listings: List[ListingRead] = Field(default_factory=list)
    pagination: Optional[SearchPagination] = Field(None)
    query: DynamicQueryInfo = Field(...)
    analytics: Optional[DynamicSearchAnalytics] = Field(None)
    warnings: Optional[List[str]] = Field(None)
    optimizations: Optional[List[str]] = Field(None)


class QueryAnalysisRequest(BaseModel):
    query: ComplexQuery = Field(...)


class QueryAnalysis(BaseModel):
    validation: QueryValidationResult = Field(...)
    complexity: ComplexityReport = Field(...)
    index_suggestions: List[str] = Field(default_factory=list)
    optimized_query: ComplexQuery = Field(...)
    has_optimizations: bool = Field(False)


class CacheStats(BaseModel):
    total_entries: int = Field(0)
    valid_entries: int = Field(0)
    cache_hit_rate: float = Field(0.0)
    cache_ttl_seconds: int = Field(0)
    max_cache_size: int = Field(0)


class SimilarListings(BaseModel):
    listings: List[ListingRead] = Field(default_factory=list)
    cached: bool = Field(False)


# Search analytics

class SearchAnalyticsEvent(BaseModel):
    """record_search stores a search; record_click attaches a click to a stored search."""
    action: str = Field(..., description="record_search | record_click")
    session_id: Optional[str] = Field(None)
    search_query: Optional[str] = Field("")
    filters_used: Dict[str, Any] = Field(default_factory=dict)
    results_count: int = Field(0, ge=0)
    response_time_ms: int = Field(0, ge=0)
    page_number: int = Field(1, ge=1)
    sort_by: Optional[str] = Field("created_at")
    was_cached: bool = Field(False)
    analytics_id: Optional[str] = Field(None, description="Stored search to attach a click to")
    clicked_listing_id: Optional[str] = Field(None)
    clicked_position: Optional[int] = Field(None, ge=0)


class SearchAnalyticsRecorded(BaseModel):
    success: bool = Field(True)
    analytics_id: Optional[str] = Field(None)


class SearchSummary(BaseModel):
    timeframe: str = Field(...)
    total_searches: int = Field(...)
    unique_sessions: int = Field(0)
    avg_response_time_ms: float = Field(0.0)
    cache_hit_rate: float = Field(0.0)
    click_through_rate: float = Field(0.0)
    zero_result_searches: int = Field(0)


class PopularTerm(BaseModel):
    term: str = Field(...)
    count: int = Field(0)
    avg_results: float = Field(0.0)


class PopularTerms(BaseModel):
    timeframe: str = Field(...)
    terms: List[PopularTerm] = Field(...)
