from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from src.schemas.search import (
    ComplexQuery,
    JoinCondition,
    PaginationSpec,
    QueryGroup,
    SearchCondition,
    SortCondition,
    TextSearchCondition,
    ComplexityReport,
)
from src.services.query_builder import DEFAULT_TEXT_FIELDS, QUERY_LIMITS

ConditionItem = Union[SearchCondition, QueryGroup]


class QueryBuilderHelpers:
    """
    Fluent builder for ComplexQuery objects.

    Example:
        query = (
            QueryBuilderHelpers.create()
            .text_search("BMW 3 Series")
            .where("make", "eq", "BMW")
            .where_between("year", 2018, 2023)
            .order_by("year", "desc")
            .paginate(1, 12)
            .build()
        )
    """

    def __init__(self) -> None:
        self._query = ComplexQuery()

    @classmethod
    def create(cls) -> "QueryBuilderHelpers":
        return cls()

    def text_search(
        self,
        search_term: str,
        fields: Optional[List[str]] = None,
        type: Optional[str] = None,
        config: Optional[str] = None,
    ) -> "QueryBuilderHelpers":
        options: Dict[str, Any] = {"query": search_term, "fields": fields}
        if type:
            options["type"] = type
        if config:
            options["config"] = config
        self._query.text_search = TextSearchCondition(**options)
        return self

    def where(self, field: str, operator: str, value: Any, logic: str = "AND") -> "QueryBuilderHelpers":
        self._query.conditions.append(SearchCondition(field=field, operator=operator, value=value, logic=logic))
        return self

    def where_in(self, field: str, values: List[Any]) -> "QueryBuilderHelpers":
        return self.where(field, "in", list(values))

    def where_between(self, field: str, minimum: Any = None, maximum: Any = None) -> "QueryBuilderHelpers":
        """Add gte/lte bounds; a missing bound is skipped."""
        if minimum is not None:
            self.where(field, "gte", minimum)
        if maximum is not None:
            self.where(field, "lte", maximum)
        return self

    def where_like(self, field: str, pattern: str, case_sensitive: bool = False) -> "QueryBuilderHelpers":
        return self.where(field, "like" if case_sensitive else "ilike", f"%{pattern}%")

    def where_null(self, field: str) -> "QueryBuilderHelpers":
        return self.where(field, "is_null", None)

    def where_not_null(self, field: str) -> "QueryBuilderHelpers":
        return self.where(field, "not_null", None)

    def where_group(self, logic: str, builder_fn: Callable[["GroupBuilder"], Any]) -> "QueryBuilderHelpers":
        group = GroupBuilder(logic)
        builder_fn(group)
        self._query.groups.append(group.build())
        return self

    def order_by(self, field: str, order: str = "desc") -> "QueryBuilderHelpers":
        self._query.sorting.append(SortCondition(field=field, order=order))
        return self

    def paginate(self, page: int, limit: int = QUERY_LIMITS["DEFAULT_LIMIT"]) -> "QueryBuilderHelpers":
        self._query.pagination = PaginationSpec(page=page, limit=limit)
        return self

    def join(
        self,
        table: str,
        select: str,
        type: str = "left",
        alias: Optional[str] = None,
        on: str = "",
    ) -> "QueryBuilderHelpers":
        self._query.joins.append(JoinCondition(table=table, select=select, type=type, alias=alias, on=on))
        return self

    def build(self) -> ComplexQuery:
        return self._query


class GroupBuilder:
    """Collects conditions and nested groups for QueryBuilderHelpers.where_group."""

    def __init__(self, logic: str) -> None:
        self.logic = logic
        self.conditions: List[ConditionItem] = []

    def where(self, field: str, operator: str, value: Any) -> "GroupBuilder":
        self.conditions.append(SearchCondition(field=field, operator=operator, value=value))
        return self

    def group(self, logic: str, builder_fn: Callable[["GroupBuilder"], Any]) -> "GroupBuilder":
        nested = GroupBuilder(logic)
        builder_fn(nested)
        self.conditions.append(nested.build())
        return self

    def build(self) -> QueryGroup:
        return QueryGroup(conditions=list(self.conditions), logic=self.logic)


def _listify(value: Any) -> List[Any]:
    if isinstance(value, (list, tuple)):
        return list(value)
    if isinstance(value, str) and "," in value:
        return [v.strip() for v in value.split(",") if v.strip()]
    return [value]


def _range(params: Mapping[str, Any], key: str) -> Dict[str, Any]:
    value = params.get(key) or {}
    return value if isinstance(value, dict) else {}


def _paginate_if_requested(builder: QueryBuilderHelpers, params: Mapping[str, Any]) -> None:
    if params.get("page") or params.get("limit"):
        builder.paginate(int(params.get("page") or 1), int(params.get("limit") or QUERY_LIMITS["DEFAULT_LIMIT"]))


class CommonQueryPatterns:
    """Predefined ComplexQuery shapes used by dynamic search."""

    SORT_OPTIONS = {
        "price_low": ("price", "asc"),
        "price_high": ("price", "desc"),
        "year_new": ("year", "desc"),
        "year_old": ("year", "asc"),
        "newest": ("created_at", "desc"),
    }

    @staticmethod
    def car_search(params: Mapping[str, Any]) -> ComplexQuery:
        """
        Standard vehicle search.

        Params: search_term, make, model, year_range, price_range, mileage_range,
        condition, transmission, location, has_modifications, modification_categories,
        specific_modifications, sort_by, page, limit.
        """
        builder = QueryBuilderHelpers.create()
        term = (params.get("search_term") or "").strip()
        if term:
            builder.text_search(term, type="websearch")

        for key in ("make", "model", "condition", "transmission"):
            if params.get(key):
                builder.where_in(key, _listify(params[key]))

        for key, column in (("year_range", "year"), ("price_range", "price"), ("mileage_range", "mileage")):
            bounds = _range(params, key)
            builder.where_between(column, bounds.get("min"), bounds.get("max"))

        if params.get("location"):
            builder.where_like("location", params["location"])

        if params.get("has_modifications"):
            builder.where("modification_count", "gt", 0)
        if params.get("modification_categories"):
            builder.where_in("modifications.category", _listify(params["modification_categories"]))
        specific = params.get("specific_modifications")
        if specific:
            names = _listify(specific)
            builder.where_group("OR", lambda g: [g.where("modifications.name", "ilike", f"%{n}%") for n in names])

        sort_by = params.get("sort_by") or "relevance"
        if sort_by in CommonQueryPatterns.SORT_OPTIONS:
            builder.order_by(*CommonQueryPatterns.SORT_OPTIONS[sort_by])
        elif not term:
            builder.order_by("created_at", "desc")

        _paginate_if_requested(builder, params)
        return builder.build()

    @staticmethod
    def advanced_search(params: Mapping[str, Any]) -> ComplexQuery:
        """
        Boolean search: must_have (AND), should_have (OR group), must_not (exclusions), ranges.
        """
        builder = QueryBuilderHelpers.create()
        text = (params.get("text_search") or "").strip()
        if text:
            builder.text_search(text)

        for field, value in (params.get("must_have") or {}).items():
            if isinstance(value, list):
                builder.where_in(field, value)
            else:
                builder.where(field, "eq", value)

        should_have = params.get("should_have") or []
        if should_have:
            def _fill(group: GroupBuilder) -> None:
                for conditions in should_have:
                    for field, value in conditions.items():
                        for v in (value if isinstance(value, list) else [value]):
                            group.where(field, "eq", v)
            builder.where_group("OR", _fill)

        for field, value in (params.get("must_not") or {}).items():
            if isinstance(value, list):
                builder.where(field, "not_in", value)
            else:
                builder.where(field, "neq", value)

        for field, bounds in (params.get("ranges") or {}).items():
            builder.where_between(field, (bounds or {}).get("min"), (bounds or {}).get("max"))

        for sort in params.get("sorting") or []:
            builder.order_by(sort.get("field", ""), sort.get("order", "desc"))

        _paginate_if_requested(builder, params)
        return builder.build()

    @staticmethod
    def modification_search(params: Mapping[str, Any]) -> ComplexQuery:
        """Listings filtered by their modifications (categories, names, install window, count)."""
        builder = QueryBuilderHelpers.create()
        term = (params.get("search_term") or "").strip()
        if term:
            builder.text_search(term)

        if params.get("has_modifications"):
            builder.where("modification_count", "gt", 0)
        if params.get("min_modification_count") is not None:
            builder.where("modification_count", "gte", int(params["min_modification_count"]))

        categories = params.get("categories")
        specific = params.get("specific_mods")
        date_range = _range(params, "date_range")
        if categories:
            builder.where_in("modifications.category", _listify(categories))
        if specific:
            names = _listify(specific)
            builder.where_group("OR", lambda g: [g.where("modifications.name", "ilike", f"%{n}%") for n in names])
        if date_range.get("from"):
            builder.where("modifications.created_at", "gte", date_range["from"])
        if date_range.get("to"):
            builder.where("modifications.created_at", "lte", date_range["to"])
        if categories or specific or date_range:
            builder.join("modifications", "name, description, category, created_at", type="inner")

        _paginate_if_requested(builder, params)
        return builder.build()

    @staticmethod
    def price_analysis(params: Mapping[str, Any]) -> ComplexQuery:
        builder = QueryBuilderHelpers.create()
        if params.get("make"):
            builder.where("make", "eq", params["make"])
        if params.get("model"):
            builder.where("model", "eq", params["model"])
        bounds = _range(params, "year_range")
        builder.where_between("year", bounds.get("min"), bounds.get("max"))
        builder.order_by("price", "desc")
        _paginate_if_requested(builder, params)
        return builder.build()

    @staticmethod
    def location_search(params: Mapping[str, Any]) -> ComplexQuery:
        builder = QueryBuilderHelpers.create()
        term = (params.get("search_term") or "").strip()
        if term:
            builder.text_search(term)
        for key in ("location", "state", "city"):
            if params.get(key):
                builder.where_like("location", params[key])
        # Distance ordering needs coordinates; newest first until listings carry them.
        builder.order_by("created_at", "desc")
        _paginate_if_requested(builder, params)
        return builder.build()


class QueryOptimizer:
    """Complexity scoring, index hints and safe rewrites for ComplexQuery."""

    @staticmethod
    def analyze_complexity(query: ComplexQuery) -> ComplexityReport:
        complexity = 0.0
        recommendations: List[str] = []
        warnings: List[str] = []

        if query.text_search:
            complexity += 2
            if query.text_search.fields and len(query.text_search.fields) > 5:
                complexity += 2
                warnings.append("Searching too many fields may impact performance")
                recommendations.append("Consider limiting search fields to most relevant ones")

        if query.conditions:
            complexity += len(query.conditions) * 0.5
            if len(query.conditions) > 10:
                complexity += 3
                warnings.append("Large number of conditions may slow down query")
                recommendations.append("Consider grouping related conditions or using different approach")
            for condition in query.conditions:
                if (
                    condition.operator in ("like", "ilike")
                    and isinstance(condition.value, str)
                    and condition.value.startswith("%")
                ):
                    complexity += 1
                    warnings.append(f"Leading wildcard in LIKE operation for field '{condition.field}' is expensive")
                    recommendations.append(f"Consider full-text search instead of LIKE for field '{condition.field}'")

        if query.groups:
            complexity += len(query.groups) * 1.5

            def _walk(group: QueryGroup, depth: int = 0) -> None:
                nonlocal complexity
                if depth > 3:
                    complexity += 5
                    warnings.append("Deep nesting in query groups can impact performance")
                    recommendations.append("Consider flattening nested groups or simplifying logic")
                for item in group.conditions:
                    if isinstance(item, QueryGroup):
                        _walk(item, depth + 1)

            for group in query.groups:
                _walk(group)

        if query.pagination and query.pagination.page > 100:
            complexity += 2
            warnings.append("Deep pagination is inefficient")
            recommendations.append("Consider cursor-based pagination for better performance")

        if len(query.sorting) > 3:
            complexity += 1
            warnings.append("Multiple sort conditions may impact performance")
            recommendations.append("Consider reducing number of sort fields")

        return ComplexityReport(score=min(complexity, 10.0), recommendations=recommendations, warnings=warnings)

    @staticmethod
    def suggest_indexes(query: ComplexQuery) -> List[str]:
        suggestions: List[str] = []
        fields = list(dict.fromkeys(c.field for c in query.conditions))
        if len(fields) > 1:
            suggestions.append(f"Composite index on ({', '.join(fields)}) for filter combinations")
        for name in fields:
            suggestions.append(f"Index on '{name}' for filtering")
        for sort in query.sorting:
            suggestions.append(f"Index on '{sort.field}' for sorting")
        if query.text_search:
            for name in query.text_search.fields or DEFAULT_TEXT_FIELDS:
                suggestions.append(f"Trigram GIN index on '{name}' for text search")
        return list(dict.fromkeys(suggestions))

    @staticmethod
    def optimize_query(query: ComplexQuery) -> ComplexQuery:
        """
        Return an optimized deep copy.

        With more than 5 conditions, three or more eq conditions on the same field
        (sharing the same logic) collapse into one `in`. Pages beyond 100 cap the limit at 10.
        """
        optimized = query.model_copy(deep=True)

        if len(optimized.conditions) > 5:
            by_field: Dict[str, List[SearchCondition]] = {}
            for condition in optimized.conditions:
                by_field.setdefault(condition.field, []).append(condition)
            for field, conditions in by_field.items():
                logics = {c.logic for c in conditions}
                if len(conditions) > 2 and all(c.operator == "eq" for c in conditions) and len(logics) == 1:
                    optimized.conditions = [
                        c for c in optimized.conditions if not (c.field == field and c.operator == "eq")
                    ]
                    optimized.conditions.append(
                        SearchCondition(field=field, operator="in", value=[c.value for c in conditions], logic=logics.pop())
                    )

        if optimized.pagination and optimized.pagination.page > 100:
            optimized.pagination.limit = min(optimized.pagination.limit, 10)

        return optimized
