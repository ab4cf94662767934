from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Union

from sqlalchemy import ColumnElement, Select, and_, false, func, or_, select, true
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.models.listings import Listing, Modification
from src.schemas.search import (
    ComplexQuery,
    JoinCondition,
    QueryGroup,
    QueryValidationResult,
    SearchCondition,
    SortCondition,
    TextSearchCondition,
)
from src.services.base import BaseService
from src.services.errors import ValidationFailed

logger = logging.getLogger(__name__)

SUPPORTED_OPERATORS = (
    "eq", "neq", "gt", "gte", "lt", "lte",
    "like", "ilike", "in", "not_in",
    "is_null", "not_null", "contains",
    "contained_by", "overlaps",
)
NULL_OPERATORS = ("is_null", "not_null")
LIST_OPERATORS = ("in", "not_in")
TEXT_SEARCH_TYPES = ("websearch", "plainto", "phraseto", "phrase")
TEXT_SEARCH_CONFIGS = ("english", "simple")
JOIN_TYPES = ("inner", "left", "right", "full")
LOGIC_OPERATORS = ("AND", "OR")

QUERY_LIMITS = {
    "MAX_CONDITIONS": 50,
    "MAX_GROUPS": 20,
    "MAX_NESTING_DEPTH": 5,
    "MAX_TEXT_SEARCH_LENGTH": 1000,
    "MAX_PAGINATION_PAGE": 1000,
    "MAX_PAGINATION_LIMIT": 100,
    "DEFAULT_LIMIT": 12,
}

DEFAULT_TEXT_FIELDS = ("title", "make", "model", "description", "engine", "transmission")

_LISTING_FIELDS = (
    "id", "user_id", "title", "make", "model", "year", "price", "location",
    "description", "engine", "transmission", "mileage", "condition", "status",
    "view_count", "search_boost", "sold_at", "sold_price", "created_at", "updated_at",
)
LISTING_COLUMNS: Dict[str, Any] = {name: getattr(Listing, name) for name in _LISTING_FIELDS}
LISTING_COLUMNS["modification_count"] = (
    select(func.count(Modification.id))
    .where(Modification.listing_id == Listing.id)
    .correlate(Listing)
    .scalar_subquery()
)

# Conditions on these fields match listings having at least one such modification.
MODIFICATION_COLUMNS: Dict[str, Any] = {
    "modifications.name": Modification.name,
    "modifications.category": Modification.category,
    "modifications.description": Modification.description,
    "modifications.cost": Modification.cost,
    "modifications.created_at": Modification.created_at,
    "modifications.installed_at": Modification.installed_at,
}

TEXT_COLUMNS = ("title", "make", "model", "location", "description", "engine", "transmission", "condition", "status")
DATETIME_FIELDS = (
    "sold_at", "created_at", "updated_at", "modifications.created_at", "modifications.installed_at",
)

JOINABLE_TABLES = {
    "modifications": Listing.modifications,
    "listing_images": Listing.images,
    "profiles": Listing.seller,
}

_TERM_RE = re.compile(r'"([^"]+)"|(\S+)')


class QueryValidationError(ValidationFailed):
    """Raised when a ComplexQuery fails validation before execution."""

    def __init__(self, errors: Sequence[str]) -> None:
        super().__init__(f"Query validation failed: {', '.join(errors)}", details={"errors": list(errors)})
        self.errors = list(errors)


@dataclass
class QueryExecutionResult:
    data: List[Listing]
    count: Optional[int]
    validation: QueryValidationResult
    execution_time_ms: int = 0


def _as_list(value: Any) -> List[Any]:
    return list(value) if isinstance(value, (list, tuple, set)) else [value]


def _coerce(field_name: str, value: Any) -> Any:
    """Parse ISO strings for timestamp fields; other values pass through."""
    if field_name not in DATETIME_FIELDS:
        return value
    if isinstance(value, (list, tuple)):
        return [_coerce(field_name, v) for v in value]
    if isinstance(value, str):
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    return value


def is_group(item: Union[SearchCondition, QueryGroup]) -> bool:
    return isinstance(item, QueryGroup)


class SearchQueryBuilder(BaseService):
    """
    Compiles ComplexQuery descriptions into SQLAlchemy selects over active listings.

    Conditions with logic AND are applied one by one; conditions with logic OR are
    gathered into a single OR clause. Groups compile recursively using their own logic.
    """

    def __init__(self, session: Optional[AsyncSession] = None) -> None:
        super().__init__(session)  # type: ignore[arg-type]

    # Compilation

    def _column(self, field_name: str):
        if field_name in LISTING_COLUMNS:
            return LISTING_COLUMNS[field_name]
        if field_name in MODIFICATION_COLUMNS:
            return MODIFICATION_COLUMNS[field_name]
        raise QueryValidationError([f"Unknown field: {field_name}"])

    def compile_condition(self, condition: SearchCondition) -> ColumnElement[bool]:
        """Translate one SearchCondition into a boolean SQL expression."""
        column = self._column(condition.field)
        op = condition.operator
        value = _coerce(condition.field, condition.value)

        if op == "eq":
            expr = column == value
        elif op == "neq":
            expr = column != value
        elif op == "gt":
            expr = column > value
        elif op == "gte":
            expr = column >= value
        elif op == "lt":
            expr = column < value
        elif op == "lte":
            expr = column <= value
        elif op == "like":
            expr = column.like(value)
        elif op == "ilike":
            expr = column.ilike(value)
        elif op == "in":
            expr = column.in_(_as_list(value))
        elif op == "not_in":
            expr = column.not_in(_as_list(value))
        elif op == "is_null":
            expr = column.is_(None)
        elif op == "not_null":
            expr = column.is_not(None)
        elif op == "contains":
            # substring match on text columns
            expr = column.contains(value)
        elif op == "contained_by":
            expr = column.in_(_as_list(value))
        elif op == "overlaps":
            values = _as_list(value)
            expr = or_(*[column.contains(v) for v in values]) if values else false()
        else:
            raise QueryValidationError([f"Unsupported operator: {op}"])

        if condition.field in MODIFICATION_COLUMNS:
            return Listing.modifications.any(expr)
        return expr

    def compile_group(self, group: QueryGroup) -> ColumnElement[bool]:
        parts: List[ColumnElement[bool]] = []
        for item in group.conditions:
            if is_group(item):
                parts.append(self.compile_group(item))  # type: ignore[arg-type]
            else:
                parts.append(self.compile_condition(item))  # type: ignore[arg-type]
        if not parts:
            return true()
        return or_(*parts) if group.logic == "OR" else and_(*parts)

    def compile_text_search(self, text_search: TextSearchCondition) -> ColumnElement[bool]:
        """
        Case-insensitive match of the search terms across the configured fields.

        websearch/plainto split the query into terms (double quotes keep a phrase
        together) and every term must match at least one field; phrase/phraseto match
        the whole query as one phrase.
        """
        fields = text_search.fields or list(DEFAULT_TEXT_FIELDS)
        columns = [self._column(f) for f in fields]
        raw = text_search.query.strip()
        if text_search.type in ("phrase", "phraseto"):
            terms = [raw]
        else:
            terms = [m.group(1) or m.group(2) for m in _TERM_RE.finditer(raw)]
        clauses = [or_(*[col.ilike(f"%{term}%") for col in columns]) for term in terms if term]
        return and_(*clauses) if clauses else true()

    def _apply_filters(self, stmt: Select, query: ComplexQuery) -> Select:
        stmt = stmt.where(Listing.status == "active")

        if query.text_search:
            stmt = stmt.where(self.compile_text_search(query.text_search))

        or_parts: List[ColumnElement[bool]] = []
        for condition in query.conditions:
            if condition.logic == "OR":
                or_parts.append(self.compile_condition(condition))
            else:
                stmt = stmt.where(self.compile_condition(condition))
        if or_parts:
            stmt = stmt.where(or_(*or_parts))

        for group in query.groups:
            stmt = stmt.where(self.compile_group(group))

        for join in query.joins:
            if join.type == "inner" and join.table in JOINABLE_TABLES:
                relation = JOINABLE_TABLES[join.table]
                stmt = stmt.where(relation.has() if join.table == "profiles" else relation.any())
        return stmt

    def _sort_clauses(self, query: ComplexQuery) -> list:
        if query.sorting:
            clauses = []
            for sort in query.sorting:
                column = self._column(sort.field)
                clauses.append(column.asc() if sort.order == "asc" else column.desc())
            return clauses
        if query.text_search:
            return [Listing.search_boost.desc(), Listing.view_count.desc()]
        return [Listing.created_at.desc()]

    # PUBLIC_INTERFACE
    def build_query(self, query: ComplexQuery) -> Select:
        """Build the paginated listing select for a ComplexQuery."""
        stmt = self._apply_filters(select(Listing), query)
        stmt = stmt.order_by(*self._sort_clauses(query))
        if query.pagination:
            page = max(1, query.pagination.page)
            limit = query.pagination.limit
            stmt = stmt.offset((page - 1) * limit).limit(limit)
        return stmt

    # PUBLIC_INTERFACE
    def build_count_query(self, query: ComplexQuery) -> Select:
        """Build a COUNT(*) select with the same filters as build_query."""
        filtered = self._apply_filters(select(Listing.id), query).subquery()
        return select(func.count()).select_from(filtered)

    # Validation

    # PUBLIC_INTERFACE
    def validate_query(self, query: ComplexQuery) -> QueryValidationResult:
        """Check a ComplexQuery for structural errors and performance hints."""
        errors: List[str] = []
        warnings: List[str] = []
        optimizations: List[str] = []

        if query.text_search:
            errors.extend(self._validate_text_search(query.text_search))

        if len(query.conditions) > QUERY_LIMITS["MAX_CONDITIONS"]:
            errors.append(f"Too many conditions (max {QUERY_LIMITS['MAX_CONDITIONS']})")
        errors.extend(self._validate_conditions(query.conditions))

        if len(query.groups) > QUERY_LIMITS["MAX_GROUPS"]:
            errors.append(f"Too many groups (max {QUERY_LIMITS['MAX_GROUPS']})")
        errors.extend(self._validate_groups(query.groups))

        errors.extend(self._validate_sorting(query.sorting))
        errors.extend(self._validate_joins(query.joins))

        if query.pagination:
            if query.pagination.page < 1:
                errors.append("Page must be greater than 0")
            elif query.pagination.page > QUERY_LIMITS["MAX_PAGINATION_PAGE"]:
                errors.append(f"Page must not exceed {QUERY_LIMITS['MAX_PAGINATION_PAGE']}")
            if query.pagination.limit < 1 or query.pagination.limit > QUERY_LIMITS["MAX_PAGINATION_LIMIT"]:
                errors.append("Limit must be between 1 and 100")

        if len(query.conditions) > 10:
            warnings.append("Large number of conditions may impact performance")
            optimizations.append("Consider grouping related conditions or using different filter strategy")
        if query.text_search and len(query.conditions) > 5:
            optimizations.append("Consider adding composite indexes for frequently used filter combinations")
        if query.pagination and query.pagination.page > 100:
            warnings.append("Deep pagination may be slow")
            optimizations.append("Consider using cursor-based pagination for better performance")
        if query.text_search and any(s.field == "created_at" for s in query.sorting):
            optimizations.append(
                "Text search results are already ranked by relevance; additional sorting may reduce relevance accuracy"
            )

        return QueryValidationResult(
            is_valid=not errors, errors=errors, warnings=warnings, optimizations=optimizations
        )

    def _validate_text_search(self, text_search: TextSearchCondition) -> List[str]:
        errors: List[str] = []
        if not text_search.query or not text_search.query.strip():
            errors.append("Text search query cannot be empty")
        if text_search.query and len(text_search.query) > QUERY_LIMITS["MAX_TEXT_SEARCH_LENGTH"]:
            errors.append("Text search query too long (max 1000 characters)")
        if text_search.type not in TEXT_SEARCH_TYPES:
            errors.append(f"Invalid text search type: {text_search.type}")
        if text_search.config not in TEXT_SEARCH_CONFIGS:
            errors.append(f"Invalid text search config: {text_search.config}")
        for name in text_search.fields or []:
            if name not in TEXT_COLUMNS:
                errors.append(f"Invalid text search field: {name}")
        return errors

    def _validate_conditions(self, conditions: Sequence[SearchCondition]) -> List[str]:
        errors: List[str] = []
        for index, condition in enumerate(conditions, start=1):
            if not condition.field:
                errors.append(f"Condition {index}: field is required")
            elif condition.field not in LISTING_COLUMNS and condition.field not in MODIFICATION_COLUMNS:
                errors.append(f"Condition {index}: unknown field '{condition.field}'")
            if not condition.operator:
                errors.append(f"Condition {index}: operator is required")
                continue
            if condition.operator not in SUPPORTED_OPERATORS:
                errors.append(f"Condition {index}: unsupported operator '{condition.operator}'")
                continue
            if condition.value is None and condition.operator not in NULL_OPERATORS:
                errors.append(f"Condition {index}: value is required for operator {condition.operator}")
            if condition.operator in LIST_OPERATORS and not isinstance(condition.value, list):
                errors.append(f"Condition {index}: {condition.operator} requires an array value")
            if condition.logic not in LOGIC_OPERATORS:
                errors.append(f"Condition {index}: logic must be 'AND' or 'OR'")
            if condition.field in DATETIME_FIELDS and condition.value is not None:
                try:
                    _coerce(condition.field, condition.value)
                except (TypeError, ValueError):
                    errors.append(f"Condition {index}: invalid date value for {condition.field}")
        return errors

    def _validate_groups(self, groups: Sequence[QueryGroup], depth: int = 1) -> List[str]:
        errors: List[str] = []
        if depth > QUERY_LIMITS["MAX_NESTING_DEPTH"]:
            return [f"Groups nested deeper than {QUERY_LIMITS['MAX_NESTING_DEPTH']} levels"]
        for index, group in enumerate(groups, start=1):
            if not group.conditions:
                errors.append(f"Group {index}: must have at least one condition")
            if group.logic not in LOGIC_OPERATORS:
                errors.append(f"Group {index}: logic must be 'AND' or 'OR'")
            for item in group.conditions:
                if is_group(item):
                    nested = self._validate_groups([item], depth + 1)  # type: ignore[list-item]
                    errors.extend(f"Group {index}, Nested {err}" for err in nested)
                else:
                    nested = self._validate_conditions([item])  # type: ignore[list-item]
                    errors.extend(f"Group {index}, {err}" for err in nested)
        return errors

    def _validate_sorting(self, sorting: Sequence[SortCondition]) -> List[str]:
        errors: List[str] = []
        for index, sort in enumerate(sorting, start=1):
            if not sort.field:
                errors.append(f"Sort {index}: field is required")
            elif sort.field not in LISTING_COLUMNS:
                errors.append(f"Sort {index}: unknown field '{sort.field}'")
            if sort.order not in ("asc", "desc"):
                errors.append(f"Sort {index}: order must be 'asc' or 'desc'")
        return errors

    def _validate_joins(self, joins: Sequence[JoinCondition]) -> List[str]:
        errors: List[str] = []
        for index, join in enumerate(joins, start=1):
            if join.table not in JOINABLE_TABLES:
                errors.append(f"Join {index}: unknown table '{join.table}'")
            if join.type not in JOIN_TYPES:
                errors.append(f"Join {index}: type must be one of {', '.join(JOIN_TYPES)}")
        return errors

    # Execution

    # PUBLIC_INTERFACE
    async def execute_query(self, query: ComplexQuery) -> QueryExecutionResult:
        """
        Validate and run a ComplexQuery.

        Raises:
            QueryValidationError: when validation reports errors.
        Returns:
            QueryExecutionResult with listings, total count (when paginated),
            the validation report and elapsed milliseconds.
        """
        started = time.perf_counter()
        validation = self.validate_query(query)
        if not validation.is_valid:
            raise QueryValidationError(validation.errors)

        res = await self.session.execute(self.build_query(query))
        data = list(res.scalars().all())

        count: Optional[int] = None
        if query.pagination:
            count = int((await self.session.execute(self.build_count_query(query))).scalar_one())

        elapsed = int((time.perf_counter() - started) * 1000)
        logger.debug("Executed listing query: rows=%d count=%s elapsed_ms=%d", len(data), count, elapsed)
        return QueryExecutionResult(data=data, count=count, validation=validation, execution_time_ms=elapsed)

