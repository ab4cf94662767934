import unittest

from sqlalchemy.dialects import sqlite

from src.schemas.search import (
    ComplexQuery,
    JoinCondition,
    PaginationSpec,
    QueryGroup,
    SearchCondition,
    SortCondition,
    TextSearchCondition,
)
from src.services.query_builder import QueryValidationError, SearchQueryBuilder


def _compile(expr):
    return expr.compile(dialect=sqlite.dialect())


class ValidateQueryTests(unittest.TestCase):
    def setUp(self):
        self.builder = SearchQueryBuilder()

    def test_simple_query_is_valid(self):
        query = ComplexQuery(
            conditions=[SearchCondition(field="make", operator="eq", value="BMW")],
            sorting=[SortCondition(field="price", order="asc")],
            pagination=PaginationSpec(page=1, limit=12),
        )
        result = self.builder.validate_query(query)
        self.assertTrue(result.is_valid)
        self.assertEqual(result.errors, [])

    def test_unknown_field_is_reported(self):
        query = ComplexQuery(conditions=[SearchCondition(field="colour", operator="eq", value="red")])
        result = self.builder.validate_query(query)
        self.assertFalse(result.is_valid)
        self.assertIn("Condition 1: unknown field 'colour'", result.errors)

    def test_in_operator_requires_list(self):
        query = ComplexQuery(conditions=[SearchCondition(field="make", operator="in", value="BMW")])
        result = self.builder.validate_query(query)
        self.assertIn("Condition 1: in requires an array value", result.errors)

    def test_value_required_except_null_checks(self):
        query = ComplexQuery(
            conditions=[
                SearchCondition(field="price", operator="gt", value=None),
                SearchCondition(field="mileage", operator="is_null"),
            ]
        )
        result = self.builder.validate_query(query)
        self.assertEqual(result.errors, ["Condition 1: value is required for operator gt"])

    def test_unsupported_operator(self):
        query = ComplexQuery(conditions=[SearchCondition(field="price", operator="between", value=[1, 2])])
        result = self.builder.validate_query(query)
        self.assertIn("Condition 1: unsupported operator 'between'", result.errors)

    def test_pagination_limits(self):
        query = ComplexQuery(pagination=PaginationSpec(page=0, limit=500))
        result = self.builder.validate_query(query)
        self.assertIn("Page must be greater than 0", result.errors)
        self.assertIn("Limit must be between 1 and 100", result.errors)

    def test_text_search_checks(self):
        query = ComplexQuery(text_search=TextSearchCondition(query="  ", fields=["price"], type="fuzzy"))
        errors = self.builder.validate_query(query).errors
        self.assertIn("Text search query cannot be empty", errors)
        self.assertIn("Invalid text search type: fuzzy", errors)
        self.assertIn("Invalid text search field: price", errors)

    def test_nesting_depth_is_limited(self):
        innermost = QueryGroup(conditions=[SearchCondition(field="year", operator="gte", value=2000)])
        group = innermost
        for _ in range(5):
            group = QueryGroup(conditions=[group], logic="OR")
        errors = self.builder.validate_query(ComplexQuery(groups=[group])).errors
        self.assertTrue(any("nested deeper than 5 levels" in err for err in errors), errors)

    def test_empty_group_is_rejected(self):
        errors = self.builder.validate_query(ComplexQuery(groups=[QueryGroup(conditions=[])])).errors
        self.assertIn("Group 1: must have at least one condition", errors)

    def test_unknown_join_table(self):
        query = ComplexQuery(joins=[JoinCondition(table="offers", type="inner")])
        errors = self.builder.validate_query(query).errors
        self.assertIn("Join 1: unknown table 'offers'", errors)

    def test_invalid_datetime_value(self):
        query = ComplexQuery(conditions=[SearchCondition(field="created_at", operator="gte", value="yesterday")])
        errors = self.builder.validate_query(query).errors
        self.assertIn("Condition 1: invalid date value for created_at", errors)

    def test_performance_warnings(self):
        query = ComplexQuery(
            conditions=[SearchCondition(field="year", operator="gte", value=2000 + i) for i in range(11)],
            pagination=PaginationSpec(page=150, limit=10),
        )
        result = self.builder.validate_query(query)
        self.assertTrue(result.is_valid)
        self.assertIn("Large number of conditions may impact performance", result.warnings)
        self.assertIn("Deep pagination may be slow", result.warnings)


class CompileTests(unittest.TestCase):
    def setUp(self):
        self.builder = SearchQueryBuilder()

    def test_text_search_keeps_quoted_phrases(self):
        expr = self.builder.compile_text_search(
            TextSearchCondition(query='"red turbo" coupe', fields=["title"])
        )
        params = sorted(_compile(expr).params.values())
        self.assertEqual(params, ["%coupe%", "%red turbo%"])

    def test_phrase_search_matches_whole_query(self):
        expr = self.builder.compile_text_search(
            TextSearchCondition(query="red turbo coupe", fields=["title"], type="phrase")
        )
        self.assertEqual(list(_compile(expr).params.values()), ["%red turbo coupe%"])

    def test_modification_condition_uses_exists(self):
        expr = self.builder.compile_condition(
            SearchCondition(field="modifications.category", operator="in", value=["engine", "exhaust"])
        )
        self.assertIn("EXISTS", str(_compile(expr)))

    def test_contained_by_compiles_to_in(self):
        expr = self.builder.compile_condition(
            SearchCondition(field="condition", operator="contained_by", value=["good", "excellent"])
        )
        self.assertIn(" IN ", str(_compile(expr)))

    def test_build_query_filters_active_and_paginates(self):
        query = ComplexQuery(
            conditions=[SearchCondition(field="make", operator="eq", value="Honda")],
            pagination=PaginationSpec(page=3, limit=10),
        )
        compiled = _compile(self.builder.build_query(query))
        sql = str(compiled)
        self.assertIn("listings.status", sql)
        self.assertIn("LIMIT", sql)
        self.assertIn("active", compiled.params.values())
        self.assertIn(20, compiled.params.values())

    def test_unknown_field_raises_validation_error(self):
        with self.assertRaises(QueryValidationError) as ctx:
            self.builder.compile_condition(SearchCondition(field="vin", operator="eq", value="x"))
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertEqual(ctx.exception.details, {"errors": ["Unknown field: vin"]})


if __name__ == "__main__":
    unittest.main()
