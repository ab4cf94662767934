import unittest

from src.schemas.search import ComplexQuery, PaginationSpec, QueryGroup, SearchCondition, TextSearchCondition
from src.services.query_builder import SearchQueryBuilder
from src.services.query_helpers import CommonQueryPatterns, QueryBuilderHelpers, QueryOptimizer


class QueryBuilderHelpersTests(unittest.TestCase):
    def test_fluent_builder_collects_parts(self):
        query = (
            QueryBuilderHelpers.create()
            .text_search("BMW 3 Series")
            .where("make", "eq", "BMW")
            .where_between("year", 2018, 2023)
            .where_like("location", "Austin")
            .order_by("year", "desc")
            .paginate(2, 24)
            .build()
        )
        self.assertEqual(query.text_search.query, "BMW 3 Series")
        self.assertEqual(
            [(c.field, c.operator, c.value) for c in query.conditions],
            [
                ("make", "eq", "BMW"),
                ("year", "gte", 2018),
                ("year", "lte", 2023),
                ("location", "ilike", "%Austin%"),
            ],
        )
        self.assertEqual(query.sorting[0].field, "year")
        self.assertEqual((query.pagination.page, query.pagination.limit), (2, 24))

    def test_where_between_skips_missing_bound(self):
        query = QueryBuilderHelpers.create().where_between("price", None, 20000).build()
        self.assertEqual([(c.operator, c.value) for c in query.conditions], [("lte", 20000)])

    def test_where_group_nests_groups(self):
        query = (
            QueryBuilderHelpers.create()
            .where_group(
                "OR",
                lambda g: g.where("make", "eq", "Honda").group("AND", lambda n: n.where("year", "gte", 2015)),
            )
            .build()
        )
        group = query.groups[0]
        self.assertEqual(group.logic, "OR")
        self.assertIsInstance(group.conditions[1], QueryGroup)
        self.assertEqual(group.conditions[1].conditions[0].field, "year")

    def test_case_sensitive_like(self):
        query = QueryBuilderHelpers.create().where_like("title", "Turbo", case_sensitive=True).build()
        self.assertEqual(query.conditions[0].operator, "like")


class CommonQueryPatternsTests(unittest.TestCase):
    def test_car_search_builds_valid_query(self):
        query = CommonQueryPatterns.car_search(
            {
                "search_term": "turbo",
                "make": "Subaru,Mitsubishi",
                "price_range": {"min": 5000, "max": 30000},
                "has_modifications": True,
                "modification_categories": ["engine"],
                "specific_modifications": ["intercooler", "downpipe"],
                "sort_by": "price_low",
                "page": 1,
                "limit": 12,
            }
        )
        self.assertEqual(query.text_search.type, "websearch")
        make = next(c for c in query.conditions if c.field == "make")
        self.assertEqual(make.value, ["Subaru", "Mitsubishi"])
        self.assertIn(("modification_count", "gt", 0), [(c.field, c.operator, c.value) for c in query.conditions])
        self.assertEqual(len(query.groups[0].conditions), 2)
        self.assertEqual((query.sorting[0].field, query.sorting[0].order), ("price", "asc"))
        self.assertTrue(SearchQueryBuilder().validate_query(query).is_valid)

    def test_car_search_without_term_sorts_newest(self):
        query = CommonQueryPatterns.car_search({})
        self.assertEqual(query.sorting[0].field, "created_at")
        self.assertIsNone(query.pagination)

    def test_advanced_search_boolean_parts(self):
        query = CommonQueryPatterns.advanced_search(
            {
                "must_have": {"make": "Toyota"},
                "should_have": [{"model": ["Supra", "MR2"]}],
                "must_not": {"condition": ["poor"]},
                "ranges": {"year": {"min": 1990}},
            }
        )
        ops = [(c.field, c.operator) for c in query.conditions]
        self.assertIn(("make", "eq"), ops)
        self.assertIn(("condition", "not_in"), ops)
        self.assertIn(("year", "gte"), ops)
        self.assertEqual(query.groups[0].logic, "OR")
        self.assertEqual(len(query.groups[0].conditions), 2)

    def test_modification_search_adds_inner_join(self):
        query = CommonQueryPatterns.modification_search({"categories": "engine", "min_modification_count": 2})
        self.assertEqual(query.joins[0].table, "modifications")
        self.assertEqual(query.joins[0].type, "inner")
        self.assertTrue(SearchQueryBuilder().validate_query(query).is_valid)

    def test_price_analysis_sorts_by_price(self):
        query = CommonQueryPatterns.price_analysis({"make": "Ford", "year_range": {"min": 2000, "max": 2010}})
        self.assertEqual(len(query.conditions), 3)
        self.assertEqual((query.sorting[0].field, query.sorting[0].order), ("price", "desc"))


class QueryOptimizerTests(unittest.TestCase):
    def test_collapses_repeated_equalities(self):
        conditions = [SearchCondition(field="make", operator="eq", value=m, logic="OR") for m in ("BMW", "Audi", "VW")]
        conditions += [SearchCondition(field="year", operator="gte", value=2000 + i) for i in range(3)]
        optimized = QueryOptimizer.optimize_query(ComplexQuery(conditions=conditions))

        make = [c for c in optimized.conditions if c.field == "make"]
        self.assertEqual(len(make), 1)
        self.assertEqual(make[0].operator, "in")
        self.assertEqual(make[0].value, ["BMW", "Audi", "VW"])
        self.assertEqual(make[0].logic, "OR")
        self.assertEqual(len(optimized.conditions), 4)

    def test_original_query_is_untouched(self):
        query = ComplexQuery(pagination=PaginationSpec(page=150, limit=50))
        optimized = QueryOptimizer.optimize_query(query)
        self.assertEqual(optimized.pagination.limit, 10)
        self.assertEqual(query.pagination.limit, 50)

    def test_few_conditions_are_not_rewritten(self):
        conditions = [SearchCondition(field="make", operator="eq", value=m) for m in ("BMW", "Audi", "VW")]
        optimized = QueryOptimizer.optimize_query(ComplexQuery(conditions=conditions))
        self.assertEqual(len(optimized.conditions), 3)

    def test_complexity_is_capped(self):
        query = ComplexQuery(
            text_search=TextSearchCondition(query="x"),
            conditions=[SearchCondition(field="year", operator="gte", value=i) for i in range(20)],
            pagination=PaginationSpec(page=500, limit=10),
        )
        report = QueryOptimizer.analyze_complexity(query)
        self.assertEqual(report.score, 10.0)
        self.assertIn("Deep pagination is inefficient", report.warnings)

    def test_leading_wildcard_warning(self):
        query = ComplexQuery(conditions=[SearchCondition(field="title", operator="ilike", value="%gt")])
        report = QueryOptimizer.analyze_complexity(query)
        self.assertEqual(report.score, 1.5)
        self.assertIn("Leading wildcard in LIKE operation for field 'title' is expensive", report.warnings)

    def test_index_suggestions(self):
        query = (
            QueryBuilderHelpers.create()
            .where("make", "eq", "BMW")
            .where("price", "lte", 20000)
            .order_by("price")
            .build()
        )
        suggestions = QueryOptimizer.suggest_indexes(query)
        self.assertEqual(suggestions[0], "Composite index on (make, price) for filter combinations")
        self.assertIn("Index on 'price' for sorting", suggestions)


if __name__ == "__main__":
    unittest.main()
