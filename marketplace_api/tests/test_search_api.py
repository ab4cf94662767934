import unittest
import uuid

from support import ApiTestCase


class SearchApiTestCase(ApiTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.seller, self.seller_headers = await self.signup("seller@example.com")
        self.rx8 = await self.create_listing(
            self.seller_headers,
            modifications=[{"name": "Cat-back", "category": "exhaust", "description": "Racing beat cat-back exhaust"}],
        )
        self.civic = await self.create_listing(
            self.seller_headers, title="2006 Honda Civic Si", make="Honda", model="Civic", year=2006, price=7200
        )
        self.s2000 = await self.create_listing(
            self.seller_headers, title="2001 Honda S2000", make="Honda", model="S2000", year=2001, price=18500
        )
        await self.create_listing(
            self.seller_headers, title="Unfinished draft", make="Honda", model="Civic", year=2005, status="draft"
        )


class SearchApiTests(SearchApiTestCase):
    async def test_filters_and_sort(self):
        resp = await self.client.get("/api/v1/search?make=honda&sort_by=price_low")
        self.assertEqual(resp.status_code, 200, resp.text)
        body = resp.json()
        self.assertEqual([item["id"] for item in body["listings"]], [self.civic["id"], self.s2000["id"]])
        self.assertEqual(body["pagination"]["total_items"], 2)
        self.assertFalse(body["pagination"]["has_next_page"])
        self.assertEqual(body["search_params"]["make"], "honda")

    async def test_free_text_and_ranges(self):
        body = (await self.client.get("/api/v1/search?q=civic")).json()
        self.assertEqual([item["id"] for item in body["listings"]], [self.civic["id"]])

        body = (await self.client.get("/api/v1/search?price_from=8000&price_to=10000")).json()
        self.assertEqual([item["id"] for item in body["listings"]], [self.rx8["id"]])

    async def test_modification_filters(self):
        body = (await self.client.get("/api/v1/search?has_modifications=true")).json()
        self.assertEqual([item["id"] for item in body["listings"]], [self.rx8["id"]])

        body = (await self.client.get("/api/v1/search?mod_categories=engine,suspension")).json()
        self.assertEqual(body["listings"], [])

    async def test_pagination(self):
        body = (await self.client.get("/api/v1/search?limit=2&page=2&sort_by=year_new")).json()
        self.assertEqual(body["pagination"]["total_pages"], 2)
        self.assertTrue(body["pagination"]["has_prev_page"])
        self.assertEqual([item["id"] for item in body["listings"]], [self.s2000["id"]])

    async def test_invalid_modification_date(self):
        resp = await self.client.get("/api/v1/search?mod_date_from=yesterday")
        self.assertErrorEnvelope(resp, 400, "Invalid date: yesterday")

    async def test_advanced_search(self):
        resp = await self.client.post(
            "/api/v1/search",
            json={
                "filters": {"make": ["Honda"], "year_range": {"min": 2000, "max": 2005}},
                "sorting": {"by": "price", "order": "asc"},
            },
        )
        self.assertEqual(resp.status_code, 200, resp.text)
        body = resp.json()
        self.assertEqual([item["id"] for item in body["listings"]], [self.s2000["id"]])
        self.assertEqual(body["pagination"]["total_items"], 1)
        self.assertEqual(body["sorting"], {"by": "price", "order": "asc"})

    async def test_optimized_search_is_cached(self):
        first = (await self.client.get("/api/v1/search/optimized?make=Honda")).json()
        self.assertFalse(first["cached"])
        second = (await self.client.get("/api/v1/search/optimized?make=Honda")).json()
        self.assertTrue(second["cached"])
        self.assertTrue(second["performance"]["cached"])
        self.assertEqual(second["performance"]["total_items"], 2)
        self.assertEqual(second["listings"], first["listings"])

    async def test_similar_listings(self):
        # Only the Civic is another make within 30% of the RX-8's price; the S2000 is outside it
        first = (await self.client.get(f"/api/v1/listings/{self.rx8['id']}/similar")).json()
        self.assertFalse(first["cached"])
        self.assertEqual([item["id"] for item in first["listings"]], [self.civic["id"]])

        second = (await self.client.get(f"/api/v1/listings/{self.rx8['id']}/similar")).json()
        self.assertTrue(second["cached"])

        missing = await self.client.get(f"/api/v1/listings/{uuid.uuid4()}/similar")
        self.assertErrorEnvelope(missing, 404, "Listing not found")


class SearchCacheAdminTests(SearchApiTestCase):
    async def test_cache_management_is_staff_only(self):
        resp = await self.client.delete("/api/v1/search/optimized?action=cache-stats", headers=self.seller_headers)
        self.assertErrorEnvelope(resp, 403)

        _, admin_headers = await self.signup("admin@example.com", role="admin")
        await self.client.get("/api/v1/search/optimized?q=honda")
        await self.client.get("/api/v1/search/optimized?q=honda")

        stats = (await self.client.delete("/api/v1/search/optimized?action=cache-stats", headers=admin_headers)).json()
        self.assertEqual(stats["total_entries"], 1)
        self.assertEqual(stats["cache_hit_rate"], 0.5)

        cleared = await self.client.delete("/api/v1/search/optimized?action=clear-cache", headers=admin_headers)
        self.assertEqual(cleared.json()["message"], "Search cache cleared")

        resp = await self.client.delete("/api/v1/search/optimized", headers=admin_headers)
        self.assertErrorEnvelope(resp, 400, "Invalid action")


class DynamicSearchApiTests(SearchApiTestCase):
    async def test_car_search_pattern(self):
        resp = await self.client.post(
            "/api/v1/search/dynamic",
            json={"type": "carSearch", "params": {"make": "Honda", "sort_by": "price_low"}, "include_analytics": True},
        )
        self.assertEqual(resp.status_code, 200, resp.text)
        body = resp.json()
        self.assertEqual([item["id"] for item in body["listings"]], [self.civic["id"], self.s2000["id"]])
        self.assertEqual(body["query"]["type"], "carSearch")
        self.assertIn("complexity", body["analytics"])

    async def test_query_string_variant(self):
        body = (await self.client.get("/api/v1/search/dynamic?make=Mazda")).json()
        self.assertEqual([item["id"] for item in body["listings"]], [self.rx8["id"]])

    async def test_invalid_custom_query(self):
        resp = await self.client.post(
            "/api/v1/search/dynamic",
            json={"custom_query": {"conditions": [{"field": "vin", "operator": "eq", "value": "JM1FE"}]}},
        )
        body = self.assertErrorEnvelope(resp, 400, "Query validation failed: Condition 1: unknown field 'vin'")
        self.assertEqual(body["error"]["details"], {"errors": ["Condition 1: unknown field 'vin'"]})

    async def test_analyze_query(self):
        resp = await self.client.put(
            "/api/v1/search/dynamic",
            json={
                "query": {
                    "conditions": [
                        {"field": "make", "operator": "eq", "value": "Honda", "logic": "OR"},
                        {"field": "make", "operator": "eq", "value": "Mazda", "logic": "OR"},
                    ]
                }
            },
        )
        self.assertEqual(resp.status_code, 200, resp.text)
        body = resp.json()
        self.assertTrue(body["validation"]["is_valid"])
        self.assertIn("score", body["complexity"])
        self.assertIsInstance(body["index_suggestions"], list)


class SearchAnalyticsApiTests(ApiTestCase):
    async def test_record_and_report(self):
        resp = await self.client.post(
            "/api/v1/analytics/search",
            json={"action": "record_search", "session_id": "sess-1", "search_query": "Civic", "results_count": 3},
        )
        self.assertEqual(resp.status_code, 200, resp.text)
        analytics_id = resp.json()["analytics_id"]
        self.assertIsNotNone(analytics_id)

        click = await self.client.post(
            "/api/v1/analytics/search",
            json={
                "action": "record_click",
                "analytics_id": analytics_id,
                "clicked_listing_id": str(uuid.uuid4()),
                "clicked_position": 0,
            },
        )
        self.assertEqual(click.json(), {"success": True, "analytics_id": None})

        _, admin_headers = await self.signup("admin@example.com", role="admin")
        summary = (await self.client.get("/api/v1/analytics/search?type=summary", headers=admin_headers)).json()
        self.assertEqual(summary["total_searches"], 1)
        self.assertEqual(summary["click_through_rate"], 1.0)

        terms = (
            await self.client.get("/api/v1/analytics/search?type=popular_terms&timeframe=7d", headers=admin_headers)
        ).json()
        self.assertEqual(terms["timeframe"], "7d")
        self.assertEqual(terms["terms"][0]["term"], "civic")

    async def test_record_validation(self):
        resp = await self.client.post("/api/v1/analytics/search", json={"action": "record_search"})
        self.assertErrorEnvelope(resp, 400, "session_id is required")
        resp = await self.client.post("/api/v1/analytics/search", json={"action": "rewind", "session_id": "s"})
        self.assertErrorEnvelope(resp, 400, "Invalid action")

    async def test_report_access_and_type(self):
        _, user_headers = await self.signup("user@example.com")
        resp = await self.client.get("/api/v1/analytics/search", headers=user_headers)
        self.assertErrorEnvelope(resp, 403)

        _, admin_headers = await self.signup("admin@example.com", role="admin")
        resp = await self.client.get("/api/v1/analytics/search?type=funnel", headers=admin_headers)
        self.assertErrorEnvelope(resp, 400, "Invalid type parameter")


if __name__ == "__main__":
    unittest.main()
