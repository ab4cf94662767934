import math
import unittest
import uuid
from datetime import datetime, timezone

from src.db.models.analytics import SearchEvent
from src.services.admin import OFFER_EXPORT_COLUMNS, offers_frame
from src.services.search_analytics import popular_terms, summarize_events

CREATED = datetime(2026, 4, 2, 8, 30, tzinfo=timezone.utc)


def _offer_row(amount, asking, status="pending"):
    return (
        uuid.uuid4(), "2004 Mazda RX-8", uuid.uuid4(), uuid.uuid4(), amount, asking,
        status, False, 0, None, CREATED,
    )


def _event(session_id, query, results=5, response_ms=100, cached=False, clicked=False):
    return SearchEvent(
        session_id=session_id,
        search_query=query,
        results_count=results,
        response_time_ms=response_ms,
        was_cached=cached,
        clicked_listing_id=uuid.uuid4() if clicked else None,
    )


class OffersFrameTests(unittest.TestCase):
    def test_columns_and_percent_of_asking(self):
        df = offers_frame([_offer_row(8500, 10000), _offer_row(9000, 0)])
        self.assertEqual(list(df.columns), OFFER_EXPORT_COLUMNS)
        self.assertEqual(df.loc[0, "offer_percent_of_asking"], 85.0)
        self.assertTrue(math.isnan(df.loc[1, "offer_percent_of_asking"]))
        self.assertIsInstance(df.loc[0, "id"], str)

    def test_empty_export_keeps_header(self):
        df = offers_frame([])
        self.assertTrue(df.empty)
        self.assertEqual(list(df.columns), OFFER_EXPORT_COLUMNS)


class SearchAnalyticsSummaryTests(unittest.TestCase):
    def setUp(self):
        self.events = [
            _event("s1", "Civic", results=10, response_ms=100, clicked=True),
            _event("s1", "civic ", results=4, response_ms=200, cached=True),
            _event("s2", "rx-8", results=0, response_ms=300),
            _event("s3", "", results=12, response_ms=400),
        ]

    def test_summary_rates(self):
        summary = summarize_events(self.events, "24h")
        self.assertEqual(summary.total_searches, 4)
        self.assertEqual(summary.unique_sessions, 3)
        self.assertEqual(summary.avg_response_time_ms, 250.0)
        self.assertEqual(summary.cache_hit_rate, 0.25)
        self.assertEqual(summary.click_through_rate, 0.25)
        self.assertEqual(summary.zero_result_searches, 1)

    def test_summary_without_events(self):
        summary = summarize_events([], "7d")
        self.assertEqual(summary.timeframe, "7d")
        self.assertEqual(summary.total_searches, 0)

    def test_popular_terms_are_normalized(self):
        terms = popular_terms(self.events, "24h").terms
        self.assertEqual([(t.term, t.count) for t in terms], [("civic", 2), ("rx-8", 1)])
        self.assertEqual(terms[0].avg_results, 7.0)

    def test_popular_terms_limit(self):
        self.assertEqual(len(popular_terms(self.events, "24h", limit=1).terms), 1)


if __name__ == "__main__":
    unittest.main()
