import unittest
import uuid
from datetime import datetime, timedelta, timezone

from src.db.models.offers import Offer
from src.services.offers import (
    calculate_offer_analytics,
    calculate_top_listings,
    normalize_offer_type,
    value_range_label,
)


def _offer(listing_id, amount, status, created_at, hours_open=0):
    return Offer(
        id=uuid.uuid4(),
        listing_id=listing_id,
        buyer_id=uuid.uuid4(),
        seller_id=uuid.uuid4(),
        offer_amount=amount,
        status=status,
        created_at=created_at,
        updated_at=created_at + timedelta(hours=hours_open),
    )


class OfferHelpersTests(unittest.TestCase):
    def test_offer_type_aliases(self):
        self.assertEqual(normalize_offer_type("buyer"), "sent")
        self.assertEqual(normalize_offer_type("SELLER"), "received")
        self.assertEqual(normalize_offer_type(None), "all")
        self.assertEqual(normalize_offer_type("bogus"), "all")

    def test_value_range_boundaries(self):
        self.assertEqual(value_range_label(9999.99), "Under $10k")
        self.assertEqual(value_range_label(10000), "$10k - $25k")
        self.assertEqual(value_range_label(99999), "$50k - $100k")
        self.assertEqual(value_range_label(100000), "Over $100k")


class OfferAnalyticsTests(unittest.TestCase):
    def setUp(self):
        self.first_listing = uuid.uuid4()
        self.second_listing = uuid.uuid4()
        jan = datetime(2026, 1, 10, 10, 0, tzinfo=timezone.utc)
        feb = datetime(2026, 2, 1, 9, 0, tzinfo=timezone.utc)
        self.offers = [
            _offer(self.first_listing, 8000, "accepted", jan, hours_open=4),
            _offer(self.first_listing, 12000, "rejected", jan + timedelta(days=10), hours_open=2),
            _offer(self.first_listing, 30000, "countered", feb),
            _offer(self.second_listing, 150000, "pending", feb + timedelta(days=4)),
        ]

    def test_empty_input(self):
        stats = calculate_offer_analytics([])
        self.assertEqual(stats.total_offers, 0)
        self.assertEqual(stats.offer_status_breakdown["pending"], 0)
        self.assertEqual(stats.monthly_activity, [])

    def test_rates_and_negotiation_time(self):
        stats = calculate_offer_analytics(self.offers)
        self.assertEqual(stats.total_offers, 4)
        self.assertEqual(stats.success_rate, 25.0)
        self.assertEqual(stats.counter_offer_rate, 25.0)
        self.assertEqual(stats.average_negotiation_time, 3.0)
        self.assertEqual(stats.offer_status_breakdown["expired"], 0)

    def test_monthly_activity(self):
        stats = calculate_offer_analytics(self.offers)
        months = {item.month: item for item in stats.monthly_activity}
        self.assertEqual(sorted(months), ["2026-01", "2026-02"])
        self.assertEqual((months["2026-01"].total, months["2026-01"].accepted, months["2026-01"].rejected), (2, 1, 1))
        self.assertEqual((months["2026-02"].countered, months["2026-02"].pending), (1, 1))

    def test_value_ranges_cover_every_bucket(self):
        stats = calculate_offer_analytics(self.offers)
        ranges = {item.range: (item.count, item.percentage) for item in stats.offer_value_ranges}
        self.assertEqual(
            ranges,
            {
                "Under $10k": (1, 25),
                "$10k - $25k": (1, 25),
                "$25k - $50k": (1, 25),
                "$50k - $100k": (0, 0),
                "Over $100k": (1, 25),
            },
        )

    def test_top_listings_ordered_by_offer_count(self):
        top = calculate_top_listings(self.offers)
        self.assertEqual([item.total_offers for item in top], [3, 1])
        self.assertEqual(top[0].highest_offer, 30000)
        self.assertAlmostEqual(top[0].average_offer, 50000 / 3)
        self.assertEqual(top[0].accepted_offers, 1)
        self.assertAlmostEqual(top[0].success_rate, 100 / 3)
        self.assertIsNone(top[0].listing)

    def test_top_listings_limit(self):
        self.assertEqual(len(calculate_top_listings(self.offers, limit=1)), 1)


if __name__ == "__main__":
    unittest.main()
