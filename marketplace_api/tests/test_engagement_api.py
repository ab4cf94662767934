import unittest
import uuid

from support import ApiTestCase


class FavoritesApiTests(ApiTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.seller, self.seller_headers = await self.signup("seller@example.com")
        self.buyer, self.buyer_headers = await self.signup("buyer@example.com")
        self.listing = await self.create_listing(self.seller_headers)

    async def _favorite(self, headers, **kwargs):
        return await self.client.post("/api/v1/favorites", headers=headers, **kwargs)

    async def test_add_status_list_and_remove(self):
        resp = await self._favorite(self.buyer_headers, json={"listing_id": self.listing["id"]})
        self.assertEqual(resp.status_code, 201, resp.text)
        body = resp.json()
        self.assertEqual(body["message"], "Listing added to favorites")
        self.assertEqual(body["favorite"]["listing"]["id"], self.listing["id"])

        status = (await self.client.get(f"/api/v1/favorites/{self.listing['id']}", headers=self.buyer_headers)).json()
        self.assertTrue(status["is_favorited"])
        self.assertEqual(status["favorite_id"], body["favorite"]["id"])

        page = (await self.client.get("/api/v1/favorites", headers=self.buyer_headers)).json()
        self.assertEqual(page["pagination"]["total"], 1)

        resp = await self.client.delete(f"/api/v1/favorites/{self.listing['id']}", headers=self.buyer_headers)
        self.assertEqual(resp.json()["message"], "Listing removed from favorites")
        status = (await self.client.get(f"/api/v1/favorites/{self.listing['id']}", headers=self.buyer_headers)).json()
        self.assertEqual(status, {"is_favorited": False, "favorite_id": None})

    async def test_duplicate_is_conflict(self):
        await self._favorite(self.buyer_headers, json={"listing_id": self.listing["id"]})
        resp = await self._favorite(self.buyer_headers, json={"listing_id": self.listing["id"]})
        self.assertErrorEnvelope(resp, 409, "Listing already favorited")

    async def test_own_listing(self):
        resp = await self._favorite(self.seller_headers, json={"listing_id": self.listing["id"]})
        self.assertErrorEnvelope(resp, 400, "Cannot favorite your own listing")

    async def test_unknown_listing(self):
        resp = await self._favorite(self.buyer_headers, json={"listing_id": str(uuid.uuid4())})
        self.assertErrorEnvelope(resp, 404, "Listing not found")

    async def test_body_guards(self):
        json_headers = {**self.buyer_headers, "Content-Type": "application/json"}
        too_big = await self._favorite(json_headers, content=b'{"listing_id": "' + b"x" * 2048 + b'"}')
        self.assertErrorEnvelope(too_big, 413, "Request body too large")

        bad_json = await self._favorite(json_headers, content=b"{listing_id:")
        self.assertErrorEnvelope(bad_json, 400, "Invalid JSON in request body")

        missing = await self._favorite(self.buyer_headers, json={})
        self.assertErrorEnvelope(missing, 400, "listing_id is required")

    async def test_remove_missing_favorite(self):
        resp = await self.client.delete(f"/api/v1/favorites/{self.listing['id']}", headers=self.buyer_headers)
        self.assertErrorEnvelope(resp, 404, "Favorite not found")

    async def test_requires_login(self):
        resp = await self.client.post("/api/v1/favorites", json={"listing_id": self.listing["id"]})
        self.assertErrorEnvelope(resp, 401)


class ReviewsApiTests(ApiTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.seller, self.seller_headers = await self.signup("seller@example.com")
        self.buyer, self.buyer_headers = await self.signup("buyer@example.com")
        self.listing = await self.create_listing(self.seller_headers)

    def _review(self, **overrides):
        payload = {
            "reviewed_user_id": self.seller["id"],
            "rating": 5,
            "review_text": "Car was exactly as described, smooth handover.",
            "transaction_type": "buyer",
            "listing_id": self.listing["id"],
        }
        payload.update(overrides)
        return payload

    async def test_create_and_list(self):
        resp = await self.client.post("/api/v1/reviews", json=self._review(), headers=self.buyer_headers)
        self.assertEqual(resp.status_code, 201, resp.text)
        body = resp.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["message"], "Review submitted successfully")
        self.assertEqual(body["review"]["reviewer"]["id"], self.buyer["id"])

        listed = (await self.client.get(f"/api/v1/reviews?user_id={self.seller['id']}")).json()
        self.assertEqual(len(listed["reviews"]), 1)
        self.assertEqual(listed["rating_summary"]["total_reviews"], 1)
        self.assertEqual(listed["rating_summary"]["average_rating"], 5.0)
        self.assertEqual(listed["rating_summary"]["five_star"], 1)
        self.assertEqual(listed["pagination"], {"page": 1, "limit": 10, "total": 1, "total_pages": 1})

    async def test_list_requires_user_id(self):
        resp = await self.client.get("/api/v1/reviews")
        self.assertErrorEnvelope(resp, 400, "User ID is required")

    async def test_validation_order(self):
        cases = [
            (self._review(rating=None), "Reviewed user ID and rating are required"),
            (self._review(review_text=""), "Missing required fields: review_text"),
            (self._review(rating=6), "Rating must be between 1 and 5"),
            (self._review(transaction_type="trade"), "Transaction type must be 'buyer' or 'seller'"),
            (self._review(reviewed_user_id=self.buyer["id"]), "Cannot review yourself"),
        ]
        for payload, message in cases:
            with self.subTest(message=message):
                resp = await self.client.post("/api/v1/reviews", json=payload, headers=self.buyer_headers)
                self.assertErrorEnvelope(resp, 400, message)

    async def test_duplicate_review(self):
        await self.client.post("/api/v1/reviews", json=self._review(), headers=self.buyer_headers)
        resp = await self.client.post("/api/v1/reviews", json=self._review(rating=3), headers=self.buyer_headers)
        self.assertErrorEnvelope(resp, 400, "You have already reviewed this user for this listing")

    async def test_unknown_reviewed_user(self):
        resp = await self.client.post(
            "/api/v1/reviews", json=self._review(reviewed_user_id=str(uuid.uuid4())), headers=self.buyer_headers
        )
        self.assertErrorEnvelope(resp, 404, "User not found")


if __name__ == "__main__":
    unittest.main()
