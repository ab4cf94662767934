import unittest
import uuid

from support import LISTING_PAYLOAD, ApiTestCase


class ListingsApiTests(ApiTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.seller, self.seller_headers = await self.signup("seller@example.com")
        self.buyer, self.buyer_headers = await self.signup("buyer@example.com")

    async def test_create_with_modifications(self):
        listing = await self.create_listing(
            self.seller_headers,
            modifications=[
                {"name": "Street port", "category": "engine", "description": "Street ported rotor housings", "cost": 3200},
            ],
        )
        self.assertEqual(listing["user_id"], self.seller["id"])
        self.assertEqual(listing["status"], "active")
        self.assertEqual(listing["condition"], "good")
        self.assertEqual(listing["modification_count"], 1)
        self.assertEqual(listing["modifications"][0]["category"], "engine")

    async def test_missing_required_fields(self):
        resp = await self.client.post(
            "/api/v1/listings", json={"title": "Just a title"}, headers=self.seller_headers
        )
        self.assertErrorEnvelope(resp, 400, "Missing required fields: make, model, year, price, location")

    async def test_create_status_is_active_or_draft(self):
        for status in ("banana", "sold", "deleted"):
            with self.subTest(status=status):
                resp = await self.client.post(
                    "/api/v1/listings", json={**LISTING_PAYLOAD, "status": status}, headers=self.seller_headers
                )
                self.assertErrorEnvelope(resp, 400, "Invalid request data")

        draft = await self.create_listing(self.seller_headers, status="draft")
        self.assertEqual(draft["status"], "draft")

    async def test_invalid_modifications_are_listed(self):
        resp = await self.client.post(
            "/api/v1/listings",
            json={**LISTING_PAYLOAD, "modifications": [{"category": "engine", "description": "short"}]},
            headers=self.seller_headers,
        )
        body = self.assertErrorEnvelope(resp, 400, "Invalid modifications")
        self.assertEqual(
            body["error"]["details"], ["Modification 1: Description must be at least 10 characters long"]
        )

    async def test_public_detail_counts_views_of_others(self):
        listing = await self.create_listing(self.seller_headers)
        await self.client.get(f"/api/v1/listings/{listing['id']}")
        await self.client.get(f"/api/v1/listings/{listing['id']}", headers=self.seller_headers)
        resp = await self.client.get(f"/api/v1/listings/{listing['id']}", headers=self.seller_headers)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["view_count"], 1)

    async def test_unknown_listing(self):
        resp = await self.client.get(f"/api/v1/listings/{uuid.uuid4()}")
        self.assertErrorEnvelope(resp, 404, "Listing not found")

    async def test_drafts_hidden_from_others(self):
        listing = await self.create_listing(self.seller_headers, status="draft")
        resp = await self.client.get(f"/api/v1/listings/{listing['id']}", headers=self.buyer_headers)
        self.assertErrorEnvelope(resp, 404)
        own = await self.client.get(f"/api/v1/listings/{listing['id']}", headers=self.seller_headers)
        self.assertEqual(own.status_code, 200)

    async def test_update_replaces_modifications(self):
        listing = await self.create_listing(
            self.seller_headers,
            modifications=[{"category": "engine", "description": "Street ported rotor housings"}],
        )
        resp = await self.client.put(
            f"/api/v1/listings/{listing['id']}",
            json={
                "price": 8900,
                "modifications": [
                    {"category": "exhaust", "description": "Racing beat cat-back exhaust"},
                    {"category": "wheels/tires", "description": "Volk TE37 wheels with new tires"},
                ],
            },
            headers=self.seller_headers,
        )
        self.assertEqual(resp.status_code, 200, resp.text)
        updated = resp.json()["listing"]
        self.assertEqual(updated["price"], 8900)
        self.assertEqual(sorted(m["category"] for m in updated["modifications"]), ["exhaust", "wheels/tires"])

    async def test_only_owner_can_update_or_delete(self):
        listing = await self.create_listing(self.seller_headers)
        resp = await self.client.put(
            f"/api/v1/listings/{listing['id']}", json={"price": 1}, headers=self.buyer_headers
        )
        self.assertErrorEnvelope(resp, 404, "Listing not found or unauthorized")
        resp = await self.client.delete(f"/api/v1/listings/{listing['id']}", headers=self.buyer_headers)
        self.assertErrorEnvelope(resp, 404)

    async def test_delete(self):
        listing = await self.create_listing(self.seller_headers)
        resp = await self.client.delete(f"/api/v1/listings/{listing['id']}", headers=self.seller_headers)
        self.assertEqual(resp.json()["message"], "Listing deleted successfully")
        resp = await self.client.get(f"/api/v1/listings/{listing['id']}", headers=self.seller_headers)
        self.assertErrorEnvelope(resp, 404)

    async def test_mark_sold_and_reactivate(self):
        listing = await self.create_listing(self.seller_headers)
        url = f"/api/v1/listings/{listing['id']}/sold"

        resp = await self.client.patch(url, json={"sold_price": 9100}, headers=self.seller_headers)
        self.assertEqual(resp.status_code, 200, resp.text)
        sold = resp.json()["listing"]
        self.assertEqual((sold["status"], sold["sold_price"]), ("sold", 9100))
        self.assertIsNotNone(sold["sold_at"])

        again = await self.client.patch(url, headers=self.seller_headers)
        self.assertErrorEnvelope(again, 400, "Listing is already marked as sold")

        resp = await self.client.put(url, headers=self.seller_headers)
        reactivated = resp.json()["listing"]
        self.assertEqual(reactivated["status"], "active")
        self.assertIsNone(reactivated["sold_price"])

    async def test_sold_price_defaults_to_asking(self):
        listing = await self.create_listing(self.seller_headers)
        resp = await self.client.patch(f"/api/v1/listings/{listing['id']}/sold", headers=self.seller_headers)
        self.assertEqual(resp.json()["listing"]["sold_price"], LISTING_PAYLOAD["price"])

    async def test_invalid_sold_price(self):
        listing = await self.create_listing(self.seller_headers)
        resp = await self.client.patch(
            f"/api/v1/listings/{listing['id']}/sold", json={"sold_price": 0}, headers=self.seller_headers
        )
        self.assertErrorEnvelope(resp, 400, "Invalid sold price")

    async def test_mine_and_public(self):
        await self.create_listing(self.seller_headers)
        await self.create_listing(self.seller_headers, title="Draft car", status="draft")
        await self.create_listing(self.buyer_headers, title="Buyer's own car", make="Honda", model="S2000")

        mine = (await self.client.get("/api/v1/listings/mine", headers=self.seller_headers)).json()
        self.assertEqual(mine["pagination"]["total"], 2)

        drafts = (await self.client.get("/api/v1/listings/mine?status=draft", headers=self.seller_headers)).json()
        self.assertEqual([item["title"] for item in drafts["listings"]], ["Draft car"])

        public = (await self.client.get("/api/v1/listings/public", headers=self.buyer_headers)).json()
        self.assertEqual([item["title"] for item in public["listings"]], [LISTING_PAYLOAD["title"]])

    async def test_seller_analytics(self):
        await self.create_listing(self.seller_headers)
        resp = await self.client.get("/api/v1/listings/analytics", headers=self.seller_headers)
        self.assertEqual(resp.status_code, 200, resp.text)
        body = resp.json()["analytics"]
        self.assertEqual(body["overview"]["total_listings"], 1)
        self.assertEqual(body["overview"]["active_listings"], 1)
        self.assertEqual(len(body["monthly"]), 6)
        self.assertEqual(body["monthly"][-1]["listed"], 1)

    async def test_image_upload_attaches_to_listing(self):
        listing = await self.create_listing(self.seller_headers)
        resp = await self.client.post(
            "/api/v1/listings/upload-image",
            files={"file": ("front.png", b"\x89PNG\r\n\x1a\nfake", "image/png")},
            data={"listing_id": listing["id"], "is_primary": "true"},
            headers=self.seller_headers,
        )
        self.assertEqual(resp.status_code, 201, resp.text)
        self.assertEqual(resp.json()["type"], "image/png")

        detail = (await self.client.get(f"/api/v1/listings/{listing['id']}", headers=self.seller_headers)).json()
        self.assertEqual(detail["image_count"], 1)
        self.assertEqual(detail["primary_image"]["image_url"], resp.json()["url"])

    async def test_upload_rejects_non_images(self):
        resp = await self.client.post(
            "/api/v1/listings/upload-image",
            files={"file": ("notes.txt", b"hello", "text/plain")},
            headers=self.seller_headers,
        )
        self.assertErrorEnvelope(resp, 400)

    async def test_stored_extension_follows_content_type(self):
        resp = await self.client.post(
            "/api/v1/listings/upload-image",
            files={"file": ("evil.html", b"<script>alert(1)</script>", "image/png")},
            headers=self.seller_headers,
        )
        self.assertEqual(resp.status_code, 201, resp.text)
        url = resp.json()["url"]
        self.assertTrue(url.endswith(".png"), url)
        self.assertEqual(resp.json()["original_name"], "evil.html")

        served = await self.client.get(url)
        self.assertEqual(served.status_code, 200)
        self.assertEqual(served.headers["content-type"], "image/png")

    async def test_upload_size_limit(self):
        oversized = b"\xff\xd8\xff" + b"0" * (5 * 1024 * 1024)
        resp = await self.client.post(
            "/api/v1/listings/upload-image",
            files={"file": ("big.jpg", oversized, "image/jpeg")},
            headers=self.seller_headers,
        )
        self.assertErrorEnvelope(resp, 400, "File size too large. Maximum size is 5MB.")


if __name__ == "__main__":
    unittest.main()
