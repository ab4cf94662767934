import csv
import io
import unittest

from support import ApiTestCase


class AdminFixture(ApiTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.seller, self.seller_headers = await self.signup("seller@example.com")
        self.buyer, self.buyer_headers = await self.signup("buyer@example.com")
        self.admin, self.admin_headers = await self.signup("admin@example.com", role="admin")
        self.moderator, self.moderator_headers = await self.signup("mod@example.com", role="moderator")

        self.listing = await self.create_listing(self.seller_headers)
        await self.create_listing(self.seller_headers, title="Parked draft", status="draft")
        await self.client.post(
            "/api/v1/offers", json={"listing_id": self.listing["id"], "offer_amount": 8000}, headers=self.buyer_headers
        )
        resp = await self.client.post(
            "/api/v1/messages",
            json={"listing_id": self.listing["id"], "recipient_id": self.seller["id"], "message_text": "Still for sale?"},
            headers=self.buyer_headers,
        )
        await self.client.post(
            "/api/v1/reports",
            json={"message_id": resp.json()["message"]["id"], "reason": "spam"},
            headers=self.seller_headers,
        )


class AdminApiTests(AdminFixture):
    async def test_stats(self):
        resp = await self.client.get("/api/v1/admin/stats", headers=self.buyer_headers)
        self.assertErrorEnvelope(resp, 403, "Forbidden - Admin access required")

        resp = await self.client.get("/api/v1/admin/stats", headers=self.moderator_headers)
        self.assertEqual(resp.status_code, 200, resp.text)
        self.assertEqual(
            resp.json(),
            {
                "total_users": 4,
                "active_listings": 1,
                "total_listings": 2,
                "pending_reports": 1,
                "total_messages": 1,
                "unread_messages": 1,
                "total_offers": 1,
                "pending_offers": 1,
            },
        )

    async def test_user_management_is_admin_only(self):
        resp = await self.client.get("/api/v1/admin/users", headers=self.moderator_headers)
        self.assertErrorEnvelope(resp, 403)

        page = (await self.client.get("/api/v1/admin/users?role=moderator", headers=self.admin_headers)).json()
        self.assertEqual([u["email"] for u in page["users"]], ["mod@example.com"])

        resp = await self.client.patch(
            f"/api/v1/admin/users/{self.buyer['id']}", json={"is_active": False}, headers=self.admin_headers
        )
        self.assertFalse(resp.json()["is_active"])
        resp = await self.client.get("/api/v1/auth/me", headers=self.buyer_headers)
        self.assertErrorEnvelope(resp, 403)

    async def test_set_listing_status(self):
        resp = await self.client.patch(
            f"/api/v1/admin/listings/{self.listing['id']}", json={"status": "deleted"}, headers=self.moderator_headers
        )
        self.assertEqual(resp.status_code, 200, resp.text)
        self.assertEqual(resp.json()["message"], "Listing set to deleted")

        page = (await self.client.get("/api/v1/admin/listings?status=deleted", headers=self.moderator_headers)).json()
        self.assertEqual([item["id"] for item in page["listings"]], [self.listing["id"]])

    async def test_hide_review(self):
        review = (
            await self.client.post(
                "/api/v1/reviews",
                json={
                    "reviewed_user_id": self.seller["id"],
                    "rating": 1,
                    "review_text": "Spam spam spam",
                    "transaction_type": "buyer",
                    "listing_id": self.listing["id"],
                },
                headers=self.buyer_headers,
            )
        ).json()["review"]
        resp = await self.client.patch(f"/api/v1/admin/reviews/{review['id']}/hide", headers=self.moderator_headers)
        self.assertTrue(resp.json()["is_hidden"])

        listed = (await self.client.get(f"/api/v1/reviews?user_id={self.seller['id']}")).json()
        self.assertEqual(listed["reviews"], [])
        self.assertEqual(listed["rating_summary"]["total_reviews"], 0)


class AdminExportTests(AdminFixture):
    async def test_csv_exports(self):
        for path, filename, header in (
            ("listings", "listings", "title"),
            ("reports", "message_reports", "reason"),
            ("offers", "offers", "offer_amount"),
        ):
            with self.subTest(path=path):
                resp = await self.client.get(f"/api/v1/admin/exports/{path}?format=csv", headers=self.admin_headers)
                self.assertEqual(resp.status_code, 200, resp.text)
                self.assertTrue(resp.headers["content-type"].startswith("text/csv"))
                self.assertIn(f'filename="{filename}.csv"', resp.headers["content-disposition"])
                rows = list(csv.DictReader(io.StringIO(resp.text)))
                self.assertIn(header, rows[0])

    async def test_listing_export_respects_status(self):
        resp = await self.client.get("/api/v1/admin/exports/listings?status=draft", headers=self.admin_headers)
        rows = list(csv.DictReader(io.StringIO(resp.text)))
        self.assertEqual([row["title"] for row in rows], ["Parked draft"])

    async def test_binary_formats(self):
        xlsx = await self.client.get("/api/v1/admin/exports/offers?format=xlsx", headers=self.admin_headers)
        self.assertEqual(xlsx.status_code, 200, xlsx.text)
        self.assertTrue(xlsx.content.startswith(b"PK"))
        self.assertIn('filename="offers.xlsx"', xlsx.headers["content-disposition"])

        pdf = await self.client.get("/api/v1/admin/exports/reports?format=pdf", headers=self.admin_headers)
        self.assertEqual(pdf.status_code, 200, pdf.text)
        self.assertTrue(pdf.content.startswith(b"%PDF"))

    async def test_exports_are_staff_only(self):
        resp = await self.client.get("/api/v1/admin/exports/listings", headers=self.buyer_headers)
        self.assertErrorEnvelope(resp, 403)


if __name__ == "__main__":
    unittest.main()
