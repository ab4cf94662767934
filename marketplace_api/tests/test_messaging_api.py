import unittest

from support import ApiTestCase


class MessagingApiTestCase(ApiTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.seller, self.seller_headers = await self.signup("seller@example.com")
        self.buyer, self.buyer_headers = await self.signup("buyer@example.com")
        self.listing = await self.create_listing(self.seller_headers)

    async def send(self, headers, recipient, text, parent_id=None):
        payload = {"listing_id": self.listing["id"], "recipient_id": recipient["id"], "message_text": text}
        if parent_id:
            payload["parent_message_id"] = parent_id
        resp = await self.client.post("/api/v1/messages", json=payload, headers=headers)
        self.assertEqual(resp.status_code, 201, resp.text)
        return resp.json()["message"]


class MessagesApiTests(MessagingApiTestCase):
    async def test_send_creates_conversation(self):
        message = await self.send(self.buyer_headers, self.seller, "Is the RX-8 still available?")
        self.assertEqual(message["thread_id"], message["id"])
        self.assertEqual(message["thread_order"], 0)

        seller_view = (await self.client.get("/api/v1/messages", headers=self.seller_headers)).json()
        self.assertEqual(seller_view["total"], 1)
        conversation = seller_view["conversations"][0]
        self.assertEqual(conversation["id"], f"{self.listing['id']}-{self.buyer['id']}")
        self.assertEqual(conversation["unread_count"], 1)
        self.assertEqual(conversation["message_count"], 1)
        self.assertEqual(conversation["other_participant"]["id"], self.buyer["id"])

        buyer_view = (await self.client.get("/api/v1/messages", headers=self.buyer_headers)).json()
        self.assertEqual(buyer_view["conversations"][0]["unread_count"], 0)

    async def test_reply_is_threaded(self):
        root = await self.send(self.buyer_headers, self.seller, "Is the RX-8 still available?")
        reply = await self.send(self.seller_headers, self.buyer, "Yes, come see it Saturday.", parent_id=root["id"])
        self.assertEqual(reply["thread_id"], root["id"])
        self.assertEqual(reply["thread_depth"], 1)
        self.assertEqual(reply["thread_order"], 1)

        body = (
            await self.client.get(f"/api/v1/messages?conversation_id={self.listing['id']}", headers=self.buyer_headers)
        ).json()
        self.assertEqual(len(body["messages"]), 2)
        threads = body["threaded_messages"]
        self.assertEqual(len(threads), 1)
        self.assertEqual(threads[0]["reply_count"], 1)
        self.assertEqual(threads[0]["replies"][0]["id"], reply["id"])

    async def test_messages_notify_recipient(self):
        root = await self.send(self.buyer_headers, self.seller, "Is the RX-8 still available?")
        await self.send(self.seller_headers, self.buyer, "Yes it is.", parent_id=root["id"])

        seller_notes = (await self.client.get("/api/v1/notifications", headers=self.seller_headers)).json()
        self.assertEqual([n["type"] for n in seller_notes["notifications"]], ["message"])
        self.assertEqual(seller_notes["notifications"][0]["time_ago"], "Just now")
        self.assertEqual(seller_notes["notifications"][0]["related_entity_id"], root["id"])

        buyer_notes = (await self.client.get("/api/v1/notifications", headers=self.buyer_headers)).json()
        self.assertEqual(buyer_notes["notifications"][0]["type"], "reply")

    async def test_mark_conversation_read(self):
        await self.send(self.buyer_headers, self.seller, "First question")
        await self.send(self.buyer_headers, self.seller, "Second question")
        resp = await self.client.patch(
            "/api/v1/messages", json={"conversation_id": self.listing["id"]}, headers=self.seller_headers
        )
        self.assertEqual(resp.status_code, 200, resp.text)
        self.assertEqual(resp.json()["updated_count"], 2)

        conversations = (await self.client.get("/api/v1/messages", headers=self.seller_headers)).json()
        self.assertEqual(conversations["conversations"][0]["unread_count"], 0)

    async def test_mark_messages_read_requires_ids(self):
        resp = await self.client.patch("/api/v1/messages", json={}, headers=self.seller_headers)
        self.assertErrorEnvelope(resp, 400, "message_ids is required")

    async def test_archive_hides_conversation(self):
        await self.send(self.buyer_headers, self.seller, "Is the RX-8 still available?")
        key = f"{self.listing['id']}-{self.buyer['id']}"
        resp = await self.client.patch(
            "/api/v1/messages", json={"action": "archive", "conversation_ids": [key]}, headers=self.seller_headers
        )
        self.assertEqual(resp.json()["message"], "Conversations archived successfully")

        visible = (await self.client.get("/api/v1/messages", headers=self.seller_headers)).json()
        self.assertEqual(visible["total"], 0)
        archived = (
            await self.client.get("/api/v1/messages?include_archived=true", headers=self.seller_headers)
        ).json()
        self.assertTrue(archived["conversations"][0]["is_archived"])

    async def test_hard_delete_only_own_messages(self):
        mine = await self.send(self.buyer_headers, self.seller, "Is the RX-8 still available?")
        theirs = await self.send(self.seller_headers, self.buyer, "Yes it is.")
        resp = await self.client.request(
            "DELETE",
            "/api/v1/messages",
            json={"message_ids": [mine["id"], theirs["id"]], "soft_delete": False},
            headers=self.buyer_headers,
        )
        self.assertEqual(resp.json()["deleted_count"], 1)

        key = f"{self.listing['id']}-{self.seller['id']}"
        resp = await self.client.request(
            "DELETE",
            "/api/v1/messages",
            json={"conversation_ids": [key], "soft_delete": False},
            headers=self.buyer_headers,
        )
        self.assertErrorEnvelope(resp, 403, "Cannot delete messages sent by other users")

    async def test_deleted_conversation_forgets_archive(self):
        await self.send(self.buyer_headers, self.seller, "Is the RX-8 still available?")
        key = f"{self.listing['id']}-{self.buyer['id']}"
        await self.client.patch(
            "/api/v1/messages", json={"action": "archive", "conversation_ids": [key]}, headers=self.seller_headers
        )
        resp = await self.client.request(
            "DELETE", "/api/v1/messages", json={"conversation_ids": [key]}, headers=self.seller_headers
        )
        self.assertEqual(resp.status_code, 200, resp.text)

        await self.send(self.buyer_headers, self.seller, "Any chance you still have it?")
        visible = (await self.client.get("/api/v1/messages", headers=self.seller_headers)).json()
        self.assertEqual(visible["total"], 1)
        self.assertFalse(visible["conversations"][0]["is_archived"])

    async def test_conversation_hard_delete_is_all_or_nothing(self):
        outsider, outsider_headers = await self.signup("outsider@example.com")
        await self.send(self.seller_headers, self.buyer, "Price dropped to 9000.")
        await self.send(outsider_headers, self.seller, "Would you trade?")

        keys = [f"{self.listing['id']}-{self.buyer['id']}", f"{self.listing['id']}-{outsider['id']}"]
        resp = await self.client.request(
            "DELETE", "/api/v1/messages", json={"conversation_ids": keys, "soft_delete": False}, headers=self.seller_headers
        )
        self.assertErrorEnvelope(resp, 403, "Cannot delete messages sent by other users")

        buyer_view = (await self.client.get("/api/v1/messages", headers=self.buyer_headers)).json()
        self.assertEqual(buyer_view["total"], 1)

    async def test_delete_requires_target(self):
        resp = await self.client.request("DELETE", "/api/v1/messages", json={}, headers=self.buyer_headers)
        self.assertErrorEnvelope(resp, 400, "No conversation or message IDs provided")


class ReportsApiTests(MessagingApiTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.outsider, self.outsider_headers = await self.signup("outsider@example.com")
        self.admin, self.admin_headers = await self.signup("mod@example.com", role="moderator")
        self.message = await self.send(self.buyer_headers, self.seller, "Wire me a deposit first.")

    async def report(self, headers, reason="scam"):
        return await self.client.post(
            "/api/v1/reports", json={"message_id": self.message["id"], "reason": reason}, headers=headers
        )

    async def test_report_flags_message(self):
        resp = await self.report(self.seller_headers)
        self.assertEqual(resp.status_code, 201, resp.text)
        report = resp.json()["report"]
        self.assertEqual(report["status"], "pending")
        self.assertEqual(report["reported_user_id"], self.buyer["id"])

        duplicate = await self.report(self.seller_headers, reason="spam")
        self.assertErrorEnvelope(duplicate, 400, "You have already reported this message")

    async def test_reporter_rules(self):
        own = await self.report(self.buyer_headers)
        self.assertErrorEnvelope(own, 400, "Cannot report your own message")
        outsider = await self.report(self.outsider_headers)
        self.assertErrorEnvelope(outsider, 403, "Can only report messages in your conversations")

    async def test_unknown_reason_is_rejected(self):
        resp = await self.report(self.seller_headers, reason="rude")
        self.assertErrorEnvelope(resp, 400, "Invalid request data")

    async def test_staff_review(self):
        report = (await self.report(self.seller_headers)).json()["report"]

        forbidden = await self.client.get("/api/v1/reports", headers=self.seller_headers)
        self.assertErrorEnvelope(forbidden, 403, "Forbidden - Admin access required")

        queue = (await self.client.get("/api/v1/reports?status=pending", headers=self.admin_headers)).json()
        self.assertEqual([r["id"] for r in queue["reports"]], [report["id"]])

        missing_id = await self.client.patch("/api/v1/reports", json={"status": "resolved"}, headers=self.admin_headers)
        self.assertErrorEnvelope(missing_id, 400, "Report ID is required")

        resp = await self.client.patch(
            f"/api/v1/reports?id={report['id']}",
            json={"status": "resolved", "resolution_notes": "Scam attempt"},
            headers=self.admin_headers,
        )
        self.assertEqual(resp.status_code, 200, resp.text)
        resolved = resp.json()["report"]
        self.assertEqual(resolved["status"], "resolved")
        self.assertEqual(resolved["reviewed_by"], self.admin["id"])

        body = (
            await self.client.get(f"/api/v1/messages?conversation_id={self.listing['id']}", headers=self.seller_headers)
        ).json()
        self.assertTrue(body["messages"][0]["is_flagged"])
        self.assertEqual(body["messages"][0]["moderation_status"], "hidden")


class NotificationsApiTests(MessagingApiTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.admin, self.admin_headers = await self.signup("admin@example.com", role="admin")
        await self.send(self.buyer_headers, self.seller, "First question")
        await self.send(self.buyer_headers, self.seller, "Second question")

    async def test_list_and_mark_all_read(self):
        page = (await self.client.get("/api/v1/notifications", headers=self.seller_headers)).json()
        self.assertEqual((page["total"], page["unread_count"]), (2, 2))

        resp = await self.client.patch(
            "/api/v1/notifications", json={"mark_all_read": True}, headers=self.seller_headers
        )
        self.assertEqual(resp.json()["updated_count"], 2)
        page = (await self.client.get("/api/v1/notifications", headers=self.seller_headers)).json()
        self.assertEqual(page["unread_count"], 0)

    async def test_mark_one_unread(self):
        page = (await self.client.get("/api/v1/notifications", headers=self.seller_headers)).json()
        first = page["notifications"][0]["id"]
        await self.client.patch("/api/v1/notifications", json={"mark_all_read": True}, headers=self.seller_headers)
        resp = await self.client.patch(
            "/api/v1/notifications", json={"notification_ids": [first], "is_read": False}, headers=self.seller_headers
        )
        self.assertEqual(resp.json()["updated_count"], 1)
        unread = (await self.client.get("/api/v1/notifications?unread_only=true", headers=self.seller_headers)).json()
        self.assertEqual([n["id"] for n in unread["notifications"]], [first])

    async def test_update_requires_target(self):
        resp = await self.client.patch("/api/v1/notifications", json={}, headers=self.seller_headers)
        self.assertErrorEnvelope(resp, 400, "Must specify notification_ids or mark_all_read")

    async def test_delete_modes(self):
        resp = await self.client.delete("/api/v1/notifications", headers=self.seller_headers)
        self.assertErrorEnvelope(resp, 400, "Must specify notification IDs, delete_all, or older_than_days")

        resp = await self.client.delete("/api/v1/notifications?older_than_days=1", headers=self.seller_headers)
        self.assertEqual(resp.json()["deleted_count"], 0)

        resp = await self.client.delete("/api/v1/notifications?delete_all=true", headers=self.seller_headers)
        self.assertEqual(resp.json()["deleted_count"], 2)

    async def test_staff_create(self):
        payload = {"user_id": self.buyer["id"], "title": "Scheduled maintenance", "message": "Back in an hour"}
        forbidden = await self.client.post("/api/v1/notifications", json=payload, headers=self.seller_headers)
        self.assertErrorEnvelope(forbidden, 403)

        resp = await self.client.post("/api/v1/notifications", json=payload, headers=self.admin_headers)
        self.assertEqual(resp.status_code, 201, resp.text)
        self.assertEqual(resp.json()["type"], "system")

        buyer_notes = (await self.client.get("/api/v1/notifications?type=system", headers=self.buyer_headers)).json()
        self.assertEqual(buyer_notes["total"], 1)


if __name__ == "__main__":
    unittest.main()
