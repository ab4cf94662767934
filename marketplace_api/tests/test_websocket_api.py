import unittest

from sqlalchemy import update
from starlette.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from support import ApiTestCase

from src.api.main import app
from src.db.models.profiles import Profile


def _token(headers):
    return headers["Authorization"].split(" ", 1)[1]


class MessagesSocketTests(ApiTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.seller, self.seller_headers = await self.signup("seller@example.com")
        self.buyer, self.buyer_headers = await self.signup("buyer@example.com")
        self.listing = await self.create_listing(self.seller_headers)

    def assertRejected(self, client, path):
        with self.assertRaises(WebSocketDisconnect) as ctx:
            with client.websocket_connect(path) as ws:
                ws.receive_text()
        self.assertEqual(ctx.exception.code, 4401)

    async def test_missing_or_invalid_token_is_rejected(self):
        with TestClient(app) as client:
            self.assertRejected(client, "/ws/messages")
            self.assertRejected(client, "/ws/messages?token=not-a-jwt")

    async def test_inactive_profile_is_rejected(self):
        async with self.session_maker() as session:
            await session.execute(update(Profile).where(Profile.email == "seller@example.com").values(is_active=False))
            await session.commit()
        with TestClient(app) as client:
            self.assertRejected(client, f"/ws/messages?token={_token(self.seller_headers)}")

    async def test_ping_and_message_delivery(self):
        with TestClient(app) as client:
            with client.websocket_connect(f"/ws/messages?token={_token(self.seller_headers)}") as ws:
                ws.send_text("ping")
                self.assertEqual(ws.receive_text(), "pong")

                resp = client.post(
                    "/api/v1/messages",
                    json={
                        "listing_id": self.listing["id"],
                        "recipient_id": self.seller["id"],
                        "message_text": "Is the RX-8 still available?",
                    },
                    headers=self.buyer_headers,
                )
                self.assertEqual(resp.status_code, 201, resp.text)

                message_event = ws.receive_json()
                self.assertEqual(message_event["type"], "message.created")
                self.assertEqual(message_event["payload"]["id"], resp.json()["message"]["id"])
                self.assertEqual(message_event["channel"], self.listing["id"])

                notification_event = ws.receive_json()
                self.assertEqual(notification_event["type"], "notification.created")


if __name__ == "__main__":
    unittest.main()
