import unittest
import uuid

from starlette.websockets import WebSocketState

from src.services.realtime import BroadcastManager


class FakeSocket:
    def __init__(self, fail: bool = False) -> None:
        self.application_state = WebSocketState.CONNECTED
        self.client_state = WebSocketState.CONNECTED
        self.sent = []
        self.fail = fail

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("socket gone")
        self.sent.append(data)


class BroadcastManagerTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.manager = BroadcastManager()
        self.user_id = uuid.uuid4()
        self.topic = self.manager.user_topic(self.user_id)

    async def test_message_reaches_recipient_topic_only(self):
        mine, other = FakeSocket(), FakeSocket()
        await self.manager.connect(self.topic, mine)
        await self.manager.connect(self.manager.user_topic(uuid.uuid4()), other)

        await self.manager.publish_message(self.user_id, {"message_text": "Still available?"}, listing_id="abc")

        self.assertEqual(len(mine.sent), 1)
        envelope = mine.sent[0]
        self.assertEqual(envelope["type"], "message.created")
        self.assertEqual(envelope["channel"], "abc")
        self.assertEqual(envelope["user_id"], str(self.user_id))
        self.assertEqual(other.sent, [])

    async def test_notification_envelope(self):
        socket = FakeSocket()
        await self.manager.connect(self.topic, socket)
        await self.manager.publish_notification(self.user_id, {"title": "New message"})
        self.assertEqual(socket.sent[0]["type"], "notification.created")
        self.assertEqual(socket.sent[0]["payload"], {"title": "New message"})

    async def test_failed_and_closed_sockets_are_dropped(self):
        broken, closed, healthy = FakeSocket(fail=True), FakeSocket(), FakeSocket()
        closed.client_state = WebSocketState.DISCONNECTED
        for socket in (broken, closed, healthy):
            await self.manager.connect(self.topic, socket)

        with self.assertLogs("src.services.realtime", level="ERROR"):
            await self.manager.broadcast(self.topic, {"type": "ping"})

        self.assertEqual(self.manager.subscriber_count(self.topic), 1)
        self.assertEqual(healthy.sent, [{"type": "ping"}])

    async def test_disconnect_and_unknown_topic(self):
        socket = FakeSocket()
        await self.manager.connect(self.topic, socket)
        await self.manager.disconnect(self.topic, socket)
        self.assertEqual(self.manager.subscriber_count(self.topic), 0)

        await self.manager.disconnect("user:nobody", socket)
        await self.manager.broadcast("user:nobody", {"type": "ping"})
        self.assertEqual(socket.sent, [])


if __name__ == "__main__":
    unittest.main()
