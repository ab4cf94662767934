from __future__ import annotations

import asyncio

import logging
from typing import Any, Dict, Optional, Set
from uuid import UUID

from starlette.websockets import WebSocket, WebSocketState

from src.schemas.realtime import WsEnvelope

logger = logging.getLogger(__name__)


class BroadcastManager:
    """
    Simple in-process pub-sub manager for WebSocket topics.

    Topics:
      - user:{profile_id}  (messages and notifications addressed to the profile)
    """

    def __init__(self) -> None:
        self._topics: Dict[str, Set[WebSocket]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._global_lock = asyncio.Lock()

    def _topic_lock(self, topic: str) -> asyncio.Lock:
        if topic not in self._locks:
            self._locks[topic] = asyncio.Lock()
        return self._locks[topic]

    # PUBLIC_INTERFACE
    def user_topic(self, user_id: UUID | str) -> str:
        """Return the personal topic name for a profile."""
        return f"user:{user_id}"

    async def _ensure_topic(self, topic: str) -> None:
        async with self._global_lock:
            if topic not in self._topics:
                self._topics[topic] = set()

    # PUBLIC_INTERFACE
    def subscriber_count(self, topic: str) -> int:
        """Number of sockets currently subscribed to the topic."""
        return len(self._topics.get(topic, ()))

    # PUBLIC_INTERFACE
    async def connect(self, topic: str, websocket: WebSocket) -> None:
        """
        Add an accepted websocket to topic subscribers.
        """
        await self._ensure_topic(topic)
        async with self._topic_lock(topic):
            self._topics[topic].add(websocket)
            logger.info("WebSocket connected to topic=%s; subscribers=%d", topic, len(self._topics[topic]))

    # PUBLIC_INTERFACE
    async def disconnect(self, topic: str, websocket: WebSocket) -> None:
        """Remove websocket from topic subscribers."""
        if topic not in self._topics:
            return
        async with self._topic_lock(topic):
            self._topics[topic].discard(websocket)
            logger.info("WebSocket disconnected from topic=%s; subscribers=%d", topic, len(self._topics[topic]))

    # PUBLIC_INTERFACE
    async def broadcast(self, topic: str, message: dict, exclude: Optional[WebSocket] = None) -> None:
        """
        Broadcast a dict message to all subscribers in the topic.
        """
        if not self._topics.get(topic):
            return
        async with self._topic_lock(topic):
            to_drop: list[WebSocket] = []
            for ws in list(self._topics[topic]):
                if exclude is not None and ws is exclude:
                    continue
                try:
                    if ws.application_state == WebSocketState.DISCONNECTED or ws.client_state == WebSocketState.DISCONNECTED:
                        to_drop.append(ws)
                        continue
                    await ws.send_json(message)
                except Exception:
                    logger.exception("Failed to send message to websocket; scheduling drop")
                    to_drop.append(ws)
            for ws in to_drop:
                self._topics[topic].discard(ws)

    # PUBLIC_INTERFACE
    async def publish_message(self, recipient_id: UUID | str, payload: Dict[str, Any], listing_id: Optional[str] = None) -> None:
        """Push a newly created message to its recipient."""
        env = WsEnvelope(type="message.created", payload=payload, user_id=recipient_id, channel=listing_id)
        await self.broadcast(self.user_topic(recipient_id), env.model_dump(mode="json"))

    # PUBLIC_INTERFACE
    async def publish_notification(self, user_id: UUID | str, payload: Dict[str, Any]) -> None:
        """Push a newly created in-app notification to its owner."""
        env = WsEnvelope(type="notification.created", payload=payload, user_id=user_id)
        await self.broadcast(self.user_topic(user_id), env.model_dump(mode="json"))


# Singleton instance
broadcast_manager = BroadcastManager()
