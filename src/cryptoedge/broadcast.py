"""Subscriber hub for real-time signal broadcast.

Subscribers are anything with an async ``send_text(str)`` (a FastAPI
WebSocket in production). Each broadcast serialises the message once and
sends it to every subscriber concurrently; a slow or broken subscriber is
dropped without affecting delivery to the others.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Protocol

from cryptoedge.logging import get_logger

logger = get_logger(__name__)

GREETING = {"type": "connected", "message": "CryptoEdge signal stream connected"}


class Subscriber(Protocol):
    async def send_text(self, data: str) -> None: ...


class SignalHub:
    """Tracks subscribers and fans out typed JSON messages to them."""

    def __init__(self, send_timeout: float = 5.0) -> None:
        self.connections: list[Subscriber] = []
        self._send_timeout = send_timeout

    async def connect(self, subscriber: Subscriber) -> None:
        """Register a subscriber and send it the greeting.

        The caller is responsible for accepting the underlying transport.
        """
        self.connections.append(subscriber)
        logger.info("subscriber_connected", total=len(self.connections))
        if not await self._send(subscriber, json.dumps(GREETING)):
            self.disconnect(subscriber)

    def disconnect(self, subscriber: Subscriber) -> None:
        """Remove a subscriber. Unknown subscribers are ignored."""
        if subscriber in self.connections:
            self.connections.remove(subscriber)
            logger.info("subscriber_disconnected", total=len(self.connections))

    async def _send(self, subscriber: Subscriber, payload: str) -> bool:
        try:
            await asyncio.wait_for(subscriber.send_text(payload), timeout=self._send_timeout)
        except asyncio.TimeoutError:
            logger.warning("subscriber_send_timeout", timeout=self._send_timeout)
            return False
        except Exception as e:
            logger.warning("subscriber_send_failed", error=str(e))
            return False
        return True

    async def broadcast(self, message_type: str, data: Any) -> int:
        """Send ``{"type": message_type, "data": data}`` to every subscriber.

        Returns:
            Number of subscribers the message was delivered to.
        """
        payload = json.dumps({"type": message_type, "data": data})
        targets = self.connections.copy()
        if not targets:
            return 0

        results = await asyncio.gather(*(self._send(sub, payload) for sub in targets))

        for subscriber, delivered in zip(targets, results):
            if not delivered:
                self.disconnect(subscriber)

        delivered_count = sum(results)
        logger.debug(
            "broadcast_sent",
            message_type=message_type,
            delivered=delivered_count,
            dropped=len(targets) - delivered_count,
        )
        return delivered_count
