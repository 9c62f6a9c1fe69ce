"""WebSocket fan-out of invalidation events.

Subscribers only get told *what* changed (a ticket or a conversation) and
re-fetch over HTTP.  Delivery is best-effort: a socket that fails a send is
dropped, and nothing is replayed to late joiners.
"""

import asyncio
import logging
from typing import Any

from fastapi import WebSocket

from cerebro.observability.metrics import WEBSOCKET_SUBSCRIBERS

logger = logging.getLogger(__name__)


class Notifier:
    """Tracks connected WebSockets and broadcasts events to them."""

    def __init__(self) -> None:
        self._connections: set[WebSocket] = set()
        self._lock = asyncio.Lock()

    @property
    def subscriber_count(self) -> int:
        return len(self._connections)

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._connections.add(websocket)
            WEBSOCKET_SUBSCRIBERS.set(len(self._connections))
        logger.info("WebSocket client connected (%d total)", len(self._connections))

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            self._connections.discard(websocket)
            WEBSOCKET_SUBSCRIBERS.set(len(self._connections))
        logger.info("WebSocket client disconnected (%d total)", len(self._connections))

    async def broadcast(self, payload: dict[str, Any]) -> int:
        """Send ``payload`` to every subscriber. Returns how many received it."""
        async with self._lock:
            connections = list(self._connections)

        failed: list[WebSocket] = []
        for websocket in connections:
            try:
                await websocket.send_json(payload)
            except Exception:
                logger.warning("Dropping WebSocket subscriber after failed send", exc_info=True)
                failed.append(websocket)

        for websocket in failed:
            await self.disconnect(websocket)
        return len(connections) - len(failed)

    async def ticket_updated(self, ticket_id: str) -> None:
        await self.broadcast({"type": "ticket_update", "ticketId": ticket_id})

    async def messages_updated(self, conversation_id: str) -> None:
        await self.broadcast({"type": "message_update", "conversationId": conversation_id})
