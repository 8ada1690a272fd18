"""Live WebSocket broadcast of price alerts."""

import asyncio
import logging
from datetime import datetime

from fastapi import WebSocket

from price_tracker.detect.change import PriceAlert

logger = logging.getLogger(__name__)


class ConnectionHub:
    """Tracks connected WebSocket clients and fans messages out to them."""

    def __init__(self):
        self._connections: set[WebSocket] = set()
        self._lock = asyncio.Lock()

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._connections.add(websocket)
        await websocket.send_json(
            {"type": "connected", "message": "Connected to notification server"}
        )
        logger.info(f"Notification client connected ({self.connection_count} total)")

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            self._connections.discard(websocket)
        logger.info(f"Notification client disconnected ({self.connection_count} total)")

    async def broadcast(self, message: dict) -> int:
        """
        Send a message to every connected client.

        Clients whose send fails are dropped.

        Returns:
            Number of clients that received the message
        """
        async with self._lock:
            connections = list(self._connections)

        delivered = 0
        stale = []
        for websocket in connections:
            try:
                await websocket.send_json(message)
                delivered += 1
            except Exception as e:
                logger.warning(f"Dropping notification client after send failure: {e}")
                stale.append(websocket)

        if stale:
            async with self._lock:
                self._connections.difference_update(stale)
        return delivered

    async def broadcast_price_alert(self, alert: PriceAlert) -> int:
        delivered = await self.broadcast(
            {
                "type": "price_alert",
                "data": alert.to_payload(),
                "timestamp": datetime.utcnow().isoformat() + "Z",
            }
        )
        logger.info(f"Broadcast price alert for item {alert.product_id} to {delivered} clients")
        return delivered


hub = ConnectionHub()
