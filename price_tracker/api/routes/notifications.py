"""Live price alert WebSocket."""

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from price_tracker.notify.broadcaster import hub

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["notifications"])


@router.websocket("/notifications")
async def notifications(websocket: WebSocket):
    """Push price alerts to the client until it disconnects."""
    await hub.connect(websocket)
    try:
        while True:
            # Clients only listen; incoming frames keep the connection alive
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("Notification client closed the connection")
    finally:
        await hub.disconnect(websocket)


@router.get("/notifications/status")
async def notification_status():
    return {"connected_clients": hub.connection_count}
