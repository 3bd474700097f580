"""
WebSocket push channel.

Frames are JSON ``{"event": ..., "data": ...}`` in both directions.
"""

import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from app.services.realtime import EventHub, RealtimeGateway, get_event_hub

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Realtime"])


@router.websocket("/ws")
async def order_events(websocket: WebSocket, hub: EventHub = Depends(get_event_hub)) -> None:
    await websocket.accept()
    conn = hub.connect(websocket.send_json)
    gateway = RealtimeGateway(hub)

    try:
        while True:
            try:
                frame = await websocket.receive_json()
            except (ValueError, KeyError):
                # Not JSON text; nothing to route
                logger.debug(f"Undecodable frame from {conn.sid}")
                continue
            gateway.handle(conn, frame)
    except WebSocketDisconnect:
        pass
    finally:
        await hub.disconnect(conn)
