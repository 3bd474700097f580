"""
Realtime Gateway

Maps client -> server push-channel events onto EventHub operations.
The transport (FastAPI WebSocket) lives in app/routers/realtime.py; this
module only interprets decoded ``{"event", "data"}`` frames.

Author: Khalil Bannouri
Version: 1.0.0
"""

import logging
from typing import Any, Optional

from app.services.realtime.hub import Connection, EventHub

logger = logging.getLogger(__name__)


def _extract_id(data: Any, *keys: str) -> Optional[str]:
    """Join payloads may be a bare id or an object carrying one."""
    if isinstance(data, (str, int)) and not isinstance(data, bool):
        return str(data)
    if isinstance(data, dict):
        for key in keys or ("id",):
            value = data.get(key)
            if value is not None and value != "":
                return str(value)
    return None


class RealtimeGateway:
    """Dispatch table for inbound push-channel events."""

    def __init__(self, hub: EventHub):
        self.hub = hub
        self._handlers = {
            "authenticate": self._on_authenticate,
            "restaurant:join": self._on_restaurant_join,
            "customer:join": self._on_customer_join,
            "rider:join": self._on_rider_join,
            "customer:track_order": self._on_order_subscribe,
            "order:subscribe": self._on_order_subscribe,
            "order:unsubscribe": self._on_order_unsubscribe,
            "restaurant:order_update": self._on_restaurant_order_update,
            "rider:order_update": self._on_rider_order_update,
            "rider:location_update": self._on_rider_location_update,
        }

    def handle(self, conn: Connection, frame: Any) -> None:
        """Route one decoded frame. Malformed frames and unknown events are ignored."""
        if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
            logger.debug(f"Ignoring malformed frame from {conn.sid}")
            return

        event = frame["event"]
        handler = self._handlers.get(event)
        if handler is None:
            logger.info(f"Unknown event '{event}' from {conn.sid}")
            return

        handler(conn, frame.get("data"))

    # =========================================================================
    # IDENTITY & ROOMS
    # =========================================================================

    def _on_authenticate(self, conn: Connection, data: Any) -> None:
        if not isinstance(data, dict) or not data.get("type") or data.get("id") in (None, ""):
            logger.warning(f"Incomplete authenticate from {conn.sid}")
            return
        self.hub.authenticate(conn, data["type"], data["id"], data.get("token"))

    def _on_restaurant_join(self, conn: Connection, data: Any) -> None:
        self.hub.join(conn, "restaurant", _extract_id(data, "id", "restaurantId"))

    def _on_customer_join(self, conn: Connection, data: Any) -> None:
        self.hub.join(conn, "customer", _extract_id(data, "id", "customerId"))

    def _on_rider_join(self, conn: Connection, data: Any) -> None:
        self.hub.join(conn, "rider", _extract_id(data, "id", "riderId"))

    def _on_order_subscribe(self, conn: Connection, data: Any) -> None:
        self.hub.join(conn, "order", _extract_id(data, "id", "orderId"))

    def _on_order_unsubscribe(self, conn: Connection, data: Any) -> None:
        order_id = _extract_id(data, "id", "orderId")
        if order_id is not None:
            self.hub.leave(conn, order_id)

    # =========================================================================
    # CLIENT-ORIGINATED UPDATES (relayed, never persisted)
    # =========================================================================

    def _on_restaurant_order_update(self, conn: Connection, data: Any) -> None:
        if not isinstance(data, dict) or not data.get("orderId"):
            return
        self.hub.emit_to_room("order", data["orderId"], "order_status_updated", {
            "orderId": str(data["orderId"]),
            "status": data.get("status"),
            "prepTime": data.get("prepTime"),
            "message": data.get("message"),
            "source": "restaurant",
        })

    def _on_rider_order_update(self, conn: Connection, data: Any) -> None:
        if not isinstance(data, dict) or not data.get("orderId"):
            return
        self.hub.emit_to_room("order", data["orderId"], "order_status_updated", {
            "orderId": str(data["orderId"]),
            "status": data.get("status"),
            "message": data.get("message"),
            "source": "rider",
        })

    def _on_rider_location_update(self, conn: Connection, data: Any) -> None:
        if not isinstance(data, dict) or not data.get("orderId"):
            return
        self.hub.emit_to_room("order", data["orderId"], "rider_location", {
            "riderId": data.get("riderId"),
            "location": data.get("location"),
            "heading": data.get("heading"),
        })
