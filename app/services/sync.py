"""
Client Synchronization

Dashboard-side half of the order feed. Push events are immediate but can
be missed across a reconnect, so the dashboard also pulls the full active
list on a timer and on every (re)connect, replacing local state wholesale.

Only push ``new_order`` events fire the new-order cue; a pull never does,
even for orders the dashboard sees for the first time.

Usage:
    client = RestaurantOrdersClient("http://localhost:3001", restaurant_id="1")
    sync = DashboardSync(client, DashboardState(on_new_order=play_sound))
    await sync.on_connect()
    asyncio.create_task(sync.run())

Author: Khalil Bannouri
Version: 1.0.0
"""

import asyncio
import logging
from typing import Any, Callable, Optional

import httpx

from app.core.config import get_settings
from app.core.errors import UpstreamUnavailable
from app.models import OrderStatus

logger = logging.getLogger(__name__)


class RestaurantOrdersClient:
    """Pull client for one restaurant's order queue."""

    def __init__(
        self,
        base_url: str,
        restaurant_id: Any,
        api_prefix: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        prefix = api_prefix if api_prefix is not None else get_settings().api_prefix
        self.restaurant_id = str(restaurant_id)
        self._base_path = f"{prefix}/restaurant/{self.restaurant_id}/orders"
        self._client = httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout, transport=transport)

    async def _get(self, path: str, params: Optional[dict[str, Any]] = None) -> list[dict[str, Any]]:
        try:
            response = await self._client.get(path, params=params)
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise UpstreamUnavailable(f"Order feed unavailable: {e}") from e

        if not body.get("success"):
            raise UpstreamUnavailable(body.get("error") or "Order feed returned an error")
        return body.get("data") or []

    async def fetch_active(self) -> list[dict[str, Any]]:
        return await self._get(self._base_path, params={"status": "active"})

    async def fetch_pending(self) -> list[dict[str, Any]]:
        return await self._get(f"{self._base_path}/pending")

    async def close(self) -> None:
        await self._client.aclose()


class DashboardState:
    """
    Local view of a restaurant's orders.

    Attributes:
        orders: Active orders, newest first
        pending_orders: Orders waiting for accept/reject
        known_ids: Every order id this dashboard has seen
        cued_ids: Order ids the new-order cue has already fired for
    """

    def __init__(self, on_new_order: Optional[Callable[[dict[str, Any]], None]] = None):
        self.orders: list[dict[str, Any]] = []
        self.pending_orders: list[dict[str, Any]] = []
        self.known_ids: set[str] = set()
        self.cued_ids: set[str] = set()
        self.on_new_order = on_new_order

    def apply_snapshot(
        self,
        orders: list[dict[str, Any]],
        pending: Optional[list[dict[str, Any]]] = None,
    ) -> None:
        """Replace local state with an authoritative pull. Never notifies."""
        self.orders = list(orders)
        if pending is None:
            pending = [o for o in orders if o.get("status") == OrderStatus.PENDING_RESTAURANT]
        self.pending_orders = list(pending)

        self.known_ids.update(o["orderId"] for o in self.orders if o.get("orderId"))
        self.known_ids.update(o["orderId"] for o in self.pending_orders if o.get("orderId"))

    def apply_new_order(self, order: dict[str, Any]) -> bool:
        """
        Add a pushed order. The cue fires once per order id, including
        for an order a poll already pulled before its push arrived.

        Returns:
            True if the cue fired for this order
        """
        order_id = order.get("orderId")
        if not order_id or order_id in self.cued_ids:
            return False
        self.cued_ids.add(order_id)

        # Already pulled: the snapshot is at least as fresh as this push
        if order_id not in self.known_ids:
            self.known_ids.add(order_id)
            self.orders.insert(0, order)
            if order.get("status", OrderStatus.PENDING_RESTAURANT) == OrderStatus.PENDING_RESTAURANT:
                self.pending_orders.insert(0, order)

        if self.on_new_order is not None:
            try:
                self.on_new_order(order)
            except Exception:
                logger.exception(f"New-order cue failed for {order_id}")
        return True

    def apply_order_update(self, order: dict[str, Any]) -> None:
        order_id = order.get("orderId")
        if not order_id:
            return

        self.orders = [order if o.get("orderId") == order_id else o for o in self.orders]
        if order.get("status") == OrderStatus.PENDING_RESTAURANT:
            self.pending_orders = [
                order if o.get("orderId") == order_id else o for o in self.pending_orders
            ]
        else:
            self.pending_orders = [o for o in self.pending_orders if o.get("orderId") != order_id]

    def metrics(self) -> dict[str, int]:
        def count(*statuses: str) -> int:
            return sum(1 for o in self.orders if o.get("status") in statuses)

        return {
            "total": len(self.orders),
            "pending": count(OrderStatus.PENDING_RESTAURANT),
            "preparing": count(OrderStatus.PREPARING),
            "ready": count(OrderStatus.READY_FOR_PICKUP),
            "delivering": count(
                OrderStatus.RIDER_ASSIGNED,
                OrderStatus.PICKED_UP,
                OrderStatus.OUT_FOR_DELIVERY,
            ),
        }


class DashboardSync:
    """Combines push events with the periodic reconciliation pull."""

    def __init__(
        self,
        client: RestaurantOrdersClient,
        state: Optional[DashboardState] = None,
        poll_interval: Optional[float] = None,
    ):
        self.client = client
        self.state = state or DashboardState()
        self.poll_interval = (
            poll_interval if poll_interval is not None else get_settings().sync_poll_interval_seconds
        )
        self.connected = False
        self._stop = asyncio.Event()

    async def refresh(self) -> bool:
        """Pull the authoritative lists. On failure the last good state stays."""
        try:
            active = await self.client.fetch_active()
            pending = await self.client.fetch_pending()
        except UpstreamUnavailable as e:
            logger.warning(f"Order refresh failed for restaurant {self.client.restaurant_id}: {e}")
            return False

        self.state.apply_snapshot(active, pending)
        logger.debug(f"Refreshed restaurant {self.client.restaurant_id}: {len(active)} active orders")
        return True

    async def on_connect(self) -> None:
        # Anything emitted while we were away is only recoverable by a pull
        self.connected = True
        await self.refresh()

    def on_disconnect(self) -> None:
        self.connected = False

    async def handle_event(self, event: str, data: dict[str, Any]) -> None:
        if event == "new_order":
            order = data.get("order")
            if order:
                self.state.apply_new_order(order)
        elif event == "order_updated":
            order = data.get("order")
            if order:
                self.state.apply_order_update(order)
        elif event == "order_status_changed":
            await self.refresh()

    async def run(self) -> None:
        """Poll until ``stop()`` is called."""
        self._stop.clear()
        while not self._stop.is_set():
            await self.refresh()
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass

    def stop(self) -> None:
        self._stop.set()
