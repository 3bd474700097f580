"""
Customer-facing order routes.

Every response uses the ``{success, data, message?}`` envelope; errors are
rendered by the handlers registered in app.main.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Query

from app.schemas import CancelOrderRequest
from app.services import get_lifecycle_engine
from app.services.lifecycle import OrderLifecycleEngine

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Orders"])


@router.post("/orders", status_code=201, summary="Create Order")
async def create_order(
    payload: dict[str, Any] = Body(..., examples=[{
        "customerName": "Asha Patel",
        "customerPhone": "9876543210",
        "deliveryAddress": "12 MG Road, Pune",
        "restaurantId": "1",
        "restaurantName": "Spice Route",
        "items": [{"name": "Paneer Tikka", "quantity": 2, "price": 150}],
        "total": 338,
    }]),
    engine: OrderLifecycleEngine = Depends(get_lifecycle_engine),
) -> dict[str, Any]:
    """Place an order. The restaurant's dashboards are alerted over WebSocket."""
    order = await engine.create_order(payload)
    return {"success": True, "data": order, "message": "Order created successfully"}


@router.get("/orders/{order_id}", summary="Get Order")
async def get_order(
    order_id: str,
    engine: OrderLifecycleEngine = Depends(get_lifecycle_engine),
) -> dict[str, Any]:
    return {"success": True, "data": await engine.get_order_by_id(order_id)}


@router.get("/orders/{order_id}/track", summary="Track Order")
async def track_order(
    order_id: str,
    engine: OrderLifecycleEngine = Depends(get_lifecycle_engine),
) -> dict[str, Any]:
    """Order plus milestone timeline for the customer progress view."""
    return {"success": True, "data": await engine.track_order(order_id)}


@router.post("/orders/{order_id}/cancel", summary="Cancel Order")
async def cancel_order(
    order_id: str,
    body: Optional[CancelOrderRequest] = Body(None),
    engine: OrderLifecycleEngine = Depends(get_lifecycle_engine),
) -> dict[str, Any]:
    body = body or CancelOrderRequest()
    order = await engine.cancel_order(order_id, body.reason, body.cancelled_by)
    return {"success": True, "data": order, "message": "Order cancelled"}


@router.get("/customer/{customer_id}/orders", summary="Customer Order History")
async def customer_orders(
    customer_id: str,
    limit: Optional[int] = Query(None, ge=1, le=100),
    engine: OrderLifecycleEngine = Depends(get_lifecycle_engine),
) -> dict[str, Any]:
    orders = await engine.get_customer_orders(customer_id, limit)
    return {"success": True, "data": orders, "count": len(orders)}


# Registered only when ENV_MODE=development
debug_router = APIRouter(tags=["Development"])


@debug_router.delete("/orders/{order_id}", summary="Erase Order (development only)")
async def delete_order(
    order_id: str,
    engine: OrderLifecycleEngine = Depends(get_lifecycle_engine),
) -> dict[str, Any]:
    await engine.delete_order(order_id)
    return {"success": True, "message": f"Order {order_id} deleted"}
