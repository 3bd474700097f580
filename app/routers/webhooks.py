"""
Rider backend webhooks and the generic admin status route.

The rider backend calls these as the delivery progresses. They go through
the engine's generic status update, which broadcasts to every connection;
the helpers add an order-room update for customers tracking the order.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends

from app.schemas import DeliveredRequest, RiderAssignedRequest, StatusUpdateRequest
from app.services import get_lifecycle_engine
from app.services.lifecycle import OrderLifecycleEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders/{order_id}", tags=["Rider Webhooks"])


@router.post("/rider-assigned", summary="Rider Assigned")
async def rider_assigned(
    order_id: str,
    body: RiderAssignedRequest,
    engine: OrderLifecycleEngine = Depends(get_lifecycle_engine),
) -> dict[str, Any]:
    order = await engine.assign_rider(order_id, body.rider_id, body.rider_name, body.rider_phone)
    return {"success": True, "data": order}


@router.post("/picked-up", summary="Order Picked Up")
async def picked_up(
    order_id: str,
    engine: OrderLifecycleEngine = Depends(get_lifecycle_engine),
) -> dict[str, Any]:
    return {"success": True, "data": await engine.mark_picked_up(order_id)}


@router.post("/out-for-delivery", summary="Out for Delivery")
async def out_for_delivery(
    order_id: str,
    engine: OrderLifecycleEngine = Depends(get_lifecycle_engine),
) -> dict[str, Any]:
    return {"success": True, "data": await engine.mark_out_for_delivery(order_id)}


@router.post("/delivered", summary="Order Delivered")
async def delivered(
    order_id: str,
    body: Optional[DeliveredRequest] = Body(None),
    engine: OrderLifecycleEngine = Depends(get_lifecycle_engine),
) -> dict[str, Any]:
    """Requires the customer's 4-character verification code."""
    code = body.verification_code if body else None
    order = await engine.confirm_delivery(order_id, code)
    return {"success": True, "data": order, "message": "Order delivered successfully"}


@router.post("/status", summary="Update Order Status (admin)")
async def update_status(
    order_id: str,
    body: StatusUpdateRequest,
    engine: OrderLifecycleEngine = Depends(get_lifecycle_engine),
) -> dict[str, Any]:
    order = await engine.update_order_status(order_id, body.status, body.model_extra or {})
    return {"success": True, "data": order}
