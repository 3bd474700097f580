"""
Restaurant dashboard routes: the order queue and accept/reject/ready.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Query

from app.models import OrderStatus
from app.schemas import AcceptOrderRequest, RejectOrderRequest
from app.services import get_lifecycle_engine
from app.services.lifecycle import OrderLifecycleEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/restaurant/{restaurant_id}/orders", tags=["Restaurant"])


@router.get("", summary="Restaurant Order Queue")
async def restaurant_orders(
    restaurant_id: str,
    status: Optional[str] = Query(None, description='Exact status, or "active"'),
    limit: Optional[int] = Query(None, ge=1, le=200),
    engine: OrderLifecycleEngine = Depends(get_lifecycle_engine),
) -> dict[str, Any]:
    orders = await engine.get_restaurant_orders(restaurant_id, status, limit)
    return {"success": True, "data": orders, "count": len(orders)}


@router.get("/pending", summary="Pending Orders")
async def pending_orders(
    restaurant_id: str,
    engine: OrderLifecycleEngine = Depends(get_lifecycle_engine),
) -> dict[str, Any]:
    orders = await engine.get_restaurant_orders(restaurant_id, OrderStatus.PENDING_RESTAURANT.value)
    return {"success": True, "data": orders, "count": len(orders)}


@router.post("/{order_id}/accept", summary="Accept Order")
async def accept_order(
    restaurant_id: str,
    order_id: str,
    body: Optional[AcceptOrderRequest] = Body(None),
    engine: OrderLifecycleEngine = Depends(get_lifecycle_engine),
) -> dict[str, Any]:
    """Start preparing. Rider dispatch happens in the background."""
    prep_time = body.prep_time if body else None
    order = await engine.accept_order(order_id, restaurant_id, prep_time)
    return {"success": True, "data": order, "message": "Order accepted successfully"}


@router.post("/{order_id}/reject", summary="Reject Order")
async def reject_order(
    restaurant_id: str,
    order_id: str,
    body: Optional[RejectOrderRequest] = Body(None),
    engine: OrderLifecycleEngine = Depends(get_lifecycle_engine),
) -> dict[str, Any]:
    reason = body.reason if body else None
    order = await engine.reject_order(order_id, restaurant_id, reason)
    return {"success": True, "data": order, "message": "Order rejected"}


@router.post("/{order_id}/ready", summary="Mark Ready for Pickup")
async def mark_ready(
    restaurant_id: str,
    order_id: str,
    engine: OrderLifecycleEngine = Depends(get_lifecycle_engine),
) -> dict[str, Any]:
    order = await engine.mark_ready(order_id, restaurant_id)
    return {"success": True, "data": order, "message": "Order marked as ready for pickup"}
