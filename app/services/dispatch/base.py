"""
Delivery Dispatch Abstract Base Class

Defines the interface for handing an accepted order to the rider
subsystem. Both MockDispatchService and HttpDispatchService implement it.

Dispatch is best-effort: implementations report failure through
DispatchResult instead of raising, and nobody retries.

Author: Khalil Bannouri
Version: 1.0.0
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional


# Placeholder until restaurant coordinates are stored with the order
NULL_ISLAND = {"type": "Point", "coordinates": [0, 0]}


@dataclass
class DispatchResult:
    """
    Result of one dispatch attempt.

    Attributes:
        success: Whether the rider backend accepted the order
        rider_order_id: Identifier assigned by the rider backend
        error_message: Error description if dispatch failed
        status_code: HTTP status returned by the rider backend, if any
        response_time_ms: Round-trip time
    """
    success: bool
    rider_order_id: Optional[str] = None
    error_message: Optional[str] = None
    status_code: Optional[int] = None
    response_time_ms: float = 0.0


class BaseDispatchService(ABC):
    """Abstract base class for delivery dispatch."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name."""
        pass

    def build_payload(self, order: dict[str, Any]) -> dict[str, Any]:
        """
        Convert an order row into the rider backend's order-creation body.

        Items are reduced to name/qty/price; the notes line carries the
        order id and verification code so the rider can quote them.
        """
        items = [
            {
                "name": item.get("name"),
                "qty": item.get("quantity") or item.get("qty") or 1,
                "price": item.get("price"),
            }
            for item in order.get("items") or []
        ]

        payment_method = (
            "cash_on_delivery"
            if order.get("payment_method") == "cash_on_delivery"
            else "online"
        )

        return {
            "customerName": order.get("customer_name"),
            "customerPhone": order.get("customer_phone"),
            "pickupAddress": order.get("restaurant_name"),
            "pickupLocation": dict(NULL_ISLAND),
            "dropAddress": order.get("delivery_address"),
            "dropLocation": order.get("delivery_location") or dict(NULL_ISLAND),
            "items": items,
            "price": order.get("total"),
            "paymentMethod": payment_method,
            "notes": (
                f"Order ID: {order.get('order_id')} | "
                f"Verification Code: {order.get('verification_code')}"
            ),
            "myezzOrderId": order.get("order_id"),
        }

    @abstractmethod
    async def dispatch(self, order: dict[str, Any]) -> DispatchResult:
        """Send an accepted order to the rider backend."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check rider backend connectivity."""
        pass

    async def close(self) -> None:
        """Release any held resources."""
        return None
