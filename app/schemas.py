"""
Pydantic Schemas for Request/Response Validation

Clients speak camelCase JSON (the customer app, restaurant dashboard and
rider backend were all written against it); the store speaks snake_case.
Every schema accepts both spellings on input and emits camelCase.

Author: Khalil Bannouri
Version: 1.0.0
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.models import PaymentMethod, PaymentStatus


class CamelModel(BaseModel):
    """Base for all client-facing schemas."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        coerce_numbers_to_str=True,
    )


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class OrderItemCreate(CamelModel):
    """Single line item in an order."""
    name: str = Field(..., min_length=1, max_length=200, examples=["Paneer Tikka"])
    quantity: int = Field(
        default=1,
        ge=1,
        le=99,
        validation_alias=AliasChoices("quantity", "qty"),
        examples=[2],
    )
    price: float = Field(..., ge=0, examples=[150.0])
    notes: Optional[str] = Field(None, max_length=500)
    is_veg: Optional[bool] = None

    @property
    def line_total(self) -> float:
        return round(self.quantity * self.price, 2)


# Request keys that must be present (camelCase as sent by the customer app)
REQUIRED_ORDER_FIELDS = (
    "customerName",
    "customerPhone",
    "deliveryAddress",
    "restaurantId",
    "restaurantName",
    "items",
    "total",
)


class OrderCreate(CamelModel):
    """Request schema for placing a new order."""

    # Customer
    customer_id: Optional[str] = Field(None, max_length=64)
    customer_name: str = Field(..., min_length=1, max_length=100, examples=["Asha Patel"])
    customer_phone: str = Field(..., min_length=5, max_length=20, examples=["9876543210"])
    customer_email: Optional[str] = Field(None, max_length=255)

    # Delivery
    delivery_address: str = Field(..., min_length=1, examples=["12 MG Road, Pune"])
    delivery_location: Optional[dict[str, Any]] = None

    # Restaurant
    restaurant_id: str = Field(..., min_length=1, max_length=64, examples=["1"])
    restaurant_name: str = Field(..., min_length=1, max_length=255)

    # Items & pricing
    items: list[OrderItemCreate] = Field(..., min_length=1)
    subtotal: Optional[float] = Field(None, ge=0)
    delivery_fee: Optional[float] = Field(None, ge=0)
    platform_fee: Optional[float] = Field(None, ge=0)
    total: float = Field(..., ge=0, examples=[338.0])

    # Payment
    payment_method: PaymentMethod = PaymentMethod.CASH_ON_DELIVERY
    payment_status: PaymentStatus = PaymentStatus.PENDING

    notes: Optional[str] = Field(None, max_length=1000)

    @property
    def computed_subtotal(self) -> float:
        return round(sum(item.line_total for item in self.items), 2)


class AcceptOrderRequest(CamelModel):
    prep_time: Optional[int] = Field(None, ge=1, le=300, examples=[20])


class RejectOrderRequest(CamelModel):
    reason: Optional[str] = Field(None, max_length=500, examples=["no capacity"])


class CancelOrderRequest(CamelModel):
    reason: Optional[str] = Field(None, max_length=500)
    cancelled_by: str = Field(default="customer", max_length=20)


class RiderAssignedRequest(CamelModel):
    rider_id: str = Field(..., min_length=1, max_length=64)
    rider_name: Optional[str] = Field(None, max_length=100)
    rider_phone: Optional[str] = Field(None, max_length=20)


class DeliveredRequest(CamelModel):
    verification_code: Optional[str] = Field(None, max_length=10)


class StatusUpdateRequest(CamelModel):
    """Generic admin transition; any extra keys are passed through as metadata."""

    model_config = ConfigDict(extra="allow")

    status: str


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class OrderView(CamelModel):
    """Client-facing order (camelCase on the wire)."""

    id: str
    order_id: str
    customer_id: Optional[str] = None
    customer_name: str
    customer_phone: str
    customer_email: Optional[str] = None
    delivery_address: str
    delivery_location: Optional[dict[str, Any]] = None
    restaurant_id: str
    restaurant_name: str
    items: list[dict[str, Any]]
    subtotal: float
    delivery_fee: float
    platform_fee: float
    total: float
    payment_method: str
    payment_status: str
    status: str
    verification_code: str
    prep_time: Optional[int] = None
    rejection_reason: Optional[str] = None
    cancellation_reason: Optional[str] = None
    refund_status: Optional[str] = None
    refund_amount: Optional[float] = None
    refund_reason: Optional[str] = None
    rider_order_id: Optional[str] = None
    assigned_rider_id: Optional[str] = None
    rider_name: Optional[str] = None
    rider_phone: Optional[str] = None
    customer_notes: Optional[str] = None
    restaurant_notes: Optional[str] = None
    created_at: datetime
    accepted_at: Optional[datetime] = None
    ready_at: Optional[datetime] = None
    rider_assigned_at: Optional[datetime] = None
    picked_up_at: Optional[datetime] = None
    out_for_delivery_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    updated_at: datetime


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str


class HealthResponse(BaseModel):
    """Health check response."""
    success: bool = True
    status: str
    service: str
    environment: str
    store: str
    dispatch: str
    websocket: dict[str, Any]
    timestamp: datetime
