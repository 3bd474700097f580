"""
SQLAlchemy Database Models and Order State Machine

The unified_orders table is shared by the customer app, the restaurant
dashboard and the rider backend. The status workflow lives here too so
the store, the lifecycle engine and the routes agree on one definition.

Author: Khalil Bannouri
Version: 1.0.0
"""

import enum
from typing import Optional

from sqlalchemy import Column, DateTime, Float, Index, Integer, JSON, String, Text

from app.database import Base


class OrderStatus(str, enum.Enum):
    """Order status workflow."""
    PENDING_RESTAURANT = "pending_restaurant"
    PREPARING = "preparing"
    READY_FOR_PICKUP = "ready_for_pickup"
    RIDER_ASSIGNED = "rider_assigned"
    PICKED_UP = "picked_up"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    REJECTED = "rejected"
    CANCELLED = "cancelled"

    @classmethod
    def parse(cls, value: str) -> Optional["OrderStatus"]:
        """Return the member for ``value`` or None if unrecognized."""
        try:
            return cls(value)
        except ValueError:
            return None


class PaymentMethod(str, enum.Enum):
    CASH_ON_DELIVERY = "cash_on_delivery"
    ONLINE = "online"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class RefundStatus(str, enum.Enum):
    INITIATED = "initiated"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


# =============================================================================
# STATE MACHINE
# =============================================================================

TERMINAL_STATUSES = frozenset({
    OrderStatus.DELIVERED,
    OrderStatus.REJECTED,
    OrderStatus.CANCELLED,
})

NON_TERMINAL_STATUSES = frozenset(set(OrderStatus) - TERMINAL_STATUSES)

# Statuses shown on the restaurant's "active" board
ACTIVE_STATUSES = (
    OrderStatus.PENDING_RESTAURANT,
    OrderStatus.PREPARING,
    OrderStatus.READY_FOR_PICKUP,
)

# Success path, in order
SUCCESS_PATH = (
    OrderStatus.PENDING_RESTAURANT,
    OrderStatus.PREPARING,
    OrderStatus.READY_FOR_PICKUP,
    OrderStatus.RIDER_ASSIGNED,
    OrderStatus.PICKED_UP,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED,
)

ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING_RESTAURANT: frozenset({
        OrderStatus.PREPARING, OrderStatus.REJECTED, OrderStatus.CANCELLED,
    }),
    OrderStatus.PREPARING: frozenset({OrderStatus.READY_FOR_PICKUP, OrderStatus.CANCELLED}),
    OrderStatus.READY_FOR_PICKUP: frozenset({OrderStatus.RIDER_ASSIGNED, OrderStatus.CANCELLED}),
    OrderStatus.RIDER_ASSIGNED: frozenset({OrderStatus.PICKED_UP, OrderStatus.CANCELLED}),
    OrderStatus.PICKED_UP: frozenset({OrderStatus.OUT_FOR_DELIVERY, OrderStatus.CANCELLED}),
    OrderStatus.OUT_FOR_DELIVERY: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.REJECTED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

# Timestamp column written (once) when a status is reached
STATUS_TIMESTAMPS: dict[OrderStatus, str] = {
    OrderStatus.PREPARING: "accepted_at",
    OrderStatus.READY_FOR_PICKUP: "ready_at",
    OrderStatus.RIDER_ASSIGNED: "rider_assigned_at",
    OrderStatus.PICKED_UP: "picked_up_at",
    OrderStatus.OUT_FOR_DELIVERY: "out_for_delivery_at",
    OrderStatus.DELIVERED: "delivered_at",
    OrderStatus.REJECTED: "rejected_at",
    OrderStatus.CANCELLED: "cancelled_at",
}


def can_transition(current: OrderStatus, new: OrderStatus) -> bool:
    """Check the adjacency table."""
    return new in ALLOWED_TRANSITIONS.get(current, frozenset())


def is_terminal(status: str) -> bool:
    # str-enum members hash and compare equal to their values
    return status in TERMINAL_STATUSES


# =============================================================================
# TABLE
# =============================================================================

class UnifiedOrder(Base):
    """
    Central table for all orders across the platform.

    Rows are never deleted in normal operation; they are kept for history.
    """
    __tablename__ = "unified_orders"

    id = Column(String(36), primary_key=True)
    order_id = Column(String(40), unique=True, nullable=False, index=True)

    # =========================================================================
    # CUSTOMER
    # =========================================================================
    customer_id = Column(String(64), nullable=True, index=True)
    customer_name = Column(String(100), nullable=False)
    customer_phone = Column(String(20), nullable=False)
    customer_email = Column(String(255), nullable=True)

    # =========================================================================
    # DELIVERY
    # =========================================================================
    delivery_address = Column(Text, nullable=False)
    delivery_location = Column(JSON, nullable=True)  # {type: "Point", coordinates: [lng, lat]}

    # =========================================================================
    # RESTAURANT
    # =========================================================================
    restaurant_id = Column(String(64), nullable=False, index=True)
    restaurant_name = Column(String(255), nullable=False)

    # =========================================================================
    # ITEMS & PRICING
    # =========================================================================
    items = Column(JSON, nullable=False)  # [{name, quantity, price, notes}]
    subtotal = Column(Float, nullable=False)
    delivery_fee = Column(Float, nullable=False, default=30.0)
    platform_fee = Column(Float, nullable=False, default=8.0)
    total = Column(Float, nullable=False)

    # =========================================================================
    # PAYMENT
    # =========================================================================
    payment_method = Column(String(20), nullable=False, default=PaymentMethod.CASH_ON_DELIVERY.value)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)

    # =========================================================================
    # WORKFLOW
    # =========================================================================
    status = Column(String(30), nullable=False, default=OrderStatus.PENDING_RESTAURANT.value, index=True)
    verification_code = Column(String(4), nullable=False)
    prep_time = Column(Integer, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    # =========================================================================
    # RIDER INTEGRATION
    # =========================================================================
    rider_order_id = Column(String(64), nullable=True)
    assigned_rider_id = Column(String(64), nullable=True)
    rider_name = Column(String(100), nullable=True)
    rider_phone = Column(String(20), nullable=True)

    # =========================================================================
    # REFUNDS
    # =========================================================================
    refund_status = Column(String(20), nullable=True)
    refund_amount = Column(Float, nullable=True)
    refund_reason = Column(Text, nullable=True)

    # =========================================================================
    # NOTES
    # =========================================================================
    customer_notes = Column(Text, nullable=True)
    restaurant_notes = Column(Text, nullable=True)

    # =========================================================================
    # TIMESTAMPS
    # =========================================================================
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    ready_at = Column(DateTime(timezone=True), nullable=True)
    rider_assigned_at = Column(DateTime(timezone=True), nullable=True)
    picked_up_at = Column(DateTime(timezone=True), nullable=True)
    out_for_delivery_at = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        # Restaurant dashboard queue
        Index("idx_unified_orders_restaurant_status", "restaurant_id", "status", "created_at"),
    )

    def __repr__(self):
        return f"<UnifiedOrder {self.order_id} - {self.restaurant_name} - {self.status}>"


ORDER_COLUMNS = tuple(c.key for c in UnifiedOrder.__table__.columns)
