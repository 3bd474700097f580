"""
Order Lifecycle Engine

Owns every order state transition. Each mutation is validated against the
order's current status and then written with a conditional update keyed
on that same status, so when two callers race on one order exactly one
write lands and the other fails with InvalidTransition.

Successful transitions fan out through the EventHub; an accept also hands
the order to the delivery dispatch adapter in a background task.

Author: Khalil Bannouri
Version: 1.0.0
"""

import asyncio
import logging
import secrets
import string
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from app.core.config import Settings, get_settings
from app.core.errors import (
    InvalidCode,
    InvalidStatus,
    InvalidTransition,
    NotFound,
    ValidationError,
)
from app.models import (
    ACTIVE_STATUSES,
    NON_TERMINAL_STATUSES,
    SUCCESS_PATH,
    STATUS_TIMESTAMPS,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    RefundStatus,
    can_transition,
    is_terminal,
)
from app.schemas import REQUIRED_ORDER_FIELDS, OrderCreate, OrderView
from app.services.dispatch.base import BaseDispatchService
from app.services.realtime.hub import EventHub
from app.services.store.base import BaseOrderStore, OrderRow

logger = logging.getLogger(__name__)


# =============================================================================
# IDENTIFIERS
# =============================================================================

ORDER_ID_ALPHABET = string.digits + string.ascii_uppercase
ORDER_ID_SUFFIX_LENGTH = 10

# No 0/O or 1/I, so codes survive being read aloud at the door
VERIFICATION_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
VERIFICATION_CODE_LENGTH = 4


def to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(ORDER_ID_ALPHABET[rem])
    return "".join(reversed(digits))


def generate_order_id(prefix: str = "MYE") -> str:
    """e.g. MYE-LX3K9Q2A-7F3KQ9ZP2D"""
    stamp = to_base36(int(time.time() * 1000))
    suffix = "".join(secrets.choice(ORDER_ID_ALPHABET) for _ in range(ORDER_ID_SUFFIX_LENGTH))
    return f"{prefix.upper()}-{stamp}-{suffix}"


def generate_verification_code() -> str:
    return "".join(
        secrets.choice(VERIFICATION_CODE_ALPHABET) for _ in range(VERIFICATION_CODE_LENGTH)
    )


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# WEBHOOK METADATA
# =============================================================================

# Extra columns a status update may carry, keyed by both spellings
_EXTRA_FIELDS = {
    "assigned_rider_id": "assigned_rider_id",
    "assignedRiderId": "assigned_rider_id",
    "rider_name": "rider_name",
    "riderName": "rider_name",
    "rider_phone": "rider_phone",
    "riderPhone": "rider_phone",
    "rider_order_id": "rider_order_id",
    "riderOrderId": "rider_order_id",
    "restaurant_notes": "restaurant_notes",
    "restaurantNotes": "restaurant_notes",
    "customer_notes": "customer_notes",
    "customerNotes": "customer_notes",
    "cancellation_reason": "cancellation_reason",
    "cancellationReason": "cancellation_reason",
}

# Customer-facing progress milestones
TIMELINE_MILESTONES = (
    (OrderStatus.PENDING_RESTAURANT, "Order Placed", "created_at"),
    (OrderStatus.PREPARING, "Restaurant Accepted", "accepted_at"),
    (OrderStatus.READY_FOR_PICKUP, "Ready for Pickup", "ready_at"),
    (OrderStatus.RIDER_ASSIGNED, "Rider Assigned", "rider_assigned_at"),
    (OrderStatus.PICKED_UP, "Picked Up by Rider", "picked_up_at"),
    (OrderStatus.OUT_FOR_DELIVERY, "Out for Delivery", "out_for_delivery_at"),
    (OrderStatus.DELIVERED, "Delivered", "delivered_at"),
)


def format_order(row: OrderRow) -> dict[str, Any]:
    """Store row -> camelCase JSON-ready dict."""
    return OrderView.model_validate(row).model_dump(by_alias=True, mode="json")


class OrderLifecycleEngine:
    """
    Order state machine.

    Example:
        >>> engine = OrderLifecycleEngine(store, hub, dispatcher)
        >>> order = await engine.create_order(payload)
        >>> await engine.accept_order(order["orderId"], order["restaurantId"], 20)
    """

    def __init__(
        self,
        store: BaseOrderStore,
        hub: EventHub,
        dispatcher: BaseDispatchService,
        settings: Optional[Settings] = None,
    ):
        self.store = store
        self.hub = hub
        self.dispatcher = dispatcher
        self.settings = settings or get_settings()
        self._background: set[asyncio.Task] = set()

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _load(self, order_id: str, restaurant_id: Optional[Any] = None) -> OrderRow:
        row = await self.store.get(order_id)
        if row is None:
            raise NotFound("Order not found")
        if restaurant_id is not None and str(row["restaurant_id"]) != str(restaurant_id):
            raise NotFound("Order not found")
        return row

    async def _transition(
        self,
        row: OrderRow,
        new_status: OrderStatus,
        changes: dict[str, Any],
    ) -> OrderRow:
        """
        Write ``changes`` only if the status is still what we validated.

        Raises:
            NotFound: the order vanished in between
            InvalidTransition: another caller moved the order first
        """
        now = utc_now()
        current = row["status"]

        values = dict(changes)
        values["status"] = new_status.value
        values["updated_at"] = now

        stamp_column = STATUS_TIMESTAMPS.get(new_status)
        if stamp_column and row.get(stamp_column) is None:
            values.setdefault(stamp_column, now)

        updated = await self.store.update(row["order_id"], values, expected_statuses=[current])
        if updated is not None:
            return updated

        latest = await self.store.get(row["order_id"])
        if latest is None:
            raise NotFound("Order not found")
        raise InvalidTransition(
            f"Order is {latest['status']}, cannot move to {new_status.value}"
        )

    def _refund_fields(self, row: OrderRow, reason: Optional[str]) -> dict[str, Any]:
        """Refund columns to write alongside a rejection or cancellation."""
        if (
            row.get("payment_method") == PaymentMethod.ONLINE.value
            and row.get("payment_status") == PaymentStatus.PAID.value
        ):
            logger.info(f"💸 Refund initiated for order {row['order_id']} ({row['total']})")
            return {
                "refund_status": RefundStatus.INITIATED.value,
                "refund_amount": row["total"],
                "refund_reason": reason,
            }
        return {}

    def _spawn(self, coro, name: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def drain(self) -> None:
        """Wait for outstanding background work (dispatch calls)."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # =========================================================================
    # CREATE
    # =========================================================================

    async def create_order(self, data: dict[str, Any]) -> dict[str, Any]:
        """
        Validate and persist a new order, then alert the restaurant.

        Args:
            data: Order payload in camelCase (client) or snake_case keys

        Returns:
            The stored order in client shape

        Raises:
            ValidationError: required fields missing or malformed
        """
        missing = []
        for field in REQUIRED_ORDER_FIELDS:
            value = data.get(field)
            if value is None:
                value = data.get(_camel_to_snake(field))
            if value is None or value == "" or value == []:
                missing.append(field)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        try:
            order_in = OrderCreate.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(_describe_validation_error(e)) from e

        now = utc_now()
        row: OrderRow = {
            "id": str(uuid.uuid4()),
            "order_id": generate_order_id(self.settings.order_id_prefix),
            "customer_id": order_in.customer_id,
            "customer_name": order_in.customer_name,
            "customer_phone": order_in.customer_phone,
            "customer_email": order_in.customer_email,
            "delivery_address": order_in.delivery_address,
            "delivery_location": order_in.delivery_location,
            "restaurant_id": str(order_in.restaurant_id),
            "restaurant_name": order_in.restaurant_name,
            "items": [item.model_dump(exclude_none=True) for item in order_in.items],
            "subtotal": order_in.computed_subtotal,
            "delivery_fee": (
                order_in.delivery_fee
                if order_in.delivery_fee is not None
                else self.settings.default_delivery_fee
            ),
            "platform_fee": (
                order_in.platform_fee
                if order_in.platform_fee is not None
                else self.settings.default_platform_fee
            ),
            "total": order_in.total,
            "payment_method": order_in.payment_method.value,
            "payment_status": order_in.payment_status.value,
            "status": OrderStatus.PENDING_RESTAURANT.value,
            "verification_code": generate_verification_code(),
            "customer_notes": order_in.notes,
            "created_at": now,
            "updated_at": now,
        }

        stored = await self.store.insert(row)
        order = format_order(stored)

        logger.info(
            f"✅ Order {stored['order_id']} created for restaurant {stored['restaurant_id']} "
            f"({len(stored['items'])} items, total {stored['total']})"
        )
        self.hub.notify_new_order(stored["restaurant_id"], order)

        return order

    # =========================================================================
    # RESTAURANT ACTIONS
    # =========================================================================

    async def accept_order(
        self,
        order_id: str,
        restaurant_id: Any,
        prep_time: Optional[int] = None,
    ) -> dict[str, Any]:
        """pending_restaurant -> preparing, then dispatch in the background."""
        row = await self._load(order_id, restaurant_id)
        if row["status"] != OrderStatus.PENDING_RESTAURANT:
            raise InvalidTransition(f"Order cannot be accepted. Current status: {row['status']}")

        if prep_time is None:
            prep_time = self.settings.default_prep_time_minutes
        updated = await self._transition(row, OrderStatus.PREPARING, {"prep_time": prep_time})
        order = format_order(updated)

        logger.info(f"✅ Order {order_id} accepted by restaurant {restaurant_id} ({prep_time} min)")

        self._spawn(self._dispatch(updated), name=f"dispatch-{order_id}")

        self.hub.emit_to_room("restaurant", updated["restaurant_id"], "order_updated", {"order": order})
        self.hub.notify_customer(updated.get("customer_id"), "order_accepted", {
            "orderId": order_id,
            "prepTime": prep_time,
            "message": f"Your order has been accepted! Estimated time: {prep_time} minutes",
        })

        return order

    async def _dispatch(self, row: OrderRow) -> None:
        order_id = row["order_id"]
        try:
            result = await self.dispatcher.dispatch(row)
        except Exception:
            logger.exception(f"❌ Dispatch crashed for order {order_id}")
            return

        if not result.success:
            logger.error(f"❌ Failed to send order {order_id} to rider system: {result.error_message}")
            return

        if result.rider_order_id:
            try:
                await self.store.update(
                    order_id,
                    {"rider_order_id": result.rider_order_id, "updated_at": utc_now()},
                    expected_statuses=[s.value for s in NON_TERMINAL_STATUSES],
                )
            except Exception:
                logger.exception(f"Could not record rider order id for {order_id}")

    async def reject_order(
        self,
        order_id: str,
        restaurant_id: Any,
        reason: Optional[str] = None,
    ) -> dict[str, Any]:
        """pending_restaurant -> rejected, initiating a refund if paid online."""
        row = await self._load(order_id, restaurant_id)
        if row["status"] != OrderStatus.PENDING_RESTAURANT:
            raise InvalidTransition(f"Order cannot be rejected. Current status: {row['status']}")

        reason = reason or self.settings.default_rejection_reason
        changes = {"rejection_reason": reason, **self._refund_fields(row, reason)}
        updated = await self._transition(row, OrderStatus.REJECTED, changes)
        order = format_order(updated)

        logger.info(f"❌ Order {order_id} rejected by restaurant {restaurant_id}: {reason}")

        self.hub.emit_to_room("restaurant", updated["restaurant_id"], "order_updated", {"order": order})
        self.hub.notify_customer(updated.get("customer_id"), "order_rejected", {
            "orderId": order_id,
            "reason": reason,
            "message": "Sorry, the restaurant could not accept your order.",
        })

        return order

    async def mark_ready(self, order_id: str, restaurant_id: Any) -> dict[str, Any]:
        """preparing -> ready_for_pickup."""
        row = await self._load(order_id, restaurant_id)
        if row["status"] != OrderStatus.PREPARING:
            raise InvalidTransition(
                f"Order must be in preparing status. Current: {row['status']}"
            )

        updated = await self._transition(row, OrderStatus.READY_FOR_PICKUP, {})
        order = format_order(updated)

        logger.info(f"🍽️ Order {order_id} ready for pickup")

        self.hub.emit_to_room("restaurant", updated["restaurant_id"], "order_updated", {"order": order})
        self.hub.notify_customer(updated.get("customer_id"), "order_ready", {
            "orderId": order_id,
            "message": "Your order is ready and waiting for a rider.",
        })
        self.hub.broadcast_order_update(order_id, {
            "status": updated["status"],
            "message": "Your order is ready for pickup!",
        })

        return order

    async def cancel_order(
        self,
        order_id: str,
        reason: Optional[str] = None,
        cancelled_by: str = "customer",
    ) -> dict[str, Any]:
        """Any non-terminal status -> cancelled."""
        row = await self._load(order_id)
        if is_terminal(row["status"]):
            raise InvalidTransition(f"Order cannot be cancelled. Current status: {row['status']}")

        reason = reason or f"Cancelled by {cancelled_by}"
        changes = {"cancellation_reason": reason, **self._refund_fields(row, reason)}
        updated = await self._transition(row, OrderStatus.CANCELLED, changes)
        order = format_order(updated)

        logger.info(f"🚫 Order {order_id} cancelled by {cancelled_by}: {reason}")

        self.hub.emit_to_room("restaurant", updated["restaurant_id"], "order_updated", {"order": order})
        self.hub.notify_customer(updated.get("customer_id"), "order_cancelled", {
            "orderId": order_id,
            "reason": reason,
            "cancelledBy": cancelled_by,
        })
        self.hub.broadcast_order_update(order_id, {
            "status": updated["status"],
            "message": "This order has been cancelled.",
        })

        return order

    # =========================================================================
    # GENERIC / WEBHOOK TRANSITIONS
    # =========================================================================

    async def update_order_status(
        self,
        order_id: str,
        new_status: str,
        extra: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """
        Move an order to any recognized status.

        Used by rider webhooks and admin tooling. Sequencing is the caller's
        job unless STRICT_WEBHOOK_TRANSITIONS is on; terminal orders are
        never touched either way. Broadcasts to every connection.
        """
        status = OrderStatus.parse(new_status) if isinstance(new_status, str) else None
        if status is None:
            raise InvalidStatus(f"Invalid status: {new_status}")

        changes: dict[str, Any] = {}
        unknown = []
        for key, value in (extra or {}).items():
            column = _EXTRA_FIELDS.get(key)
            if column is None:
                unknown.append(key)
            else:
                changes[column] = value
        if unknown:
            raise ValidationError(f"Unsupported fields: {', '.join(sorted(unknown))}")

        row = await self._load(order_id)
        current = row["status"]

        if is_terminal(current):
            raise InvalidTransition(f"Order is already {current}")
        if (
            self.settings.strict_webhook_transitions
            and current != status
            and not can_transition(OrderStatus(current), status)
        ):
            raise InvalidTransition(f"Cannot move order from {current} to {status.value}")

        updated = await self._transition(row, status, changes)
        order = format_order(updated)

        logger.info(f"🔄 Order {order_id} status: {current} -> {status.value}")

        self.hub.broadcast("order_status_changed", {
            "orderId": order_id,
            "status": status.value,
            "order": order,
        })

        return order

    async def assign_rider(
        self,
        order_id: str,
        rider_id: str,
        rider_name: Optional[str] = None,
        rider_phone: Optional[str] = None,
    ) -> dict[str, Any]:
        order = await self.update_order_status(order_id, OrderStatus.RIDER_ASSIGNED.value, {
            "assigned_rider_id": rider_id,
            "rider_name": rider_name,
            "rider_phone": rider_phone,
        })

        self.hub.notify_rider(rider_id, "order_assigned", {"order": order})
        self.hub.broadcast_order_update(order_id, {
            "status": order["status"],
            "riderName": rider_name,
            "message": f"{rider_name or 'A rider'} has been assigned to your order",
        })
        return order

    async def mark_picked_up(self, order_id: str) -> dict[str, Any]:
        order = await self.update_order_status(order_id, OrderStatus.PICKED_UP.value)
        self.hub.broadcast_order_update(order_id, {
            "status": order["status"],
            "message": "Your order has been picked up!",
        })
        return order

    async def mark_out_for_delivery(self, order_id: str) -> dict[str, Any]:
        order = await self.update_order_status(order_id, OrderStatus.OUT_FOR_DELIVERY.value)
        self.hub.broadcast_order_update(order_id, {
            "status": order["status"],
            "message": "Your order is on the way!",
        })
        return order

    async def confirm_delivery(self, order_id: str, verification_code: Optional[str]) -> dict[str, Any]:
        """
        Check the hand-off code, then mark delivered.

        Raises:
            ValidationError: no code supplied
            InvalidCode: code does not match (order left unchanged)
        """
        if not verification_code or not str(verification_code).strip():
            raise ValidationError("Verification code is required")

        row = await self._load(order_id)
        if str(verification_code).strip().upper() != str(row["verification_code"]).upper():
            logger.warning(f"Wrong verification code for order {order_id}")
            raise InvalidCode("Invalid verification code")

        order = await self.update_order_status(order_id, OrderStatus.DELIVERED.value)
        self.hub.broadcast_order_update(order_id, {
            "status": order["status"],
            "message": "Your order has been delivered. Enjoy your meal!",
        })
        return order

    # =========================================================================
    # READS
    # =========================================================================

    async def get_order_by_id(self, order_id: str) -> dict[str, Any]:
        return format_order(await self._load(order_id))

    async def get_customer_orders(self, customer_id: Any, limit: Optional[int] = None) -> list[dict[str, Any]]:
        rows = await self.store.query(
            customer_id=str(customer_id),
            limit=limit or self.settings.customer_orders_limit,
        )
        return [format_order(r) for r in rows]

    async def get_restaurant_orders(
        self,
        restaurant_id: Any,
        status: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        """
        Restaurant queue, newest first.

        Args:
            status: None for all, "active" for the open board, or one status
        """
        if not status:
            statuses = None
        elif status == "active":
            statuses = [s.value for s in ACTIVE_STATUSES]
        else:
            parsed = OrderStatus.parse(status)
            if parsed is None:
                raise InvalidStatus(f"Invalid status: {status}")
            statuses = [parsed.value]

        rows = await self.store.query(
            restaurant_id=str(restaurant_id),
            statuses=statuses,
            limit=limit or self.settings.restaurant_orders_limit,
        )
        return [format_order(r) for r in rows]

    async def track_order(self, order_id: str) -> dict[str, Any]:
        """Order plus a derived milestone timeline."""
        row = await self._load(order_id)
        status = row["status"]
        reached = SUCCESS_PATH.index(status) if status in SUCCESS_PATH else -1

        timeline = []
        for index, (milestone, label, column) in enumerate(TIMELINE_MILESTONES):
            stamp = row.get(column)
            timeline.append({
                "status": milestone.value,
                "label": label,
                "completed": index <= reached or stamp is not None,
                "time": stamp.isoformat() if stamp is not None else None,
            })

        return {
            "order": format_order(row),
            "timeline": timeline,
            "currentStatus": status,
        }

    async def delete_order(self, order_id: str) -> bool:
        """Erase an order. Only routed in development."""
        deleted = await self.store.delete(order_id)
        if not deleted:
            raise NotFound("Order not found")
        logger.warning(f"🗑️ Order {order_id} erased")
        return True


def _camel_to_snake(name: str) -> str:
    return "".join(f"_{c.lower()}" if c.isupper() else c for c in name)


def _describe_validation_error(exc: PydanticValidationError) -> str:
    """First pydantic error as one readable line."""
    errors = exc.errors()
    if not errors:
        return "Invalid order data"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"Invalid {location}: {first.get('msg')}" if location else first.get("msg", "Invalid order data")
