"""
Shared fixtures.

Tests run against the in-memory store in development mode unless a test
builds its own collaborators.
"""

import os

os.environ["ENV_MODE"] = "development"
os.environ["STORE_BACKEND"] = "memory"
os.environ["DEBUG"] = "false"

from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import AsyncMock

import pytest

from app.core.config import get_settings
from app.services import reset_services
from app.services.dispatch.base import BaseDispatchService, DispatchResult
from app.services.lifecycle import OrderLifecycleEngine
from app.services.realtime.hub import EventHub
from app.services.store.memory import MemoryOrderStore


@pytest.fixture(autouse=True)
def fresh_services():
    """Every test gets its own settings, store, hub and engine."""
    get_settings.cache_clear()
    reset_services()
    yield
    get_settings.cache_clear()
    reset_services()


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def store():
    return MemoryOrderStore()


@pytest.fixture
def hub():
    return EventHub(queue_size=32)


@pytest.fixture
def dispatcher():
    service = AsyncMock(spec=BaseDispatchService)
    service.dispatch.return_value = DispatchResult(success=True, rider_order_id="rider_123")
    return service


@pytest.fixture
def engine(store, hub, dispatcher, settings):
    return OrderLifecycleEngine(store, hub, dispatcher, settings)


@pytest.fixture
def order_payload() -> dict[str, Any]:
    return {
        "customerId": "cust_1",
        "customerName": "Asha Patel",
        "customerPhone": "9876543210",
        "deliveryAddress": "12 MG Road, Pune",
        "restaurantId": "1",
        "restaurantName": "Spice Route",
        "items": [{"name": "Test Item", "quantity": 2, "price": 150}],
        "total": 338.00,
    }


class Recorder:
    """Stands in for websocket.send_json and keeps every frame."""

    def __init__(self):
        self.frames: list[dict[str, Any]] = []

    async def __call__(self, frame: dict[str, Any]) -> None:
        self.frames.append(frame)

    @property
    def events(self) -> list[str]:
        return [f["event"] for f in self.frames]

    def of(self, event: str) -> list[dict[str, Any]]:
        return [f["data"] for f in self.frames if f["event"] == event]


def make_row(order_id: str, **overrides) -> dict[str, Any]:
    """A complete store row for store-level tests."""
    now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    created = overrides.pop("created_at", now)
    row = {
        "id": f"row-{order_id}",
        "order_id": order_id,
        "customer_id": "cust_1",
        "customer_name": "Asha Patel",
        "customer_phone": "9876543210",
        "customer_email": None,
        "delivery_address": "12 MG Road, Pune",
        "delivery_location": None,
        "restaurant_id": "1",
        "restaurant_name": "Spice Route",
        "items": [{"name": "Test Item", "quantity": 2, "price": 150.0}],
        "subtotal": 300.0,
        "delivery_fee": 30.0,
        "platform_fee": 8.0,
        "total": 338.0,
        "payment_method": "cash_on_delivery",
        "payment_status": "pending",
        "status": "pending_restaurant",
        "verification_code": "AB2C",
        "created_at": created,
        "updated_at": created,
    }
    row.update(overrides)
    return row


def minutes_after(minutes: int) -> datetime:
    return datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc) + timedelta(minutes=minutes)
