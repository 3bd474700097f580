"""
Mock Dispatch Service

Simulates the rider backend for development. No HTTP call is made; the
payload is built and logged and a synthetic rider order id returned.

Author: Khalil Bannouri
Version: 1.0.0
"""

import asyncio
import logging
import random
import uuid
from typing import Any

from app.services.dispatch.base import BaseDispatchService, DispatchResult

logger = logging.getLogger(__name__)


class MockDispatchService(BaseDispatchService):
    """Mock rider backend for development."""

    def __init__(
        self,
        failure_rate: float = 0.0,
        min_latency: float = 0.05,
        max_latency: float = 0.2,
    ):
        self.failure_rate = failure_rate
        self.min_latency = min_latency
        self.max_latency = max_latency
        self.dispatched: list[dict[str, Any]] = []

        logger.info(f"MockDispatchService initialized (failure_rate={failure_rate:.0%})")

    @property
    def provider_name(self) -> str:
        return "mock"

    async def _simulate_latency(self) -> None:
        await asyncio.sleep(random.uniform(self.min_latency, self.max_latency))

    def _should_fail(self) -> bool:
        return random.random() < self.failure_rate

    async def dispatch(self, order: dict[str, Any]) -> DispatchResult:
        """Pretend to create a rider order."""
        await self._simulate_latency()

        payload = self.build_payload(order)

        if self._should_fail():
            logger.warning(f"Mock dispatch failed (simulated) for order {order.get('order_id')}")
            return DispatchResult(success=False, error_message="Simulated dispatch failure")

        self.dispatched.append(payload)
        rider_order_id = f"rider_mock_{uuid.uuid4().hex[:16]}"
        logger.info(f"Mock dispatch for order {order.get('order_id')} (ID: {rider_order_id})")

        return DispatchResult(success=True, rider_order_id=rider_order_id, status_code=201)

    async def health_check(self) -> bool:
        """Mock always returns healthy."""
        return True
