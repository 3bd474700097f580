"""
HTTP Dispatch Service Implementation

Production implementation that POSTs accepted orders to the rider
backend's order-creation endpoint. Used when ENV_MODE=production or
ENV_MODE=staging.

Requirements:
    - RIDER_BACKEND_URL must point at the rider backend
    - The rider backend must answer POST /api/orders with {"_id": ...}

Author: Khalil Bannouri
Version: 1.0.0
"""

import logging
from datetime import datetime
from typing import Any, Optional

import httpx

from app.core.config import get_settings
from app.services.dispatch.base import BaseDispatchService, DispatchResult

logger = logging.getLogger(__name__)


class HttpDispatchService(BaseDispatchService):
    """
    Rider backend client over httpx.

    One AsyncClient is shared for the process; every call is bounded by
    DISPATCH_TIMEOUT_SECONDS and never retried.

    Example:
        >>> service = HttpDispatchService()
        >>> result = await service.dispatch(order_row)
        >>> result.rider_order_id
        '65f1c2...'
    """

    ORDERS_PATH = "/api/orders"

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()

        self.base_url = (base_url or settings.rider_backend_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.dispatch_timeout_seconds

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

        logger.info(f"HttpDispatchService initialized (rider backend: {self.base_url})")

    @property
    def provider_name(self) -> str:
        return "rider-backend"

    async def dispatch(self, order: dict[str, Any]) -> DispatchResult:
        """POST the order to the rider backend."""
        start_time = datetime.now()
        order_id = order.get("order_id")
        payload = self.build_payload(order)

        try:
            response = await self._client.post(self.ORDERS_PATH, json=payload)
            elapsed_ms = (datetime.now() - start_time).total_seconds() * 1000

            if not response.is_success:
                logger.error(
                    f"❌ Rider backend rejected order {order_id}: "
                    f"HTTP {response.status_code}"
                )
                return DispatchResult(
                    success=False,
                    error_message=f"Rider backend returned HTTP {response.status_code}",
                    status_code=response.status_code,
                    response_time_ms=elapsed_ms,
                )

            body = response.json()
            rider_order_id = body.get("_id") or body.get("id")

            logger.info(
                f"✅ Order {order_id} sent to rider system. "
                f"Rider Order ID: {rider_order_id}"
            )
            return DispatchResult(
                success=True,
                rider_order_id=str(rider_order_id) if rider_order_id is not None else None,
                status_code=response.status_code,
                response_time_ms=elapsed_ms,
            )

        except httpx.TimeoutException:
            elapsed_ms = (datetime.now() - start_time).total_seconds() * 1000
            logger.error(f"❌ Rider backend timed out for order {order_id}")

            return DispatchResult(
                success=False,
                error_message="Rider backend timed out",
                response_time_ms=elapsed_ms,
            )

        except httpx.HTTPError as e:
            elapsed_ms = (datetime.now() - start_time).total_seconds() * 1000
            logger.error(f"❌ Failed to send order {order_id} to rider system: {e}")

            return DispatchResult(
                success=False,
                error_message=str(e) or e.__class__.__name__,
                response_time_ms=elapsed_ms,
            )

        except ValueError as e:
            # 2xx with a body that is not JSON
            elapsed_ms = (datetime.now() - start_time).total_seconds() * 1000
            logger.error(f"❌ Unreadable rider backend response for order {order_id}: {e}")

            return DispatchResult(
                success=False,
                error_message="Invalid response from rider backend",
                response_time_ms=elapsed_ms,
            )

    async def health_check(self) -> bool:
        """Any HTTP answer from the rider backend counts as reachable."""
        try:
            await self._client.get("/")
            return True
        except httpx.HTTPError as e:
            logger.error(f"Rider backend health check failed - {e}")
            return False

    async def close(self) -> None:
        await self._client.aclose()
