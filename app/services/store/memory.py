"""
In-Memory Order Store

Process-local store keyed by order id. Used when STORE_BACKEND=memory and
as the fallback when the unified_orders table has not been provisioned.

Not shared across processes: run a single instance in this mode.

Author: Khalil Bannouri
Version: 1.0.0
"""

import asyncio
import copy
import logging
from typing import Any, Iterable, Optional

from app.models import ORDER_COLUMNS
from app.services.store.base import BaseOrderStore, OrderRow

logger = logging.getLogger(__name__)


class MemoryOrderStore(BaseOrderStore):
    """
    Dict-backed order store.

    Rows are deep-copied on the way in and out so callers can never
    mutate stored state behind the store's back. Like a table row, a
    stored row carries every unified_orders column and nothing else.
    """

    def __init__(self):
        self._orders: dict[str, OrderRow] = {}
        self._lock = asyncio.Lock()

    @property
    def backend_name(self) -> str:
        return "memory"

    def __len__(self) -> int:
        return len(self._orders)

    async def insert(self, row: OrderRow) -> OrderRow:
        async with self._lock:
            order_id = row["order_id"]
            if order_id in self._orders:
                raise ValueError(f"Duplicate order id {order_id}")
            stored = {key: copy.deepcopy(row.get(key)) for key in ORDER_COLUMNS}
            self._orders[order_id] = stored
            logger.debug(f"📦 Order {order_id} stored in memory")
            return copy.deepcopy(stored)

    async def get(self, order_id: str) -> Optional[OrderRow]:
        row = self._orders.get(order_id)
        return copy.deepcopy(row) if row is not None else None

    async def query(
        self,
        restaurant_id: Optional[str] = None,
        customer_id: Optional[str] = None,
        statuses: Optional[Iterable[str]] = None,
        limit: int = 50,
    ) -> list[OrderRow]:
        wanted = set(statuses) if statuses is not None else None

        rows = [
            row for row in self._orders.values()
            if (restaurant_id is None or str(row["restaurant_id"]) == str(restaurant_id))
            and (customer_id is None or str(row.get("customer_id")) == str(customer_id))
            and (wanted is None or row["status"] in wanted)
        ]
        rows.sort(key=lambda r: r["created_at"], reverse=True)

        return [copy.deepcopy(r) for r in rows[:limit]]

    async def update(
        self,
        order_id: str,
        changes: dict[str, Any],
        expected_statuses: Optional[Iterable[str]] = None,
    ) -> Optional[OrderRow]:
        async with self._lock:
            row = self._orders.get(order_id)
            if row is None:
                return None

            if expected_statuses is not None and row["status"] not in set(expected_statuses):
                return None

            row.update(copy.deepcopy({k: v for k, v in changes.items() if k in ORDER_COLUMNS}))
            return copy.deepcopy(row)

    async def delete(self, order_id: str) -> bool:
        async with self._lock:
            return self._orders.pop(order_id, None) is not None

    async def ping(self) -> None:
        return None
