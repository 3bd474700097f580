"""
Resilient Order Store

Wraps the SQL store with a sticky fall back to the in-memory store so
the service stays demoable when the unified_orders schema has not been
provisioned. The switch happens at most once per process: at the
startup probe, or on the first SchemaMissing from the primary. Other
StoreUnavailable errors (connection resets, a restarting server) pass
through to the caller and the primary stays in use.

Orders written to the primary before a mid-life switch are not visible
afterwards. This mode is for non-production environments.

Author: Khalil Bannouri
Version: 1.0.0
"""

import logging
from typing import Any, Awaitable, Callable, Iterable, Optional, TypeVar

from app.core.errors import SchemaMissing, StoreUnavailable
from app.services.store.base import BaseOrderStore, OrderRow
from app.services.store.memory import MemoryOrderStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ResilientOrderStore(BaseOrderStore):
    """Primary store with a one-way switch to a fallback store."""

    def __init__(
        self,
        primary: BaseOrderStore,
        fallback: Optional[BaseOrderStore] = None,
    ):
        self._primary = primary
        self._fallback = fallback if fallback is not None else MemoryOrderStore()
        self._use_fallback = False

    @property
    def backend_name(self) -> str:
        active = self._fallback if self._use_fallback else self._primary
        return active.backend_name

    @property
    def primary(self) -> BaseOrderStore:
        return self._primary

    @property
    def using_fallback(self) -> bool:
        return self._use_fallback

    def _switch_to_fallback(self, reason: Exception) -> None:
        if self._use_fallback:
            return
        self._use_fallback = True
        logger.warning(
            f"⚠️ {reason} - using {self._fallback.backend_name} storage for the rest of this process"
        )

    async def probe(self) -> str:
        """
        Check the primary once at startup.

        Returns:
            Name of the backend that will serve requests
        """
        if self._use_fallback:
            return self.backend_name
        try:
            await self._primary.ping()
        except SchemaMissing as e:
            self._switch_to_fallback(e)
        except StoreUnavailable as e:
            logger.error(f"❌ Order store not reachable at startup: {e}")
        return self.backend_name

    async def _call(self, op: Callable[[BaseOrderStore], Awaitable[T]]) -> T:
        if self._use_fallback:
            return await op(self._fallback)
        try:
            return await op(self._primary)
        except SchemaMissing as e:
            self._switch_to_fallback(e)
            return await op(self._fallback)

    async def insert(self, row: OrderRow) -> OrderRow:
        return await self._call(lambda s: s.insert(row))

    async def get(self, order_id: str) -> Optional[OrderRow]:
        return await self._call(lambda s: s.get(order_id))

    async def query(
        self,
        restaurant_id: Optional[str] = None,
        customer_id: Optional[str] = None,
        statuses: Optional[Iterable[str]] = None,
        limit: int = 50,
    ) -> list[OrderRow]:
        statuses = list(statuses) if statuses is not None else None
        return await self._call(
            lambda s: s.query(
                restaurant_id=restaurant_id,
                customer_id=customer_id,
                statuses=statuses,
                limit=limit,
            )
        )

    async def update(
        self,
        order_id: str,
        changes: dict[str, Any],
        expected_statuses: Optional[Iterable[str]] = None,
    ) -> Optional[OrderRow]:
        expected = list(expected_statuses) if expected_statuses is not None else None
        return await self._call(lambda s: s.update(order_id, changes, expected))

    async def delete(self, order_id: str) -> bool:
        return await self._call(lambda s: s.delete(order_id))

    async def ping(self) -> None:
        """Check the active backend. Never switches."""
        active = self._fallback if self._use_fallback else self._primary
        await active.ping()

    async def close(self) -> None:
        await self._primary.close()
        await self._fallback.close()
