"""
Order Store Abstract Base Class

Defines the contract every order store implements. Orders travel as
plain row dicts keyed by ``unified_orders`` column names, so the
lifecycle engine never depends on which backend holds them.

Implementations:
    - SqlOrderStore: SQLAlchemy async engine (Postgres in production)
    - MemoryOrderStore: process-local dict (demo / tests / fallback)
    - ResilientOrderStore: SQL with a sticky fall back to memory

Author: Khalil Bannouri
Version: 1.0.0
"""

from abc import ABC, abstractmethod
from typing import Any, Iterable, Optional


OrderRow = dict[str, Any]


class BaseOrderStore(ABC):
    """
    Abstract base class for order persistence.

    ``update`` is the only mutation primitive. Passing
    ``expected_statuses`` turns it into a compare-and-set: the write is
    applied only if the stored status is still one of those values when
    the write happens, which is what serializes racing transitions.
    """

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Return the backend name (e.g. "sql", "memory")."""
        pass

    @abstractmethod
    async def insert(self, row: OrderRow) -> OrderRow:
        """Persist a new order row and return the stored copy."""
        pass

    @abstractmethod
    async def get(self, order_id: str) -> Optional[OrderRow]:
        """Fetch one order by its external order id."""
        pass

    @abstractmethod
    async def query(
        self,
        restaurant_id: Optional[str] = None,
        customer_id: Optional[str] = None,
        statuses: Optional[Iterable[str]] = None,
        limit: int = 50,
    ) -> list[OrderRow]:
        """Filter orders, newest first, capped at ``limit``."""
        pass

    @abstractmethod
    async def update(
        self,
        order_id: str,
        changes: dict[str, Any],
        expected_statuses: Optional[Iterable[str]] = None,
    ) -> Optional[OrderRow]:
        """
        Apply ``changes`` to one order.

        Returns:
            The updated row, or None if the order does not exist or its
            status is no longer in ``expected_statuses``.
        """
        pass

    @abstractmethod
    async def delete(self, order_id: str) -> bool:
        """Erase an order (debug/testing path only)."""
        pass

    @abstractmethod
    async def ping(self) -> None:
        """
        Verify the store is usable.

        Raises:
            StoreUnavailable: schema missing or database unreachable
        """
        pass

    async def close(self) -> None:
        """Release any held resources."""
        return None
