"""
Order Store Factory

Returns the configured order store based on STORE_BACKEND.

Usage:
    from app.services.store import get_order_store

    store = get_order_store()
    await store.probe()  # only ResilientOrderStore needs this

Author: Khalil Bannouri
Version: 1.0.0
"""

import logging
from functools import lru_cache

from app.core.config import StoreBackend, get_settings
from app.services.store.base import BaseOrderStore, OrderRow
from app.services.store.memory import MemoryOrderStore
from app.services.store.resilient import ResilientOrderStore
from app.services.store.sql import SqlOrderStore

logger = logging.getLogger(__name__)


@lru_cache()
def get_order_store() -> BaseOrderStore:
    """
    Get the configured order store instance.

    Returns:
        BaseOrderStore: memory, sql, or sql-with-memory-fallback
    """
    settings = get_settings()

    if settings.store_backend == StoreBackend.MEMORY:
        logger.info("Order Store: Using MemoryOrderStore")
        return MemoryOrderStore()

    sql_store = SqlOrderStore(settings.database_url)

    if settings.store_backend == StoreBackend.SQL:
        logger.info("Order Store: Using SqlOrderStore")
        return sql_store

    logger.info("Order Store: Using SqlOrderStore with in-memory fallback")
    return ResilientOrderStore(primary=sql_store, fallback=MemoryOrderStore())


def reset_order_store() -> None:
    """Clear the cached store instance."""
    get_order_store.cache_clear()


__all__ = [
    "get_order_store",
    "reset_order_store",
    "BaseOrderStore",
    "OrderRow",
    "MemoryOrderStore",
    "SqlOrderStore",
    "ResilientOrderStore",
]
