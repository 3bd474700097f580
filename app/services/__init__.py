"""
                        Services Module

Contains all order-handling services with the hybrid architecture pattern.
Collaborators with an external side have Mock (development) and Real
(production) implementations chosen by cached factories.

Services:
    - store: order persistence (SQL, in-memory, SQL with memory fallback)
    - dispatch: hand-off of accepted orders to the rider backend
    - realtime: WebSocket room registry and event fan-out
    - lifecycle: the order state machine tying the three together
    - sync: dashboard-side push + pull reconciliation client
"""

import logging
from functools import lru_cache

from app.services.dispatch import get_dispatch_service, reset_dispatch_service
from app.services.lifecycle import OrderLifecycleEngine
from app.services.realtime import get_event_hub, reset_event_hub
from app.services.store import get_order_store, reset_order_store

logger = logging.getLogger(__name__)


@lru_cache()
def get_lifecycle_engine() -> OrderLifecycleEngine:
    """Get the process-wide lifecycle engine."""
    return OrderLifecycleEngine(
        store=get_order_store(),
        hub=get_event_hub(),
        dispatcher=get_dispatch_service(),
    )


def reset_services() -> None:
    """Drop every cached service (tests, config reloads)."""
    get_lifecycle_engine.cache_clear()
    reset_order_store()
    reset_dispatch_service()
    reset_event_hub()


__all__ = [
    "get_lifecycle_engine",
    "reset_services",
    "OrderLifecycleEngine",
]
