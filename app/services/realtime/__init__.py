"""
Realtime Service Factory

One EventHub per process; every WebSocket connection and the lifecycle
engine share it.

Author: Khalil Bannouri
Version: 1.0.0
"""

import logging
from functools import lru_cache

from app.core.config import get_settings
from app.services.realtime.gateway import RealtimeGateway
from app.services.realtime.hub import ClientIdentity, Connection, EventHub

logger = logging.getLogger(__name__)


@lru_cache()
def get_event_hub() -> EventHub:
    """Get the process-wide event hub."""
    settings = get_settings()
    logger.info(f"Event Hub: per-connection buffer of {settings.ws_queue_size} messages")
    return EventHub(queue_size=settings.ws_queue_size)


def reset_event_hub() -> None:
    """Clear the cached hub instance."""
    get_event_hub.cache_clear()


__all__ = [
    "get_event_hub",
    "reset_event_hub",
    "EventHub",
    "Connection",
    "ClientIdentity",
    "RealtimeGateway",
]
