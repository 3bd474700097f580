"""
Dispatch Service Factory

Returns Mock or HTTP dispatch service based on ENV_MODE.

Author: Khalil Bannouri
Version: 1.0.0
"""

import logging
from functools import lru_cache

from app.core.config import get_settings
from app.services.dispatch.base import BaseDispatchService, DispatchResult
from app.services.dispatch.http import HttpDispatchService
from app.services.dispatch.mock import MockDispatchService

logger = logging.getLogger(__name__)


@lru_cache()
def get_dispatch_service() -> BaseDispatchService:
    """Get the configured dispatch service."""
    settings = get_settings()

    if settings.is_development:
        logger.info("Dispatch Service: Using MockDispatchService (development mode)")
        return MockDispatchService()
    else:
        logger.info(f"Dispatch Service: Using HttpDispatchService ({settings.env_mode.value} mode)")
        return HttpDispatchService()


def reset_dispatch_service() -> None:
    """Clear the cached service instance."""
    get_dispatch_service.cache_clear()


__all__ = [
    "get_dispatch_service",
    "reset_dispatch_service",
    "BaseDispatchService",
    "DispatchResult",
    "MockDispatchService",
    "HttpDispatchService",
]
