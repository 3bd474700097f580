"""
Core module initialization.
Exports configuration, logging utilities and the domain error taxonomy.
"""

from app.core.config import get_settings, Settings, EnvironmentMode, StoreBackend
from app.core.errors import (
    OrderServiceError,
    ValidationError,
    NotFound,
    InvalidTransition,
    InvalidStatus,
    InvalidCode,
    UpstreamUnavailable,
    StoreUnavailable,
    SchemaMissing,
)

__all__ = [
    "get_settings",
    "Settings",
    "EnvironmentMode",
    "StoreBackend",
    "OrderServiceError",
    "ValidationError",
    "NotFound",
    "InvalidTransition",
    "InvalidStatus",
    "InvalidCode",
    "UpstreamUnavailable",
    "StoreUnavailable",
    "SchemaMissing",
]
