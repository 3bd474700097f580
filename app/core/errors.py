"""
Domain Error Taxonomy

Every failure the order service reports to a caller is one of these.
HTTP routes translate them into the JSON error envelope using the
``status_code`` carried by each class; the push channel has no error
path at all.

Author: Khalil Bannouri
Version: 1.0.0
"""

from typing import Optional


class OrderServiceError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = 500
    default_message: str = "Order service error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(OrderServiceError):
    """Missing or malformed input. Raised before storage is touched."""

    status_code = 400
    default_message = "Invalid request"


class InvalidStatus(ValidationError):
    """Status value outside the recognized set."""

    default_message = "Invalid status"


class NotFound(OrderServiceError):
    """Unknown order, or the order belongs to another restaurant."""

    status_code = 404
    default_message = "Order not found"


class InvalidTransition(OrderServiceError):
    """The requested change is not legal from the order's current status."""

    status_code = 400
    default_message = "Invalid status transition"


class InvalidCode(OrderServiceError):
    """Delivery verification code did not match."""

    status_code = 400
    default_message = "Invalid verification code"


class UpstreamUnavailable(OrderServiceError):
    """Storage or rider backend could not be reached."""

    status_code = 503
    default_message = "Upstream service unavailable"


class StoreUnavailable(UpstreamUnavailable):
    """The order table is missing or the database is unreachable."""

    default_message = "Order store unavailable"


class SchemaMissing(StoreUnavailable):
    """The database answered but the unified_orders table is not there."""

    default_message = "Order table missing"
