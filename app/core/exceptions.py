"""
Domain exceptions raised by services and repositories.

The FastAPI app maps each of these onto an HTTP status code
(see ``register_exception_handlers`` in ``app.main``).
"""

from typing import Any, Dict, Optional

from starlette import status


class AnalyticsError(Exception):
    """Base exception for all analytics service errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code: str = "ANALYTICS_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class InvalidInputError(AnalyticsError):
    """Request parameters rejected before any computation."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "INVALID_INPUT"


class NotFoundError(InvalidInputError):
    """Referenced entity (experiment, funnel, user) does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    error_code = "NOT_FOUND"

    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            f"{resource} {identifier} not found.",
            details={"resource": resource, "identifier": str(identifier)},
        )


class ConflictError(AnalyticsError):
    status_code = status.HTTP_409_CONFLICT
    error_code = "CONFLICT"


class StoreUnavailableError(AnalyticsError):
    """The underlying database failed; callers may simply re-request."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error_code = "STORE_UNAVAILABLE"
