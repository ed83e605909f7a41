"""Domain exceptions.

Services raise these instead of ``HTTPException`` so that every failure
leaves the API with the same body shape. The boundary handler registered in
``portal.main`` turns them into::

    {"error": <kind>, "message": <message>, "traceId": <request id>}
"""

from typing import Any, Optional

from fastapi import status


class PortalError(Exception):
    """Base class for errors that map onto an API error kind."""

    kind: str = "server_error"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "An unexpected error occurred. Please try again later."

    def __init__(self, message: Optional[str] = None, details: Any = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class UnauthorizedError(PortalError):
    kind = "unauthorized"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication required"


class ForbiddenError(PortalError):
    kind = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You do not have access to this resource"


class NotFoundError(PortalError):
    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class ValidationError(PortalError):
    kind = "validation_error"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class ConfigurationError(PortalError):
    """A deployment precondition is missing (e.g. a seed row)."""

    kind = "server_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class RelayError(PortalError):
    """The upstream report server failed or was unreachable."""

    kind = "bad_gateway"
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "Failed to render report"
