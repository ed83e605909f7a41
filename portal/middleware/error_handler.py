"""Error boundary: domain exceptions, request validation and uncaught errors.

Every error leaves the API as::

    {"error": <kind>, "message": <text>, "traceId": <request id>}

with an extra ``details`` entry for request-validation failures.
"""

import logging
from typing import Any, Callable, Optional

from fastapi import FastAPI, Request, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from portal.config import settings
from portal.core.exceptions import PortalError, UnauthorizedError
from portal.services.error_logging_service import error_logging_service

logger = logging.getLogger(__name__)

GENERIC_SERVER_ERROR = "An unexpected error occurred. Please try again later."


def error_body(request: Request, kind: str, message: str, details: Any = None) -> dict:
    body = {
        "error": kind,
        "message": message,
        "traceId": getattr(request.state, "request_id", None),
    }
    if details is not None:
        body["details"] = details
    return body


async def portal_error_handler(request: Request, exc: PortalError) -> JSONResponse:
    if exc.status_code >= 500:
        error_logging_service.log_error(
            logger, exc, context={"method": request.method, "path": request.url.path}
        )
    else:
        logger.debug("%s on %s %s: %s", exc.kind, request.method, request.url.path, exc.message)

    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, UnauthorizedError) else None
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(error_body(request, exc.kind, exc.message, exc.details)),
        headers=headers,
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.debug("Validation error on %s: %s", request.url.path, exc.errors())
    details = [
        {"field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"), "message": err.get("msg")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body(request, "validation_error", "Request validation failed", details),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PortalError, portal_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Turn any exception that escaped the routers into an opaque ``server_error``.

    The exception is logged with PII redaction. Its text is only echoed back
    in DEBUG.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            user_id: Optional[int] = getattr(request.state, "user_id", None)
            context = {
                "method": request.method,
                "path": request.url.path,
                "client_host": request.client.host if request.client else None,
            }
            error_logging_service.log_error(logger=logger, error=exc, context=context, user_id=user_id)

            details = {"type": type(exc).__name__, "error": str(exc)} if settings.DEBUG else None
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content=error_body(request, "server_error", GENERIC_SERVER_ERROR, details),
            )
