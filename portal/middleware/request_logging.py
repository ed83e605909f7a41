"""Request logging and admin audit logging middleware."""

import logging
import time
import uuid
from typing import Callable

import structlog
from fastapi import Request, Response
from jose import JWTError, jwt as jose_jwt
from starlette.middleware.base import BaseHTTPMiddleware

from portal.core.logging_config import get_logger, log_request
from portal.utils.logging_utils import redact_email, redact_ip

logger = logging.getLogger(__name__)
access_logger = get_logger("portal.access")


def _token_email(request: Request) -> str | None:
    """Email claim of the bearer token, unverified; for log lines only."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    try:
        claims = jose_jwt.get_unverified_claims(auth_header[len("Bearer "):])
    except JWTError:
        return None
    return claims.get("email") or claims.get("preferred_username")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Assign a request id and log the start and completion of every request.

    The id is bound into structlog's contextvars, stored on
    ``request.state.request_id`` (where error bodies pick it up as
    ``traceId``) and echoed in the ``X-Request-ID`` response header.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        request.state.user_email = _token_email(request)

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        start_time = time.time()
        method = request.method
        path = request.url.path
        client_host = request.client.host if request.client else "unknown"
        user = redact_email(request.state.user_email)

        logger.info(
            "Request started | id=%s | method=%s | path=%s | user=%s | ip=%s",
            request_id, method, path, user, redact_ip(client_host),
        )

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                "Request failed | id=%s | method=%s | path=%s | duration=%sms | error=%s",
                request_id, method, path, int((time.time() - start_time) * 1000),
                type(exc).__name__,
            )
            raise

        log_request(
            access_logger,
            method=method,
            path=path,
            status_code=response.status_code,
            duration_ms=int((time.time() - start_time) * 1000),
            user=user,
        )
        response.headers["X-Request-ID"] = request_id
        return response


class AuditLogMiddleware(BaseHTTPMiddleware):
    """Log every mutating call under ``/api/admin`` and every login attempt.

    The durable audit trail lives in ``audit_log`` and is written by the
    services; these lines are the operational view.
    """

    AUDIT_PATHS = {
        "/api/auth/login": "LOGIN_ATTEMPT",
        "/api/auth/logout": "LOGOUT",
    }

    MUTATING_METHODS = {"POST", "PUT", "PATCH", "DELETE"}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        method = request.method

        audit_type = next(
            (action for prefix, action in self.AUDIT_PATHS.items() if path.startswith(prefix)),
            None,
        )
        should_audit = audit_type or (
            method in self.MUTATING_METHODS and path.startswith("/api/admin")
        )
        if not should_audit:
            return await call_next(request)

        response = await call_next(request)

        action = audit_type or f"{method}_{path.rstrip('/').split('/')[-1].upper()}"
        logger.info(
            "AUDIT | action=%s | method=%s | path=%s | status=%s | user=%s | ip=%s | request_id=%s",
            action,
            method,
            path,
            response.status_code,
            redact_email(getattr(request.state, "user_email", None)),
            redact_ip(request.client.host if request.client else None),
            getattr(request.state, "request_id", "unknown"),
        )
        return response
