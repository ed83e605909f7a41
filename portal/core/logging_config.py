"""
Structured logging.

structlog sits on top of stdlib logging. Events render as JSON in
production or with ``LOG_FORMAT=json``, and through the console renderer
otherwise. Modules keep using ``logging.getLogger(__name__)``; request-scoped
code takes a structlog logger from ``get_logger`` so the request id bound by
the middleware travels with every event.

    logger = get_logger(__name__)
    logger.info("hub_access_granted", user_id=12, hub_id=3)
"""

import logging
import sys

import structlog
from pythonjsonlogger import jsonlogger

from portal.config import settings

# Loggers that get their own JSON handler instead of propagating to root
JSON_LOGGERS = ("uvicorn", "uvicorn.access", "uvicorn.error", "portal")

# Chatty in production
QUIET_IN_PRODUCTION = ("uvicorn.access", "httpx", "httpcore")

SHARED_PROCESSORS = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
]


def _use_json() -> bool:
    return settings.LOG_FORMAT == "json" or settings.ENVIRONMENT == "production"


def _json_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        jsonlogger.JsonFormatter(
            "%(asctime)s %(name)s %(levelname)s %(message)s",
            rename_fields={"asctime": "timestamp", "levelname": "level"},
        )
    )
    return handler


def setup_logging() -> None:
    """Configure stdlib logging and structlog once, at application start."""
    use_json = _use_json()
    level = logging.getLevelName(settings.LOG_LEVEL.upper())
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    renderer = structlog.processors.JSONRenderer() if use_json else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[*SHARED_PROCESSORS, renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if use_json:
        handler = _json_handler()
        for name in JSON_LOGGERS:
            stdlib_logger = logging.getLogger(name)
            stdlib_logger.handlers = [handler]
            stdlib_logger.propagate = False

    if settings.ENVIRONMENT == "production":
        for name in QUIET_IN_PRODUCTION:
            logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def log_request(
    logger: structlog.stdlib.BoundLogger,
    method: str,
    path: str,
    status_code: int,
    duration_ms: float,
    **kwargs,
) -> None:
    """One ``http_request`` event per finished request; 5xx at error level."""
    emit = logger.error if status_code >= 500 else logger.info
    emit(
        "http_request",
        method=method,
        path=path,
        status_code=status_code,
        duration_ms=duration_ms,
        **kwargs,
    )
