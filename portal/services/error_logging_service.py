"""Error logging with PII redaction.

Exception text routinely embeds emails, client addresses and the odd bearer
token (SQL parameters, httpx URLs). Everything that reaches the log goes
through ``redact_pii`` first.
"""

import logging
import re
import traceback
from typing import Any, Optional


class ErrorLoggingService:
    """Scrubs PII out of exception text and request payloads."""

    # (pattern, replacement, flags), applied in order
    PII_PATTERNS = [
        (r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b", "[REDACTED_EMAIL]", 0),
        (r"\b(?:\d{1,3}\.){3}\d{1,3}\b", "[REDACTED_IP]", 0),
        (r"(password|passwd|pwd)[\"']?\s*[:=]\s*[\"']?([^\"'\s]+)", r"\1=[REDACTED_PASSWORD]", re.IGNORECASE),
        (r"(bearer)\s+([A-Za-z0-9._-]{20,})", r"\1 [REDACTED_TOKEN]", re.IGNORECASE),
        (r"(token|jwt|secret)[\"']?\s*[:=]\s*[\"']?([A-Za-z0-9._-]{20,})", r"\1=[REDACTED_TOKEN]", re.IGNORECASE),
    ]

    SENSITIVE_KEYS = ("password", "secret", "token", "key", "auth", "credential")

    @staticmethod
    def redact_pii(text: str) -> str:
        if not text:
            return text
        for pattern, replacement, flags in ErrorLoggingService.PII_PATTERNS:
            text = re.sub(pattern, replacement, text, flags=flags)
        return text

    @staticmethod
    def log_error(
        logger: logging.Logger,
        error: Exception,
        context: Optional[dict[str, Any]] = None,
        user_id: Optional[int] = None,
    ) -> None:
        """Log *error* with traceback, redacting message, traceback and context."""
        error_traceback = "".join(
            traceback.format_exception(type(error), error, error.__traceback__)
        )

        log_parts = [
            f"Error: {ErrorLoggingService.redact_pii(str(error))}",
            f"Type: {type(error).__name__}",
        ]
        if user_id is not None:
            log_parts.append(f"User ID: {user_id}")
        if context:
            safe_context = {k: ErrorLoggingService.redact_pii(str(v)) for k, v in context.items()}
            log_parts.append(f"Context: {safe_context}")
        log_parts.append(f"Traceback:\n{ErrorLoggingService.redact_pii(error_traceback)}")

        logger.error("\n".join(log_parts))

    @staticmethod
    def sanitize_request_data(data: dict[str, Any]) -> dict[str, Any]:
        """Copy of *data* with secret-looking keys masked and PII redacted from strings."""
        if not data:
            return {}

        sanitized: dict[str, Any] = {}
        for key, value in data.items():
            if any(s in key.lower() for s in ErrorLoggingService.SENSITIVE_KEYS):
                sanitized[key] = "[REDACTED]"
            elif isinstance(value, str):
                sanitized[key] = ErrorLoggingService.redact_pii(value)
            elif isinstance(value, dict):
                sanitized[key] = ErrorLoggingService.sanitize_request_data(value)
            elif isinstance(value, list):
                sanitized[key] = [
                    ErrorLoggingService.sanitize_request_data(item) if isinstance(item, dict)
                    else ErrorLoggingService.redact_pii(item) if isinstance(item, str)
                    else item
                    for item in value
                ]
            else:
                sanitized[key] = value
        return sanitized


error_logging_service = ErrorLoggingService()
