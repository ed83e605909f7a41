"""PII redaction for log lines."""

import hashlib
from typing import Optional


def _short_hash(value: str) -> str:
    return hashlib.sha256(value.encode()).hexdigest()[:6]


def redact_email(email: Optional[str]) -> str:
    """Keep the domain and the first character of the mailbox.

    >>> redact_email("jane.doe@example.com")
    'j***@example.com'
    """
    if not email:
        return "N/A"

    local, sep, domain = email.partition("@")
    if not sep:
        return f"hash:{_short_hash(email)}"
    if len(local) < 3:
        return f"hash:{_short_hash(email)}@{domain}"
    return f"{local[0]}***@{domain}"


def redact_ip(ip_address: Optional[str]) -> str:
    """Mask the host part of an address: ``10.1.2.3`` -> ``10.1.2.***``."""
    if not ip_address:
        return "N/A"

    if "." in ip_address:
        parts = ip_address.split(".")
        if len(parts) == 4:
            return ".".join(parts[:3]) + ".***"

    if ":" in ip_address:
        parts = ip_address.split(":")
        if len(parts) >= 4:
            return ":".join(parts[:3]) + ":***"

    return f"hash:{_short_hash(ip_address)}"
