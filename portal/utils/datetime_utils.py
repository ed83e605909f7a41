"""Timestamp helpers.

All timestamps are stored as naive UTC (``TIMESTAMP WITHOUT TIME ZONE``), and
grant expiry comparisons are made against the same representation.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Current UTC time as a naive datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def utc_now_lambda() -> datetime:
    """Column ``default=`` / ``onupdate=`` callable."""
    return utc_now()
