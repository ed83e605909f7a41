"""Shared schema building blocks."""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialised with camelCase keys.

    Accepts both ``hubId`` and ``hub_id`` on input.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalise an incoming timestamp to naive UTC (the storage convention)."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class SuccessResponse(CamelModel):
    success: bool = True
    message: str


class ErrorResponse(CamelModel):
    error: str
    message: str
    trace_id: Optional[str] = None
    details: Optional[Any] = None


class PaginationInfo(CamelModel):
    current_page: int
    page_size: int
    total_count: int
    total_pages: int
