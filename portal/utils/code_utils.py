"""Generation of the short unique codes carried by hubs, groups and reports."""

import re

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

_NON_ALNUM = re.compile(r"[^A-Z0-9]+")


def code_from_name(name: str, max_length: int = 50) -> str:
    """``"Sales & Ops 2024"`` -> ``"SALES_OPS_2024"``."""
    code = _NON_ALNUM.sub("_", name.strip().upper()).strip("_")
    return (code or "ITEM")[:max_length]


async def unique_code(
    db: AsyncSession, column, base: str, max_length: int = 50, exclude_id=None
) -> str:
    """Return *base*, or *base* with the first free ``_N`` suffix, unused in *column*.

    *exclude_id* skips the row being renamed so it can keep its own code.
    """
    id_column = column.class_.id
    stmt = select(column).where(column.like(f"{base[:max_length - 4]}%"))
    if exclude_id is not None:
        stmt = stmt.where(id_column != exclude_id)
    taken = set((await db.execute(stmt)).scalars().all())

    if base not in taken:
        return base
    suffix = 2
    while True:
        tail = f"_{suffix}"
        candidate = base[: max_length - len(tail)] + tail
        if candidate not in taken:
            return candidate
        suffix += 1
