"""Shared list helpers: apply a predicate list, count, order and slice."""
from typing import Any, Iterable, Sequence

from sqlalchemy import Select, and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession


DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100


def apply_filters(query: Select, conditions: Sequence[Any]) -> Select:
    """AND every condition onto ``query``; no-op for an empty list."""
    if conditions:
        query = query.where(and_(*conditions))
    return query


async def paginate(
    db: AsyncSession,
    query: Select,
    page: int = DEFAULT_PAGE,
    limit: int = DEFAULT_LIMIT,
    order_by: Iterable[Any] = (),
) -> dict:
    """
    Run ``query`` for one page.

    Returns:
        {"data": [...], "total": n, "page": p, "limit": l, "total_pages": k}
    """
    page = max(page, 1)
    limit = max(1, min(limit, MAX_LIMIT))

    count_query = select(func.count()).select_from(query.order_by(None).subquery())
    total = (await db.execute(count_query)).scalar() or 0

    order_by = list(order_by)
    if order_by:
        query = query.order_by(*order_by)
    query = query.offset((page - 1) * limit).limit(limit)

    result = await db.execute(query)
    rows = result.scalars().unique().all()

    return {
        "data": list(rows),
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": (total + limit - 1) // limit,
    }
