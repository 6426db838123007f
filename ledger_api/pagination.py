import logging
import math
from dataclasses import dataclass, field
from typing import Any, List, Sequence

from sqlalchemy import and_, desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


@dataclass
class Page:
    items: List[Any] = field(default_factory=list)
    total_count: int = 0
    total_pages: int = 0
    current_page: int = 1
    limit: int = 1

    @property
    def has_next_page(self) -> bool:
        return self.current_page < self.total_pages

    @property
    def has_prev_page(self) -> bool:
        return self.current_page > 1


def page_offset(page: int, limit: int) -> int:
    if page < 1:
        raise ValueError("page must be >= 1")
    if limit < 1:
        raise ValueError("limit must be > 0")
    return (page - 1) * limit


def count_pages(total_count: int, limit: int) -> int:
    if total_count <= 0:
        return 0
    return math.ceil(total_count / limit)


async def paginate(
    db: AsyncSession,
    model,
    clauses: Sequence,
    sort_column,
    page: int,
    limit: int,
) -> Page:
    """
    Returns one window of ``model`` rows matching ``clauses``, newest first.

    Rows are ordered by ``sort_column`` then primary key, both descending, so
    equal sort keys never reorder between calls. A page past the end is empty
    but still reports the real totals.
    """
    skip = page_offset(page, limit)
    where = and_(*clauses) if clauses else None

    count_stmt = select(func.count()).select_from(model)
    rows_stmt = select(model)
    if where is not None:
        count_stmt = count_stmt.where(where)
        rows_stmt = rows_stmt.where(where)

    total_count = (await db.execute(count_stmt)).scalar() or 0
    total_pages = count_pages(total_count, limit)

    items: List[Any] = []
    if skip < total_count:
        rows_stmt = rows_stmt.order_by(desc(sort_column), desc(model.id)).offset(skip).limit(limit)
        items = list((await db.execute(rows_stmt)).scalars().all())

    logger.debug(
        f"{model.__tablename__}: page {page}/{total_pages}, "
        f"{len(items)} of {total_count} rows (skip={skip}, limit={limit})"
    )
    return Page(
        items=items,
        total_count=total_count,
        total_pages=total_pages,
        current_page=page,
        limit=limit,
    )
