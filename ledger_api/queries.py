import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_api.distinct import ANALYSIS_VOCABULARY, POSITION_VOCABULARY, distinct_values
from ledger_api.filters import build_analysis_predicate, build_position_predicate, compile_predicate
from ledger_api.models import AnalysisResult, Position
from ledger_api.pagination import Page, paginate

logger = logging.getLogger(__name__)


@dataclass
class QueryResult:
    """One page of records plus the filter vocabularies for the whole table."""

    page: Page
    unique_values: Dict[str, List] = field(default_factory=dict)


async def query_positions(
    db: AsyncSession,
    page: int,
    limit: int,
    status: Optional[str] = None,
    filters: Optional[Mapping[str, Any]] = None,
) -> QueryResult:
    predicate = build_position_predicate(status, filters)
    logger.debug(f"Position predicate: {predicate}")

    result_page = await paginate(
        db, Position, compile_predicate(predicate, Position), Position.created_at, page, limit
    )
    unique_values = await distinct_values(db, Position, POSITION_VOCABULARY)
    return QueryResult(page=result_page, unique_values=unique_values)


async def query_analysis(
    db: AsyncSession,
    page: int,
    limit: int,
    search_term: Optional[str] = None,
    filters: Optional[Mapping[str, Any]] = None,
) -> QueryResult:
    predicate = build_analysis_predicate(search_term, filters)
    logger.debug(f"Analysis predicate: {predicate}")

    result_page = await paginate(
        db, AnalysisResult, compile_predicate(predicate, AnalysisResult), AnalysisResult.timestamp, page, limit
    )
    unique_values = await distinct_values(db, AnalysisResult, ANALYSIS_VOCABULARY)
    return QueryResult(page=result_page, unique_values=unique_values)


async def count_analysis(db: AsyncSession) -> int:
    return (await db.execute(select(func.count()).select_from(AnalysisResult))).scalar() or 0
