from typing import Dict, List, Mapping

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_api.filters import resolve_field

POSITION_VOCABULARY = {
    "symbols": "symbol",
    "positionTypes": "position_type",
}

ANALYSIS_VOCABULARY = {
    "symbols": "analysis_data.symbol",
    "signals": "analysis_data.consensus.signal",
    "trends": "analysis_data.ai_analysis.current_trend",
    "recommendations": "analysis_data.ai_analysis.recommendation",
}


async def distinct_values(db: AsyncSession, model, fields: Mapping[str, str]) -> Dict[str, List]:
    """Distinct non-null values per field over the whole table, ignoring any active filter."""
    values = {}
    for name, path in fields.items():
        expr = resolve_field(model, path)
        stmt = select(expr).where(expr.is_not(None)).distinct().order_by(expr)
        values[name] = list((await db.execute(stmt)).scalars().all())
    return values
