import logging
from dataclasses import dataclass

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_api.models import CLOSED, Position

logger = logging.getLogger(__name__)


@dataclass
class PositionStats:
    max_profit: float = 0.0
    max_loss: float = 0.0
    total_positive_pnl: float = 0.0
    total_negative_pnl: float = 0.0
    closed_count: int = 0

    @property
    def realized_pnl(self) -> float:
        return self.total_positive_pnl + self.total_negative_pnl


async def closed_position_stats(db: AsyncSession) -> PositionStats:
    """
    Extremes and signed sums of realized P&L over every closed position.

    ``max_loss`` is clamped to zero when no closed trade lost money, so a
    "loss" is never reported as a positive figure. ``max_profit`` has no
    matching clamp.
    """
    stmt = select(
        func.max(Position.pnl).label("max_profit"),
        func.min(Position.pnl).label("max_loss"),
        func.sum(case((Position.pnl > 0, Position.pnl), else_=0)).label("total_positive_pnl"),
        func.sum(case((Position.pnl < 0, Position.pnl), else_=0)).label("total_negative_pnl"),
        func.count(Position.id).label("closed_count"),
    ).where(Position.status == CLOSED)

    row = (await db.execute(stmt)).first()
    if row is None or not row.closed_count:
        return PositionStats()

    max_loss = float(row.max_loss or 0)
    stats = PositionStats(
        max_profit=float(row.max_profit or 0),
        max_loss=min(max_loss, 0.0),
        total_positive_pnl=float(row.total_positive_pnl or 0),
        total_negative_pnl=float(row.total_negative_pnl or 0),
        closed_count=int(row.closed_count),
    )
    logger.debug(f"Closed position stats: {stats}")
    return stats
