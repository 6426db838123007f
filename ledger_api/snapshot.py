import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_api.models import CLOSED, Account, Position

logger = logging.getLogger(__name__)


@dataclass
class PositionTotals:
    unrealized_pnl: float = 0.0
    realized_pnl: float = 0.0
    open_positions: int = 0
    closed_positions: int = 0


@dataclass
class AccountSnapshot:
    account: Account
    account_growth: float
    unrealized_pnl: float
    realized_pnl: float
    open_positions: int
    closed_positions: int
    total_trades: int


def account_growth(current_balance: Optional[float], initial_balance: Optional[float]) -> float:
    """Percentage growth over the initial balance; 0 when there is no positive initial balance."""
    if initial_balance is None or initial_balance <= 0:
        return 0.0
    return (float(current_balance or 0) - initial_balance) / initial_balance * 100


async def load_account(db: AsyncSession) -> Optional[Account]:
    stmt = select(Account).order_by(Account.id).limit(1)
    return (await db.execute(stmt)).scalars().first()


async def position_totals(db: AsyncSession) -> PositionTotals:
    is_closed = Position.status == CLOSED
    stmt = select(
        func.sum(case((is_closed, 0), else_=Position.pnl)).label("unrealized_pnl"),
        func.sum(case((is_closed, Position.pnl), else_=0)).label("realized_pnl"),
        func.sum(case((is_closed, 0), else_=1)).label("open_positions"),
        func.sum(case((is_closed, 1), else_=0)).label("closed_positions"),
    )
    row = (await db.execute(stmt)).first()
    if row is None:
        return PositionTotals()
    return PositionTotals(
        unrealized_pnl=float(row.unrealized_pnl or 0),
        realized_pnl=float(row.realized_pnl or 0),
        open_positions=int(row.open_positions or 0),
        closed_positions=int(row.closed_positions or 0),
    )


async def account_snapshot(db: AsyncSession) -> Optional[AccountSnapshot]:
    """
    Account record combined with position-derived P&L and counts.

    Returns None when no account exists; callers render a "no account" state
    instead of zeros.
    """
    account = await load_account(db)
    if account is None:
        logger.info("No account record found")
        return None

    totals = await position_totals(db)
    return AccountSnapshot(
        account=account,
        account_growth=account_growth(account.current_balance, account.initial_balance),
        unrealized_pnl=totals.unrealized_pnl,
        realized_pnl=totals.realized_pnl,
        open_positions=totals.open_positions,
        closed_positions=totals.closed_positions,
        total_trades=int(account.total_trades or 0),
    )
