import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Float, Index, Integer, String, Text

from ledger_api import config
from ledger_api.database import Base

CLOSED = "CLOSED"
OPEN = "OPEN"
POSITION_TYPES = ("LONG", "SHORT")


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    # Columns are naive UTC timestamps.
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Position(Base):
    __tablename__ = "positions"

    id = Column(String(36), primary_key=True, default=_new_id)
    symbol = Column(String, nullable=False)
    position_type = Column(String(8), nullable=False)
    status = Column(String(16))

    entry_price = Column(Float, nullable=False)
    exit_price = Column(Float)
    quantity = Column(Float, nullable=False)
    invested_amount = Column(Float)
    leverage = Column(Float)
    margin_used = Column(Float)
    stop_loss = Column(Float)
    target = Column(Float)
    trailing_stop = Column(Float)
    pnl = Column(Float)

    entry_time = Column(DateTime, nullable=False)
    exit_time = Column(DateTime)
    holding_time = Column(String)
    strategy_name = Column(String)
    notes = Column(Text)
    created_at = Column(DateTime, nullable=False, default=_utcnow)

    # Closed-positions table and stats both scan by status, newest first
    __table_args__ = (
        Index("idx_positions_status_created", "status", "created_at"),
        Index("idx_positions_symbol", "symbol"),
    )


class Account(Base):
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True)
    current_balance = Column(Float)
    initial_balance = Column(Float)
    equity = Column(Float)
    available_margin = Column(Float)
    total_margin_used = Column(Float)
    max_leverage = Column(Float)
    total_profit = Column(Float)
    total_trades = Column(Integer)
    win_rate = Column(Float)
    daily_trades_count = Column(Integer)
    daily_trades_limit = Column(Integer)
    broker_trading = Column(Float)
    updated_at = Column(DateTime)


class AnalysisResult(Base):
    __tablename__ = config.ANALYSIS_TABLE

    id = Column(String(36), primary_key=True, default=_new_id)
    timestamp = Column(DateTime, nullable=False, default=_utcnow)
    analysis_data = Column(JSON, nullable=False)

    __table_args__ = (
        Index(f"idx_{config.ANALYSIS_TABLE}_timestamp", "timestamp"),
    )
