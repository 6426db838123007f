"""
Shared fixtures for the ledger API tests.

Each test gets its own temporary SQLite database (aiosqlite, NullPool) so
concurrent sessions in the refresher tests open separate connections.
"""

import os

os.environ.setdefault("REFRESH_INTERVAL_SECONDS", "0")

import pytest
import pytest_asyncio
from datetime import datetime, timedelta
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from ledger_api.database import Base
from ledger_api.models import Account, AnalysisResult, Position

BASE_TIME = datetime(2025, 1, 1, 9, 0, 0)


# =============================================================================
# Database
# =============================================================================

@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def add_records(session_factory):
    """Insert ORM objects in a separate session and commit."""
    async def _add(*records):
        async with session_factory() as session:
            session.add_all(records)
            await session.commit()
    return _add


# =============================================================================
# Record builders
# =============================================================================

def make_position(minutes: int = 0, **overrides) -> Position:
    created = BASE_TIME + timedelta(minutes=minutes)
    fields = {
        "symbol": "BTCUSDT",
        "position_type": "LONG",
        "status": "CLOSED",
        "entry_price": 100.0,
        "quantity": 1.0,
        "invested_amount": 100.0,
        "pnl": 0.0,
        "entry_time": created,
        "created_at": created,
    }
    fields.update(overrides)
    if fields["status"] == "CLOSED":
        fields.setdefault("exit_price", fields["entry_price"] + (fields["pnl"] or 0))
        fields.setdefault("exit_time", created + timedelta(hours=1))
    return Position(**fields)


def make_account(**overrides) -> Account:
    fields = {
        "id": 1,
        "current_balance": 12000.0,
        "initial_balance": 10000.0,
        "equity": 12100.0,
        "available_margin": 9000.0,
        "total_margin_used": 3000.0,
        "max_leverage": 10.0,
        "total_profit": 2000.0,
        "total_trades": 42,
        "win_rate": 61.5,
        "daily_trades_count": 3,
        "daily_trades_limit": 10,
        "broker_trading": 35.2,
    }
    fields.update(overrides)
    return Account(**fields)


def make_analysis(
    minutes: int = 0,
    symbol: str = "BTCUSDT",
    signal: str = "BUY",
    trend: str = "Bullish",
    recommendation: str = "LONG",
    summary: str = "Momentum building above resistance.",
    **overrides,
) -> AnalysisResult:
    fields = {
        "timestamp": BASE_TIME + timedelta(minutes=minutes),
        "analysis_data": {
            "symbol": symbol,
            "resolution": "60",
            "days": 30,
            "indicators": [
                {"name": "RSI", "value": 58.2, "signal": "BUY", "interpretation": "Rising momentum"},
            ],
            "strategies": [
                {"name": "EMA Cross", "signal": signal, "interpretation": "Fast over slow",
                 "confidence": 4, "strength": 72},
            ],
            "consensus": {"signal": signal, "confidence": 4, "strength": 70, "interpretation": "Aligned"},
            "ai_analysis": {
                "recommendation": recommendation,
                "current_trend": trend,
                "entry_price": 100.0,
                "target": 110.0,
                "stoploss": 95.0,
                "risk_to_reward": 2.0,
                "action_strength": "Strong",
                "summary": summary,
            },
        },
    }
    fields.update(overrides)
    return AnalysisResult(**fields)


@pytest.fixture
def position_factory():
    return make_position


@pytest.fixture
def account_factory():
    return make_account


@pytest.fixture
def analysis_factory():
    return make_analysis
