from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Any, Dict, List, Optional
from datetime import datetime

from ledger_api import config


class CamelModel(BaseModel):
    """Wire names in camelCase, Python attributes in snake_case."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Records

class PositionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    symbol: str
    position_type: str
    status: Optional[str] = None
    entry_price: float
    exit_price: Optional[float] = None
    quantity: float
    invested_amount: Optional[float] = None
    leverage: Optional[float] = None
    margin_used: Optional[float] = None
    stop_loss: Optional[float] = None
    target: Optional[float] = None
    trailing_stop: Optional[float] = None
    pnl: Optional[float] = None
    entry_time: datetime
    exit_time: Optional[datetime] = None
    holding_time: Optional[str] = None
    strategy_name: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


class AccountOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    current_balance: Optional[float] = None
    initial_balance: Optional[float] = None
    equity: Optional[float] = None
    available_margin: Optional[float] = None
    total_margin_used: Optional[float] = None
    max_leverage: Optional[float] = None
    total_profit: Optional[float] = None
    total_trades: Optional[int] = None
    win_rate: Optional[float] = None
    daily_trades_count: Optional[int] = None
    daily_trades_limit: Optional[int] = None
    broker_trading: Optional[float] = None
    updated_at: Optional[datetime] = None


class AnalysisOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    timestamp: datetime
    analysis_data: Dict[str, Any]


# Requests

class PositionsRequest(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(config.CLOSED_PAGE_LIMIT, ge=1, le=config.MAX_PAGE_LIMIT)
    status: Optional[str] = "CLOSED"
    filters: Dict[str, Any] = Field(default_factory=dict)


class AnalysisRequest(CamelModel):
    page: int = Field(1, ge=1)
    limit: int = Field(config.ANALYSIS_PAGE_LIMIT, ge=1, le=config.MAX_PAGE_LIMIT)
    search_term: Optional[str] = ""
    filters: Dict[str, Any] = Field(default_factory=dict)


class DashboardRequest(CamelModel):
    closed_page: int = Field(1, ge=1)
    filters: Dict[str, Any] = Field(default_factory=dict)


# Responses

class ErrorResponse(BaseModel):
    success: bool = False
    error: str


class AccountResponse(BaseModel):
    success: bool = True
    account: Optional[AccountOut] = None


class Pagination(CamelModel):
    current_page: int
    total_pages: int
    total_count: int
    limit: int


class PositionUniqueValues(CamelModel):
    symbols: List[str] = []
    position_types: List[str] = []


class PositionsResponse(CamelModel):
    success: bool = True
    positions: List[PositionOut]
    pagination: Pagination
    unique_values: PositionUniqueValues


class Stats(CamelModel):
    max_profit: float
    max_loss: float
    total_positive_pnl: float
    total_negative_pnl: float


class StatsResponse(BaseModel):
    success: bool = True
    stats: Stats


class Snapshot(CamelModel):
    account: AccountOut
    account_growth: float
    unrealized_pnl: float
    realized_pnl: float
    open_positions: int
    closed_positions: int
    total_trades: int


class SnapshotResponse(BaseModel):
    success: bool = True
    snapshot: Optional[Snapshot] = None


class AnalysisUniqueValues(CamelModel):
    symbols: List[str] = []
    signals: List[str] = []
    trends: List[str] = []
    recommendations: List[str] = []


class AnalysisResponse(CamelModel):
    success: bool = True
    data: List[AnalysisOut]
    total_count: int
    total_pages: int
    current_page: int
    has_next_page: bool
    has_prev_page: bool
    unique_values: AnalysisUniqueValues


class HealthResponse(CamelModel):
    status: str
    database: str
    collection: str
    total_documents: int
    timestamp: str


class PositionsPage(CamelModel):
    positions: List[PositionOut]
    pagination: Pagination
    unique_values: PositionUniqueValues


class DashboardResponse(CamelModel):
    success: bool
    snapshot: Optional[Snapshot] = None
    open_positions: Optional[PositionsPage] = None
    closed_positions: Optional[PositionsPage] = None
    stats: Optional[Stats] = None
    errors: Dict[str, str] = {}
    refreshed_at: datetime
