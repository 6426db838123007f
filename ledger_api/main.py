import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_api import config
from ledger_api.database import dispose_engine, get_db, get_session_factory
from ledger_api.models import AnalysisResult
from ledger_api.queries import QueryResult, count_analysis, query_analysis, query_positions
from ledger_api.refresh import DashboardRefresher, DashboardState
from ledger_api.schemas import (
    AccountOut, AccountResponse, AnalysisOut, AnalysisRequest, AnalysisResponse, AnalysisUniqueValues,
    DashboardRequest, DashboardResponse, HealthResponse, Pagination, PositionOut, PositionsPage,
    PositionsRequest, PositionsResponse, PositionUniqueValues, Snapshot, SnapshotResponse, Stats,
    StatsResponse,
)
from ledger_api.snapshot import AccountSnapshot, account_snapshot, load_account
from ledger_api.stats import PositionStats, closed_position_stats

# Setup logging
logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    refresher = None
    if config.DATABASE_URL and config.REFRESH_INTERVAL_SECONDS > 0:
        refresher = DashboardRefresher(get_session_factory())
        refresher.start()
        app.state.refresher = refresher
    yield
    if refresher is not None:
        await refresher.stop()
    await dispose_engine()


app = FastAPI(title="Trade Ledger Dashboard API", lifespan=lifespan)

# CORS Management
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)


def failure(message: str, status_code: int = 500) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()
    )
    logger.info(f"Rejected request to {request.url.path}: {errors}")
    return failure(errors, status_code=422)


def get_refresher(request: Request) -> DashboardRefresher:
    refresher = getattr(request.app.state, "refresher", None)
    if refresher is None:
        refresher = DashboardRefresher(get_session_factory())
        request.app.state.refresher = refresher
    return refresher


def stats_out(stats: PositionStats) -> Stats:
    return Stats(
        max_profit=stats.max_profit,
        max_loss=stats.max_loss,
        total_positive_pnl=stats.total_positive_pnl,
        total_negative_pnl=stats.total_negative_pnl,
    )


def positions_page_out(result: QueryResult) -> PositionsPage:
    page = result.page
    return PositionsPage(
        positions=[PositionOut.model_validate(p) for p in page.items],
        pagination=Pagination(
            current_page=page.current_page,
            total_pages=page.total_pages,
            total_count=page.total_count,
            limit=page.limit,
        ),
        unique_values=PositionUniqueValues(**result.unique_values),
    )


def snapshot_out(snapshot: AccountSnapshot) -> Snapshot:
    return Snapshot(
        account=AccountOut.model_validate(snapshot.account),
        account_growth=snapshot.account_growth,
        unrealized_pnl=snapshot.unrealized_pnl,
        realized_pnl=snapshot.realized_pnl,
        open_positions=snapshot.open_positions,
        closed_positions=snapshot.closed_positions,
        total_trades=snapshot.total_trades,
    )


def dashboard_out(state: DashboardState) -> DashboardResponse:
    return DashboardResponse(
        success=state.success,
        snapshot=snapshot_out(state.snapshot) if state.snapshot is not None else None,
        open_positions=positions_page_out(state.open_positions) if state.open_positions else None,
        closed_positions=positions_page_out(state.closed_positions) if state.closed_positions else None,
        stats=stats_out(state.stats) if state.stats is not None else None,
        errors=state.errors,
        refreshed_at=state.refreshed_at,
    )


def dashboard_response(state: DashboardState):
    if not state.success:
        logger.error(f"Dashboard refresh failed: {state.errors}")
        return failure("; ".join(f"{name}: {error}" for name, error in state.errors.items()))
    return dashboard_out(state)


@app.get("/health")
async def health():
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


@app.get("/api/account-data", response_model=AccountResponse)
async def get_account(db: AsyncSession = Depends(get_db)):
    try:
        account = await load_account(db)
        return AccountResponse(account=AccountOut.model_validate(account) if account else None)
    except Exception as e:
        logger.error(f"Error fetching account data: {str(e)}")
        return failure(str(e))


@app.post("/api/account-data", response_model=PositionsResponse)
async def get_positions(request: PositionsRequest, db: AsyncSession = Depends(get_db)):
    logger.info(f"Positions request: page={request.page} limit={request.limit} status={request.status} filters={request.filters}")
    try:
        result = await query_positions(db, request.page, request.limit, request.status, request.filters)
        page = positions_page_out(result)
        return PositionsResponse(
            positions=page.positions,
            pagination=page.pagination,
            unique_values=page.unique_values,
        )
    except Exception as e:
        logger.error(f"Error fetching positions data: {str(e)}")
        return failure(str(e))


@app.get("/api/account-data/stats", response_model=StatsResponse)
async def get_position_stats(db: AsyncSession = Depends(get_db)):
    try:
        stats = await closed_position_stats(db)
        return StatsResponse(stats=stats_out(stats))
    except Exception as e:
        logger.error(f"Error fetching position stats: {str(e)}")
        return failure(str(e))


@app.get("/api/account-data/snapshot", response_model=SnapshotResponse)
async def get_account_snapshot(db: AsyncSession = Depends(get_db)):
    try:
        snapshot = await account_snapshot(db)
        return SnapshotResponse(snapshot=snapshot_out(snapshot) if snapshot is not None else None)
    except Exception as e:
        logger.error(f"Error building account snapshot: {str(e)}")
        return failure(str(e))


@app.post("/api/trading-data", response_model=AnalysisResponse)
async def get_trading_data(request: AnalysisRequest, db: AsyncSession = Depends(get_db)):
    logger.info(f"Analysis request: page={request.page} limit={request.limit} searchTerm={request.search_term!r} filters={request.filters}")
    try:
        result = await query_analysis(db, request.page, request.limit, request.search_term, request.filters)
        page = result.page
        logger.info(f"Analysis response: {len(page.items)} of {page.total_count} rows, page {page.current_page}/{page.total_pages}")
        return AnalysisResponse(
            data=[AnalysisOut.model_validate(item) for item in page.items],
            total_count=page.total_count,
            total_pages=page.total_pages,
            current_page=page.current_page,
            has_next_page=page.has_next_page,
            has_prev_page=page.has_prev_page,
            unique_values=AnalysisUniqueValues(**result.unique_values),
        )
    except Exception as e:
        logger.error(f"Error fetching trading data: {str(e)}")
        return failure(f"Failed to fetch trading data: {str(e)}")


@app.get("/api/trading-data", response_model=HealthResponse)
async def trading_data_health(db: AsyncSession = Depends(get_db)):
    database = db.bind.url.database if db.bind is not None else None
    try:
        total = await count_analysis(db)
        return HealthResponse(
            status="Connected to database",
            database=database or "",
            collection=AnalysisResult.__tablename__,
            total_documents=total,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )
    except Exception as e:
        logger.error(f"Database connection error: {str(e)}")
        return JSONResponse(status_code=500, content={"status": "Failed to connect to database", "error": str(e)})


@app.post("/api/dashboard", response_model=DashboardResponse)
async def fetch_dashboard(request: DashboardRequest, refresher: DashboardRefresher = Depends(get_refresher)):
    refresher.select(request.closed_page, request.filters)
    state = await refresher.refresh()
    return dashboard_response(state)


@app.get("/api/dashboard/latest", response_model=DashboardResponse)
async def latest_dashboard(refresher: DashboardRefresher = Depends(get_refresher)):
    state = refresher.latest
    if state is None:
        state = await refresher.refresh()
    return dashboard_response(state)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=config.APP_HOST, port=config.APP_PORT)
