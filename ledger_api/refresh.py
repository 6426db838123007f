"""
Dashboard "fetch all" composition and its polling loop.

A refresh is four independent reads (account snapshot, open positions,
closed positions, closed-position stats) issued concurrently, each on its own
session. One failing read is reported in ``errors`` and the other three are
still returned.

The polling loop never waits for a previous tick: if a refresh is still in
flight when the next interval fires, both run, and whichever finishes last
becomes ``latest``.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Set

from sqlalchemy.ext.asyncio import async_sessionmaker

from ledger_api import config
from ledger_api.models import CLOSED, OPEN
from ledger_api.queries import QueryResult, query_positions
from ledger_api.snapshot import AccountSnapshot, account_snapshot
from ledger_api.stats import PositionStats, closed_position_stats

logger = logging.getLogger(__name__)


@dataclass
class DashboardState:
    refreshed_at: datetime
    snapshot: Optional[AccountSnapshot] = None
    open_positions: Optional[QueryResult] = None
    closed_positions: Optional[QueryResult] = None
    stats: Optional[PositionStats] = None
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return len(self.errors) < 4


class DashboardRefresher:
    def __init__(
        self,
        session_factory: async_sessionmaker,
        interval: float = config.REFRESH_INTERVAL_SECONDS,
        closed_limit: int = config.CLOSED_PAGE_LIMIT,
        open_limit: int = config.OPEN_PAGE_LIMIT,
    ):
        self._session_factory = session_factory
        self.interval = interval
        self.closed_limit = closed_limit
        self.open_limit = open_limit

        self.closed_page = 1
        self.filters: Dict[str, Any] = {}
        self.latest: Optional[DashboardState] = None

        self._task: Optional[asyncio.Task] = None
        self._inflight: Set[asyncio.Task] = set()

    def set_filters(self, filters: Optional[Mapping[str, Any]]):
        """New closed-position filters always start again from page 1."""
        self.filters = dict(filters or {})
        self.closed_page = 1

    def set_closed_page(self, page: int):
        if page < 1:
            raise ValueError("page must be >= 1")
        self.closed_page = page

    def select(self, closed_page: int, filters: Optional[Mapping[str, Any]]):
        """Applies a client's view: changed filters win over the requested page."""
        if dict(filters or {}) != self.filters:
            self.set_filters(filters)
        else:
            self.set_closed_page(closed_page)

    async def _snapshot(self):
        async with self._session_factory() as db:
            return await account_snapshot(db)

    async def _positions(self, status: str, page: int, limit: int, filters: Mapping[str, Any]):
        async with self._session_factory() as db:
            return await query_positions(db, page, limit, status, filters)

    async def _stats(self):
        async with self._session_factory() as db:
            return await closed_position_stats(db)

    async def fetch_all(
        self, closed_page: int = 1, filters: Optional[Mapping[str, Any]] = None
    ) -> DashboardState:
        parts = {
            "snapshot": self._snapshot(),
            "open_positions": self._positions(OPEN, 1, self.open_limit, {}),
            "closed_positions": self._positions(CLOSED, closed_page, self.closed_limit, filters or {}),
            "stats": self._stats(),
        }
        results = await asyncio.gather(*parts.values(), return_exceptions=True)

        state = DashboardState(refreshed_at=datetime.now(timezone.utc))
        for name, result in zip(parts, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, Exception):
                logger.error(f"Dashboard refresh: {name} failed: {result}")
                state.errors[name] = str(result)
            else:
                setattr(state, name, result)
        return state

    async def refresh(self) -> DashboardState:
        state = await self.fetch_all(self.closed_page, self.filters)
        self.latest = state
        logger.info(
            f"Dashboard refreshed at {state.refreshed_at.isoformat()} "
            f"({len(state.errors)} failed parts)"
        )
        return state

    async def _tick(self):
        try:
            await self.refresh()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Dashboard refresh tick failed: {e}")

    async def _run(self):
        while True:
            tick = asyncio.create_task(self._tick())
            self._inflight.add(tick)
            tick.add_done_callback(self._inflight.discard)
            await asyncio.sleep(self.interval)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        if self.running:
            return
        logger.info(f"Starting dashboard refresher (every {self.interval}s)")
        self._task = asyncio.create_task(self._run())

    async def stop(self):
        tasks = list(self._inflight)
        if self._task is not None:
            tasks.append(self._task)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._task = None
        self._inflight.clear()
        logger.info("Dashboard refresher stopped")
