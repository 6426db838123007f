"""
Tests for the HTTP routes.

Routes run against the per-test SQLite database through a ``get_db``
override; ASGITransport does not run the lifespan, so no background
refresher is started.
"""

import pytest
import pytest_asyncio
from unittest.mock import AsyncMock
from httpx import ASGITransport, AsyncClient

from ledger_api.database import get_db
from ledger_api.main import app, get_refresher
from ledger_api.refresh import DashboardRefresher


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    refresher = DashboardRefresher(session_factory, closed_limit=10, open_limit=100)
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_refresher] = lambda: refresher

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def broken_client():
    async def failing_db():
        session = AsyncMock()
        session.execute = AsyncMock(side_effect=RuntimeError("store unavailable"))
        yield session

    app.dependency_overrides[get_db] = failing_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


class TestAccountRoutes:
    """Tests for /api/account-data."""

    @pytest.mark.asyncio
    async def test_missing_account(self, client):
        response = await client.get("/api/account-data")

        assert response.status_code == 200
        assert response.json() == {"success": True, "account": None}

    @pytest.mark.asyncio
    async def test_account(self, client, add_records, account_factory):
        await add_records(account_factory())

        body = (await client.get("/api/account-data")).json()

        assert body["success"] is True
        assert body["account"]["current_balance"] == 12000.0
        assert body["account"]["daily_trades_limit"] == 10

    @pytest.mark.asyncio
    async def test_positions_response_shape(self, client, add_records, position_factory):
        await add_records(*[position_factory(minutes=i, symbol="BTCUSDT", pnl=float(i)) for i in range(25)])
        await add_records(position_factory(minutes=30, symbol="ETHUSDT", position_type="SHORT", status="OPEN"))

        response = await client.post(
            "/api/account-data",
            json={"page": 3, "limit": 10, "status": "CLOSED", "filters": {"symbol": "btc", "minPnl": "abc"}},
        )
        body = response.json()

        assert response.status_code == 200
        assert body["success"] is True
        assert len(body["positions"]) == 5
        assert body["pagination"] == {"currentPage": 3, "totalPages": 3, "totalCount": 25, "limit": 10}
        assert sorted(body["uniqueValues"]["symbols"]) == ["BTCUSDT", "ETHUSDT"]
        assert sorted(body["uniqueValues"]["positionTypes"]) == ["LONG", "SHORT"]
        assert body["positions"][0]["position_type"] == "LONG"

    @pytest.mark.asyncio
    async def test_page_past_the_end(self, client, add_records, position_factory):
        await add_records(*[position_factory(minutes=i) for i in range(3)])

        body = (await client.post("/api/account-data", json={"page": 9, "limit": 10})).json()

        assert body["positions"] == []
        assert body["pagination"]["totalCount"] == 3
        assert body["pagination"]["totalPages"] == 1

    @pytest.mark.asyncio
    async def test_invalid_page_uses_error_envelope(self, client):
        response = await client.post("/api/account-data", json={"page": 0})

        assert response.status_code == 422
        assert response.json()["success"] is False
        assert "page" in response.json()["error"]

    @pytest.mark.asyncio
    async def test_stats(self, client, add_records, position_factory):
        await add_records(*[
            position_factory(minutes=i, pnl=pnl) for i, pnl in enumerate([150.0, -40.0, -10.0, 0.0, 300.0])
        ])

        body = (await client.get("/api/account-data/stats")).json()

        assert body == {
            "success": True,
            "stats": {"maxProfit": 300.0, "maxLoss": -40.0, "totalPositivePnl": 450.0, "totalNegativePnl": -50.0},
        }

    @pytest.mark.asyncio
    async def test_snapshot(self, client, add_records, account_factory, position_factory):
        await add_records(
            account_factory(current_balance=10500.0, initial_balance=10000.0),
            position_factory(minutes=1, status="OPEN", pnl=7.5),
        )

        body = (await client.get("/api/account-data/snapshot")).json()

        assert body["success"] is True
        assert body["snapshot"]["accountGrowth"] == pytest.approx(5.0)
        assert body["snapshot"]["unrealizedPnl"] == 7.5
        assert body["snapshot"]["openPositions"] == 1
        assert body["snapshot"]["totalTrades"] == 42

    @pytest.mark.asyncio
    async def test_snapshot_without_account(self, client):
        body = (await client.get("/api/account-data/snapshot")).json()

        assert body == {"success": True, "snapshot": None}


class TestTradingDataRoutes:
    """Tests for /api/trading-data."""

    @pytest.mark.asyncio
    async def test_analysis_page(self, client, add_records, analysis_factory):
        await add_records(*[analysis_factory(minutes=i, symbol="BTCUSDT" if i % 2 else "ETHUSDT") for i in range(45)])

        response = await client.post(
            "/api/trading-data",
            json={"page": 2, "limit": 20, "searchTerm": "", "filters": {"signal": "", "trend": ""}},
        )
        body = response.json()

        assert response.status_code == 200
        assert body["success"] is True
        assert len(body["data"]) == 20
        assert body["totalCount"] == 45
        assert body["totalPages"] == 3
        assert body["currentPage"] == 2
        assert body["hasNextPage"] is True
        assert body["hasPrevPage"] is True
        assert sorted(body["uniqueValues"]["symbols"]) == ["BTCUSDT", "ETHUSDT"]
        assert body["data"][0]["analysis_data"]["consensus"]["signal"] == "BUY"

    @pytest.mark.asyncio
    async def test_health(self, client, add_records, analysis_factory):
        await add_records(analysis_factory())

        body = (await client.get("/api/trading-data")).json()

        assert body["status"] == "Connected to database"
        assert body["collection"] == "analysis_results"
        assert body["totalDocuments"] == 1


class TestDashboardRoutes:
    """Tests for the composed dashboard refresh."""

    @pytest.mark.asyncio
    async def test_fetch_all(self, client, add_records, account_factory, position_factory):
        await add_records(
            account_factory(),
            position_factory(minutes=1, status="OPEN", pnl=3.0),
            position_factory(minutes=2, symbol="ETHUSDT", pnl=-8.0),
            position_factory(minutes=3, symbol="BTCUSDT", pnl=12.0),
        )

        body = (await client.post("/api/dashboard", json={"closedPage": 1, "filters": {"symbol": "eth"}})).json()

        assert body["success"] is True
        assert body["errors"] == {}
        assert body["snapshot"]["account"]["id"] == 1
        assert body["snapshot"]["accountGrowth"] == pytest.approx(20.0)
        assert body["snapshot"]["unrealizedPnl"] == 3.0
        assert body["openPositions"]["pagination"]["totalCount"] == 1
        assert body["closedPositions"]["pagination"]["totalCount"] == 1
        assert body["stats"]["maxProfit"] == 12.0

    @pytest.mark.asyncio
    async def test_latest_refreshes_when_empty(self, client):
        body = (await client.get("/api/dashboard/latest")).json()

        assert body["success"] is True
        assert body["snapshot"] is None

    @pytest.mark.asyncio
    async def test_filter_change_restarts_closed_paging(self, client, add_records, position_factory):
        await add_records(
            *[position_factory(minutes=i, symbol="ETHUSDT") for i in range(25)],
            *[position_factory(minutes=30 + i, symbol="BTCUSDT") for i in range(3)],
        )

        first = (await client.post("/api/dashboard", json={"closedPage": 3, "filters": {"symbol": "eth"}})).json()
        second = (await client.post("/api/dashboard", json={"closedPage": 2, "filters": {"symbol": "eth"}})).json()
        latest = (await client.get("/api/dashboard/latest")).json()

        assert first["closedPositions"]["pagination"]["currentPage"] == 1
        assert first["closedPositions"]["pagination"]["totalCount"] == 25
        assert second["closedPositions"]["pagination"]["currentPage"] == 2
        assert latest["closedPositions"]["pagination"] == second["closedPositions"]["pagination"]

    @pytest.mark.asyncio
    async def test_every_part_failing_uses_error_envelope(self):
        def unavailable():
            raise RuntimeError("store unavailable")

        app.dependency_overrides[get_refresher] = lambda: DashboardRefresher(unavailable)
        try:
            async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
                response = await client.post("/api/dashboard", json={})
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 500
        assert response.json()["success"] is False
        assert "store unavailable" in response.json()["error"]


class TestStoreFailures:
    """Store errors surface as the failure envelope."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method,path,payload", [
        ("get", "/api/account-data", None),
        ("post", "/api/account-data", {"page": 1}),
        ("get", "/api/account-data/stats", None),
        ("get", "/api/account-data/snapshot", None),
    ])
    async def test_failure_envelope(self, broken_client, method, path, payload):
        if method == "get":
            response = await broken_client.get(path)
        else:
            response = await broken_client.post(path, json=payload)

        assert response.status_code == 500
        assert response.json() == {"success": False, "error": "store unavailable"}

    @pytest.mark.asyncio
    async def test_trading_data_failure(self, broken_client):
        response = await broken_client.post("/api/trading-data", json={})

        assert response.status_code == 500
        assert response.json()["success"] is False
        assert "store unavailable" in response.json()["error"]
