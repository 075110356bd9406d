"""Unit tests for HTTP server component."""

from unittest.mock import MagicMock

import pytest
from aiohttp.test_utils import TestClient, TestServer

from pricestream.server import HTTPServer
from pricestream.server.server import asset_summary
from pricestream.store.asset_state import AssetState
from pricestream.store.asset_store import AssetStore


def make_app_mock(store: AssetStore | None = None, healthy: bool = True) -> MagicMock:
    mock_app = MagicMock()
    mock_app.is_healthy.return_value = healthy
    mock_app.store = store
    mock_app.client = MagicMock()
    mock_app.client.is_healthy = healthy
    return mock_app


class TestHTTPServerLifecycle:
    """Test HTTPServer lifecycle management."""

    @pytest.mark.asyncio
    async def test_initial_state(self):
        server = HTTPServer(MagicMock(), port=8080)

        assert not server._running

    @pytest.mark.asyncio
    async def test_start_already_running(self):
        """Starting when already running logs a warning and returns early."""
        server = HTTPServer(MagicMock())
        server._running = True

        await server.start()  # This would fail if it tried to bind

        assert server._runner is None

    @pytest.mark.asyncio
    async def test_stop_not_running(self):
        server = HTTPServer(MagicMock())

        await server.stop()

        assert not server._running

    @pytest.mark.asyncio
    async def test_start_stop_on_ephemeral_port(self):
        server = HTTPServer(make_app_mock(), port=0, host="127.0.0.1")

        await server.start()
        assert server._running

        await server.stop()
        assert not server._running
        assert server._runner is None


class TestHealthEndpoint:
    """Test /health endpoint handler."""

    @pytest.mark.asyncio
    async def test_health_endpoint_healthy(self, store: AssetStore):
        server = HTTPServer(make_app_mock(store=store))

        async with TestClient(TestServer(server.build_app())) as client:
            resp = await client.get("/health")

            assert resp.status == 200
            data = await resp.json()

            assert data["healthy"] is True
            assert "timestamp" in data
            assert data["components"]["store"] is True
            assert data["components"]["stream"] is True

    @pytest.mark.asyncio
    async def test_health_endpoint_unhealthy(self):
        mock_app = make_app_mock(healthy=False)
        mock_app.client = None

        server = HTTPServer(mock_app)

        async with TestClient(TestServer(server.build_app())) as client:
            resp = await client.get("/health")

            assert resp.status == 503
            data = await resp.json()

            assert data["healthy"] is False
            assert data["components"]["store"] is False
            assert data["components"]["stream"] is False


class TestStatsEndpoint:
    """Test /stats endpoint handler."""

    @pytest.mark.asyncio
    async def test_stats_endpoint_returns_data(self):
        mock_app = MagicMock()
        mock_app.get_stats.return_value = {
            "running": True,
            "connection": {"state": "CONNECTED", "attempts": 0},
            "store": {"asset_count": 5},
            "assets": [],
        }

        server = HTTPServer(mock_app)

        async with TestClient(TestServer(server.build_app())) as client:
            resp = await client.get("/stats")

            assert resp.status == 200
            data = await resp.json()

            assert data["running"] is True
            assert data["connection"]["state"] == "CONNECTED"
            assert data["store"]["asset_count"] == 5


class TestMetricsEndpoint:
    """Test /metrics endpoint handler."""

    @pytest.mark.asyncio
    async def test_metrics_endpoint_returns_prometheus_text(self):
        mock_app = MagicMock()
        mock_app.get_stats.return_value = {
            "running": True,
            "connection": {},
            "store": {},
            "assets": [],
        }

        server = HTTPServer(mock_app)

        async with TestClient(TestServer(server.build_app())) as client:
            resp = await client.get("/metrics")

            assert resp.status == 200
            assert resp.headers["Content-Type"].startswith("text/plain")
            text = await resp.text()
            assert "pricestream_application_running 1.0" in text

    @pytest.mark.asyncio
    async def test_metrics_endpoint_error(self):
        mock_app = MagicMock()
        mock_app.get_stats.side_effect = RuntimeError("stats unavailable")

        server = HTTPServer(mock_app)

        async with TestClient(TestServer(server.build_app())) as client:
            resp = await client.get("/metrics")

            assert resp.status == 500
            data = await resp.json()
            assert data["error"] == "stats unavailable"


class TestAssetEndpoints:
    """Test /assets and /assets/{asset_id} handlers."""

    @pytest.mark.asyncio
    async def test_assets_lists_summaries(self, store: AssetStore, t0: int):
        await store.apply_price_sample("bitcoin", 50_000.0, t0)
        server = HTTPServer(make_app_mock(store=store))

        async with TestClient(TestServer(server.build_app())) as client:
            resp = await client.get("/assets")

            assert resp.status == 200
            data = await resp.json()

            assert data["connected"] is False
            assert data["error"] is None
            assert data["loading"] is False
            assert [asset["id"] for asset in data["assets"]] == [
                "bitcoin",
                "ethereum",
            ]
            bitcoin = data["assets"][0]
            assert bitcoin["price"] == 50_000.0
            assert bitcoin["series_length"] == 2
            assert "series" not in bitcoin

    @pytest.mark.asyncio
    async def test_asset_detail_includes_series(self, store: AssetStore, t0: int):
        await store.apply_price_sample("ethereum", 3_000.0, t0)
        server = HTTPServer(make_app_mock(store=store))

        async with TestClient(TestServer(server.build_app())) as client:
            resp = await client.get("/assets/ETHEREUM")

            assert resp.status == 200
            data = await resp.json()

            assert data["id"] == "ethereum"
            assert data["market_cap"] == 3_000.0 * 120_000_000
            assert data["series"] == [[0.0, t0], [3_000.0, t0]]

    @pytest.mark.asyncio
    async def test_asset_detail_not_found(self, store: AssetStore):
        server = HTTPServer(make_app_mock(store=store))

        async with TestClient(TestServer(server.build_app())) as client:
            resp = await client.get("/assets/dogecoin")

            assert resp.status == 404

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", ["/assets", "/assets/bitcoin"])
    async def test_assets_unavailable_before_start(self, path: str):
        server = HTTPServer(make_app_mock(store=None))

        async with TestClient(TestServer(server.build_app())) as client:
            resp = await client.get(path)

            assert resp.status == 503


def test_asset_summary_replaces_series_with_length(bitcoin_state: AssetState):
    summary = asset_summary(bitcoin_state)

    assert "series" not in summary
    assert summary["series_length"] == 1
    assert summary["id"] == "bitcoin"
    assert summary["circulating_supply"] == 19_500_000
