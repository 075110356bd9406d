from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

import msgspec
import structlog
from aiohttp import web
from aiohttp.hdrs import CONTENT_TYPE
from prometheus_client import CONTENT_TYPE_LATEST

from pricestream.core.logging import Logger
from pricestream.store.asset_state import AssetState

if TYPE_CHECKING:
    from pricestream.app import PriceStream

logger: Logger = structlog.getLogger(__name__)


def asset_summary(asset: AssetState) -> dict:
    """Asset fields without the retained series"""
    summary = msgspec.structs.asdict(asset)
    summary["series_length"] = len(summary.pop("series"))
    return summary


class HTTPServer:
    """
    Read-only HTTP surface over the asset store.

    Serves health, stats, Prometheus metrics and asset snapshots.
    """

    __slots__ = (
        "_app",
        "_port",
        "_host",
        "_runner",
        "_site",
        "_running",
    )

    def __init__(
        self,
        app: "PriceStream",
        port: int = 8080,
        host: str = "0.0.0.0",
    ) -> None:
        """Initialize HTTP server.

        Args:
            app: PriceStream application instance to query for health/stats
            port: Port to bind to (default: 8080)
            host: Host to bind to (default: 0.0.0.0 for container compatibility)
        """
        self._app = app
        self._port = port
        self._host = host
        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None
        self._running = False

    def build_app(self) -> web.Application:
        web_app = web.Application()
        web_app.router.add_get("/health", self._handle_health)
        web_app.router.add_get("/stats", self._handle_stats)
        web_app.router.add_get("/metrics", self._handle_metrics)
        web_app.router.add_get("/assets", self._handle_assets)
        web_app.router.add_get("/assets/{asset_id}", self._handle_asset)
        return web_app

    async def start(self) -> None:
        """Start HTTP server.

        Raises:
            Exception: If server fails to start (port conflict, etc.)
        """
        if self._running:
            logger.warning("HTTP server already running")
            return

        logger.info(f"Starting HTTP server on {self._host}:{self._port}")

        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()

        self._site = web.TCPSite(
            self._runner,
            self._host,
            self._port,
        )
        await self._site.start()

        self._running = True
        logger.info(f"✓ HTTP server started on {self._host}:{self._port}")

    async def stop(self) -> None:
        """Stop HTTP server gracefully."""
        if not self._running:
            logger.warning("HTTP server not running")
            return

        logger.info("Stopping HTTP server...")

        self._running = False

        if self._site:
            await self._site.stop()
            self._site = None

        if self._runner:
            await self._runner.cleanup()
            self._runner = None

        logger.info("✓ HTTP server stopped")

    async def _handle_health(self, request: web.Request) -> web.Response:
        """Handle GET /health endpoint.

        Returns:
            200 OK with health status and component breakdown when healthy
            503 Service Unavailable when unhealthy
        """
        logger.debug("GET /health")

        is_healthy = self._app.is_healthy()

        store = self._app.store
        client = self._app.client
        components = {
            "store": store is not None,
            "stream": bool(client is not None and client.is_healthy),
        }

        response_data = {
            "healthy": is_healthy,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "components": components,
        }

        status = 200 if is_healthy else 503
        return web.json_response(response_data, status=status)

    async def _handle_stats(self, request: web.Request) -> web.Response:
        logger.debug("GET /stats")

        return web.json_response(self._app.get_stats(), status=200)

    async def _handle_metrics(self, request: web.Request) -> web.Response:
        """Handle GET /metrics endpoint.

        Returns:
            200 OK with Prometheus text exposition format
        """
        try:
            # Import here to avoid circular dependency
            from pricestream.metrics.prometheus import MetricsCollector

            metrics_bytes = MetricsCollector(self._app).collect_metrics()

        except Exception as e:
            logger.exception(f"Error getting metrics: {e}")
            return web.json_response({"error": str(e)}, status=500)

        return web.Response(
            body=metrics_bytes,
            headers={CONTENT_TYPE: CONTENT_TYPE_LATEST},
        )

    async def _handle_assets(self, request: web.Request) -> web.Response:
        """Handle GET /assets endpoint.

        Returns:
            200 OK with every tracked asset (series omitted) and connection status
            503 Service Unavailable before the store exists
        """
        logger.debug("GET /assets")

        store = self._app.store
        if store is None:
            return web.json_response({"error": "Store not available"}, status=503)

        return web.json_response(
            {
                "connected": store.status.connected,
                "error": store.status.last_error,
                "loading": store.loading,
                "assets": [asset_summary(asset) for asset in store.snapshot()],
            },
            status=200,
        )

    async def _handle_asset(self, request: web.Request) -> web.Response:
        """Handle GET /assets/{asset_id} endpoint.

        Returns:
            200 OK with the full asset state including its series
            404 Not Found if the asset is not tracked
            503 Service Unavailable before the store exists
        """
        asset_id = request.match_info["asset_id"]

        logger.debug(f"GET /assets/{asset_id}")

        store = self._app.store
        if store is None:
            return web.json_response({"error": "Store not available"}, status=503)

        asset = store.get(asset_id)
        if asset is None:
            return web.json_response(
                {"error": f"Asset {asset_id} not found"}, status=404
            )

        return web.json_response(msgspec.to_builtins(asset), status=200)
