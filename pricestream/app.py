import asyncio
import signal
from collections.abc import Sequence
from typing import Any

import structlog

from pricestream.catalog import (
    DEFAULT_CATALOG,
    CatalogEntry,
    bootstrap_state,
    load_catalog,
)
from pricestream.connection.types import ConnectionState
from pricestream.connection.websocket import StreamClient
from pricestream.core.clock import now_ms
from pricestream.core.config import settings
from pricestream.core.logging import Logger
from pricestream.messages.parser import MessageParser
from pricestream.server import HTTPServer
from pricestream.store.asset_store import AssetStore
from pricestream.symbols.mapper import SymbolMapper

logger: Logger = structlog.getLogger(__name__)


class PriceStream:
    """
    Main application orchestrator.

    Wires the catalog, store and stream client together and owns their
    startup/shutdown order. Instances are independent; nothing here is a
    module-level singleton.
    """

    __slots__ = (
        "_catalog",
        "_store",
        "_mapper",
        "_parser",
        "_client",
        "_running",
        "_shutdown_event",
        "_http_server",
        "_enable_http",
        "_http_port",
    )

    def __init__(
        self,
        catalog: Sequence[CatalogEntry] | None = None,
        enable_http: bool = False,
        http_port: int = 8080,
    ) -> None:
        """Initialise application

        Args:
            catalog: Assets to track (default = CATALOG_PATH or built-in catalog)
            enable_http: Whether to start HTTP server (default = False)
            http_port: Port for HTTP server (default = 8080)
        """
        if catalog is not None and len(catalog) == 0:
            raise ValueError("catalog must contain at least one asset")

        self._catalog: tuple[CatalogEntry, ...] | None = (
            tuple(catalog) if catalog is not None else None
        )

        # Components (initialised on start)
        self._store: AssetStore | None = None
        self._mapper: SymbolMapper | None = None
        self._parser: MessageParser | None = None
        self._client: StreamClient | None = None

        # HTTP server configuration
        self._enable_http = enable_http
        self._http_port = http_port
        self._http_server: HTTPServer | None = None

        self._running = False
        self._shutdown_event = asyncio.Event()

    @property
    def is_running(self) -> bool:
        "Whether the application is currently running"
        return self._running

    @property
    def store(self) -> AssetStore | None:
        return self._store

    @property
    def client(self) -> StreamClient | None:
        return self._client

    async def start(self) -> None:
        """
        Start all components in correct order.

        Fast-fails on any component startup error, stopping already-started components
        """
        if self._running:
            logger.warning("Application already running")
            return

        logger.info("Starting PriceStream application...")

        try:
            # 1. Catalog
            catalog = self._resolve_catalog()
            logger.info(f"✓ Catalog resolved with {len(catalog)} assets")

            # 2. AssetStore, seeded with bootstrap state
            self._store = AssetStore()
            await self._store.set_loading(True)
            now = now_ms()
            await self._store.set_catalog(
                bootstrap_state(entry, now) for entry in catalog
            )
            logger.info("✓ AssetStore initialised")

            # 3. SymbolMapper and MessageParser
            self._mapper = SymbolMapper.from_catalog(catalog)
            self._parser = MessageParser()
            logger.info(f"✓ SymbolMapper initialised with {len(self._mapper)} symbols")

            # 4. StreamClient
            self._client = StreamClient(
                store=self._store,
                mapper=self._mapper,
                parser=self._parser,
            )
            await self._client.initialize([entry.symbol for entry in catalog])
            logger.info("✓ StreamClient started")

            # 5. HTTP Server (if enabled)
            if self._enable_http:
                self._http_server = HTTPServer(
                    app=self,  # type: ignore[arg-type]
                    port=self._http_port,
                    host=settings.HTTP_HOST,
                )
                try:
                    await self._http_server.start()
                except Exception as e:
                    logger.error(f"Failed to start HTTP server: {e}")
                    # Don't fail startup if HTTP server fails
                    self._http_server = None

            self._running = True
            logger.info("✓ PriceStream started successfully!")

        except Exception as e:
            logger.error(f"X Application startup failed: {e}")
            await self._cleanup_on_startup_failure()

    def _resolve_catalog(self) -> tuple[CatalogEntry, ...]:
        if self._catalog is not None:
            return self._catalog

        if settings.CATALOG_PATH:
            return load_catalog(settings.CATALOG_PATH)

        return DEFAULT_CATALOG

    async def stop(self) -> None:
        if not self._running:
            logger.warning("Application not running")
            return

        logger.info("Stopping application...")
        start_time = asyncio.get_running_loop().time()

        await self._stop()

        self._running = False

        elapsed_time = asyncio.get_running_loop().time() - start_time

        logger.info(f"Application stopped - shutdown took {elapsed_time:.1f}s")

    async def _stop(self) -> None:
        # Stop in reverse order
        if self._http_server:
            try:
                await self._http_server.stop()
            except Exception as e:
                logger.error(f"Error stopping HTTP server: {e}")

        if self._client:
            try:
                await self._client.disconnect()
            except Exception as e:
                logger.error(f"Error stopping stream client: {e}")

        logger.info("Cleanup completed")

    async def _cleanup_on_startup_failure(self) -> None:
        logger.warning("Cleaning up after startup failure...")

        await self._stop()

    async def run(self) -> None:
        """
        Run application with automatic signal handling.

        Blocks until SIGINT or SIGTERM received, then gracefully stops.
        """
        loop = asyncio.get_running_loop()

        def signal_handler(*args, **kwargs) -> None:
            logger.info("Shutdown signal received")
            self._shutdown_event.set()

        signals = (signal.SIGINT, signal.SIGTERM)
        for sig in signals:
            loop.add_signal_handler(sig, signal_handler)

        try:
            await self.start()

            if self._running:
                await self._shutdown_event.wait()
        finally:
            await self.stop()

            for sig in signals:
                loop.remove_signal_handler(sig)

    def get_stats(self) -> dict[str, Any]:
        """
        Get comprehensive application statistics.

        Returns:
            dict with keys: running, connection, store, assets
        """
        stats: dict[str, Any] = {
            "running": self._running,
            "connection": {},
            "store": {},
            "assets": [],
        }

        if self._store:
            status = self._store.status
            store_stats = self._store.stats
            stats["store"] = {
                "asset_count": len(self._store),
                "loading": self._store.loading,
                "connected": status.connected,
                "last_error": status.last_error,
                "samples_applied": store_stats.samples_applied,
                "samples_ignored": store_stats.samples_ignored,
                "listener_errors": store_stats.listener_errors,
            }
            stats["assets"] = [
                {
                    "id": asset.id,
                    "symbol": asset.symbol,
                    "price": asset.price,
                    "market_cap": asset.market_cap,
                    "change_1h": asset.change_1h,
                    "change_24h": asset.change_24h,
                    "change_7d": asset.change_7d,
                    "series_length": len(asset.series),
                    "last_update": asset.last_update,
                }
                for asset in self._store.snapshot()
            ]

        if self._client:
            connection_stats = self._client.stats
            stats["connection"] = {
                "state": self._client.state.name,
                "attempts": self._client.attempts,
                "symbols": list(self._client.symbols),
                "is_healthy": self._client.is_healthy,
                "messages_received": connection_stats.messages_received,
                "bytes_received": connection_stats.bytes_received,
                "parse_errors": connection_stats.parse_errors,
                "trades_received": connection_stats.trades_received,
                "reconnect_count": connection_stats.reconnect_count,
                "message_rate": connection_stats.message_rate,
            }

        return stats

    def is_healthy(self) -> bool:
        if not self._running:
            return False

        if self._client and self._client.state == ConnectionState.PERMANENTLY_FAILED:
            logger.warning("Health check failed: trade stream permanently failed")
            return False

        if self._client and not self._client.is_healthy:
            logger.debug("Health check: trade stream not connected")

        return True
