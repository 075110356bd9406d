"""Prometheus metrics collector for PriceStream application stats.

Metrics are rebuilt from PriceStream.get_stats() on every scrape, so counters
reflect lifetime totals held in the stats objects rather than increments
observed by this module.
"""

from typing import TYPE_CHECKING, Any

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    generate_latest,
)

from pricestream.connection.types import ConnectionState

if TYPE_CHECKING:
    from pricestream.app import PriceStream


class MetricsCollector:
    """
    Collects application statistics and exposes them as Prometheus metrics.
    """

    def __init__(self, app: "PriceStream") -> None:
        self._app = app

    def collect_metrics(self) -> bytes:
        """
        Collect current stats and return Prometheus text format.

        Returns:
            Prometheus text exposition format bytes
        """
        # Create fresh registry for this scrape
        registry = CollectorRegistry()

        stats = self._app.get_stats()

        self._collect_application_metrics(registry, stats)
        self._collect_connection_metrics(registry, stats)
        self._collect_store_metrics(registry, stats)
        self._collect_asset_metrics(registry, stats)

        return generate_latest(registry)

    def _collect_application_metrics(
        self, registry: CollectorRegistry, stats: dict[str, Any]
    ) -> None:
        running = Gauge(
            "pricestream_application_running",
            "Whether the application is running (1) or stopped (0)",
            registry=registry,
        )
        running.set(1 if stats.get("running") else 0)

    def _collect_connection_metrics(
        self, registry: CollectorRegistry, stats: dict[str, Any]
    ) -> None:
        """Collect trade stream connection metrics."""
        connection_stats = stats.get("connection", {})
        if not connection_stats:
            return

        # One series per state, 1 for the current one
        state = Gauge(
            "pricestream_stream_state",
            "Trade stream lifecycle state (1 = current)",
            ["state"],
            registry=registry,
        )
        current = connection_stats.get("state")
        for candidate in ConnectionState:
            state.labels(state=candidate.name).set(
                1 if candidate.name == current else 0
            )

        healthy = Gauge(
            "pricestream_stream_healthy",
            "Trade stream health (1=healthy, 0=unhealthy)",
            registry=registry,
        )
        healthy.set(1 if connection_stats.get("is_healthy") else 0)

        attempts = Gauge(
            "pricestream_stream_reconnect_attempts",
            "Consecutive failed connection attempts",
            registry=registry,
        )
        attempts.set(connection_stats.get("attempts", 0))

        message_rate = Gauge(
            "pricestream_stream_message_rate",
            "Message rate (messages/second, lifetime average)",
            registry=registry,
        )
        message_rate.set(connection_stats.get("message_rate", 0.0))

        for name, description, key in (
            (
                "pricestream_stream_messages_received",
                "Total frames received",
                "messages_received",
            ),
            (
                "pricestream_stream_bytes_received",
                "Total bytes received",
                "bytes_received",
            ),
            (
                "pricestream_stream_parse_errors",
                "Total malformed frames discarded",
                "parse_errors",
            ),
            (
                "pricestream_stream_trades_received",
                "Total trade events decoded",
                "trades_received",
            ),
            (
                "pricestream_stream_reconnects",
                "Total reconnects scheduled",
                "reconnect_count",
            ),
        ):
            counter = Counter(name, description, registry=registry)
            counter.inc(connection_stats.get(key, 0))

    def _collect_store_metrics(
        self, registry: CollectorRegistry, stats: dict[str, Any]
    ) -> None:
        """Collect asset store metrics."""
        store_stats = stats.get("store", {})
        if not store_stats:
            return

        assets = Gauge(
            "pricestream_store_assets",
            "Number of tracked assets",
            registry=registry,
        )
        assets.set(store_stats.get("asset_count", 0))

        connected = Gauge(
            "pricestream_store_connected",
            "Connection flag as published to the state sink",
            registry=registry,
        )
        connected.set(1 if store_stats.get("connected") else 0)

        samples = Counter(
            "pricestream_store_samples",
            "Price samples handled by the store",
            ["result"],
            registry=registry,
        )
        samples.labels(result="applied").inc(store_stats.get("samples_applied", 0))
        samples.labels(result="ignored").inc(store_stats.get("samples_ignored", 0))

    def _collect_asset_metrics(
        self, registry: CollectorRegistry, stats: dict[str, Any]
    ) -> None:
        """Collect per-asset price metrics with asset_id labels."""
        asset_stats = stats.get("assets", [])
        if not asset_stats:
            return

        price = Gauge(
            "pricestream_asset_price",
            "Latest trade price",
            ["asset_id"],
            registry=registry,
        )
        market_cap = Gauge(
            "pricestream_asset_market_cap",
            "Price times circulating supply",
            ["asset_id"],
            registry=registry,
        )
        change = Gauge(
            "pricestream_asset_change_percent",
            "Percentage change over a window",
            ["asset_id", "window"],
            registry=registry,
        )
        series_length = Gauge(
            "pricestream_asset_series_length",
            "Samples retained in the rolling series",
            ["asset_id"],
            registry=registry,
        )

        for asset in asset_stats:
            asset_id = asset["id"]
            price.labels(asset_id=asset_id).set(asset.get("price", 0.0))
            market_cap.labels(asset_id=asset_id).set(asset.get("market_cap", 0.0))
            change.labels(asset_id=asset_id, window="1h").set(
                asset.get("change_1h", 0.0)
            )
            change.labels(asset_id=asset_id, window="24h").set(
                asset.get("change_24h", 0.0)
            )
            change.labels(asset_id=asset_id, window="7d").set(
                asset.get("change_7d", 0.0)
            )
            series_length.labels(asset_id=asset_id).set(
                asset.get("series_length", 0)
            )
