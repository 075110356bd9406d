import asyncio
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass

import msgspec
import structlog

from pricestream.core.logging import Logger
from pricestream.stats.engine import StatsEngine
from pricestream.store.asset_state import (
    AssetState,
    ConnectionStatus,
    PriceSample,
    StoreEvent,
    StoreEventKind,
)

logger: Logger = structlog.getLogger(__name__)

StoreListener = Callable[[StoreEvent], Awaitable[None]]


@dataclass(slots=True)
class StoreStats:
    """Ingestion counters"""

    samples_applied: int = 0
    samples_ignored: int = 0  # feed referenced an untracked asset
    listener_errors: int = 0


class AssetStore:
    """
    Authoritative in-memory table of asset state.

    Writes are serialized through a single lock and commit by swapping in a
    new frozen AssetState, so lock-free readers always see a consistent
    asset. Every committed change is published to subscribed listeners.
    """

    __slots__ = (
        "_lock",
        "_engine",
        "_assets",
        "_status",
        "_loading",
        "_listeners",
        "_stats",
    )

    def __init__(self, engine: StatsEngine | None = None) -> None:
        self._lock = asyncio.Lock()
        self._engine = engine or StatsEngine()

        # asset_id (lowercase) -> state, insertion order is catalog order
        self._assets: dict[str, AssetState] = {}
        self._status = ConnectionStatus()
        self._loading = False

        self._listeners: list[StoreListener] = []
        self._stats = StoreStats()

    # -------------------------------
    # Read-only operations (lock-free)
    # -------------------------------

    def get(self, asset_id: str) -> AssetState | None:
        return self._assets.get(asset_id.lower())

    def snapshot(self) -> tuple[AssetState, ...]:
        return tuple(self._assets.values())

    @property
    def asset_ids(self) -> tuple[str, ...]:
        return tuple(state.id for state in self._assets.values())

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def stats(self) -> StoreStats:
        return self._stats

    def __len__(self) -> int:
        return len(self._assets)

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """
        Register a state sink listener.

        Returns a callable that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ---------------------------
    # Mutation operations (require lock)
    # --------------------------

    async def set_catalog(self, assets: Iterable[AssetState]) -> None:
        """Replace the whole table, clears loading and error flags"""
        async with self._lock:
            self._assets = {state.id.lower(): state for state in assets}
            self._loading = False
            self._status = msgspec.structs.replace(self._status, last_error=None)

            replaced = tuple(self._assets.values())

        logger.info(f"Catalog loaded with {len(replaced)} assets")
        await self._publish(
            StoreEvent(kind=StoreEventKind.ASSETS_REPLACED, assets=replaced)
        )

    async def set_loading(self, loading: bool) -> None:
        async with self._lock:
            self._loading = loading

    async def set_connection_status(self, connected: bool) -> None:
        async with self._lock:
            if self._status.connected == connected:
                return

            self._status = msgspec.structs.replace(self._status, connected=connected)
            status = self._status

        await self._publish(
            StoreEvent(kind=StoreEventKind.CONNECTION_CHANGED, status=status)
        )

    async def set_error(self, message: str) -> None:
        """Record an error, does not touch the connected flag"""
        async with self._lock:
            self._status = msgspec.structs.replace(self._status, last_error=message)
            self._loading = False
            status = self._status

        await self._publish(StoreEvent(kind=StoreEventKind.ERROR, status=status))

    async def apply_price_sample(
        self, asset_id: str, price: float, timestamp: int
    ) -> AssetState | None:
        """
        Fold a price sample into an asset's state.

        Returns the committed state, or None when the asset is not tracked
        """
        key = asset_id.lower()

        async with self._lock:
            old = self._assets.get(key)
            if old is None:
                self._stats.samples_ignored += 1
                return None

            updated = self._engine.apply(
                old, PriceSample(price=price, timestamp=timestamp)
            )
            self._assets[key] = updated
            self._stats.samples_applied += 1

        await self._publish(StoreEvent(kind=StoreEventKind.ASSET_UPDATED, asset=updated))

        return updated

    async def _publish(self, event: StoreEvent) -> None:
        for listener in tuple(self._listeners):
            try:
                await listener(event)
            except Exception as e:
                self._stats.listener_errors += 1
                logger.exception(f"Store listener error {e}")
