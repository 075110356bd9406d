"""
Per-asset state and process-wide connection status.

All structs are frozen: an update produces a new value which the store
swaps in with a single assignment, so readers never see a half-applied
price/market cap pair.
"""

from enum import IntEnum, auto

import msgspec


class PriceSample(msgspec.Struct, frozen=True, array_like=True):
    """
    Single price observation

    array_like=True encodes as [price, timestamp] to keep snapshots compact
    """

    price: float
    timestamp: int  # Unix ms


class AssetState(msgspec.Struct, frozen=True):
    """Tracked asset with its derived statistics"""

    id: str
    symbol: str
    name: str
    circulating_supply: float
    price: float = 0.0
    market_cap: float = 0.0
    change_1h: float = 0.0
    change_24h: float = 0.0
    change_7d: float = 0.0
    series: tuple[PriceSample, ...] = ()
    last_update: int = 0  # Unix ms
    max_supply: float | None = None
    volume_24h: float = 0.0


class ConnectionStatus(msgspec.Struct, frozen=True):
    connected: bool = False
    last_error: str | None = None


class StoreEventKind(IntEnum):
    """Signals published to state sink listeners"""

    ASSETS_REPLACED = auto()
    ASSET_UPDATED = auto()
    CONNECTION_CHANGED = auto()
    ERROR = auto()


class StoreEvent(msgspec.Struct, frozen=True):
    """
    Sink notification

    Tagged by kind: asset is set for ASSET_UPDATED, assets for
    ASSETS_REPLACED, status for CONNECTION_CHANGED and ERROR.
    """

    kind: StoreEventKind
    asset: AssetState | None = None
    assets: tuple[AssetState, ...] = ()
    status: ConnectionStatus | None = None
