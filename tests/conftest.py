"""Shared pytest fixtures for all test modules."""

import pytest

from pricestream.catalog import CatalogEntry, bootstrap_state
from pricestream.stats.engine import StatsEngine
from pricestream.store.asset_state import AssetState
from pricestream.store.asset_store import AssetStore

# 2024-01-01T00:00:00Z in Unix ms
T0 = 1_704_067_200_000


class FakeClock:
    """Settable epoch-ms clock"""

    def __init__(self, now: int = T0) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def t0() -> int:
    return T0


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def bitcoin_entry() -> CatalogEntry:
    return CatalogEntry(
        id="bitcoin",
        symbol="BTC",
        name="Bitcoin",
        circulating_supply=19_500_000,
        max_supply=21_000_000,
    )


@pytest.fixture
def ethereum_entry() -> CatalogEntry:
    return CatalogEntry(
        id="ethereum",
        symbol="ETH",
        name="Ethereum",
        circulating_supply=120_000_000,
    )


@pytest.fixture
def bitcoin_state(bitcoin_entry: CatalogEntry) -> AssetState:
    return bootstrap_state(bitcoin_entry, now=T0)


@pytest.fixture
def engine(clock: FakeClock) -> StatsEngine:
    return StatsEngine(clock=clock)


@pytest.fixture
async def store(
    engine: StatsEngine,
    bitcoin_entry: CatalogEntry,
    ethereum_entry: CatalogEntry,
) -> AssetStore:
    store = AssetStore(engine=engine)
    await store.set_catalog(
        [
            bootstrap_state(bitcoin_entry, now=T0),
            bootstrap_state(ethereum_entry, now=T0),
        ]
    )
    return store
