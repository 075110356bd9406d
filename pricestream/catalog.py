"""Tracked asset catalog and bootstrap state."""

from pathlib import Path
from typing import Final

import msgspec

from pricestream.core.clock import now_ms
from pricestream.exceptions import CatalogError
from pricestream.store.asset_state import AssetState, PriceSample


class CatalogEntry(
    msgspec.Struct,
    frozen=True,
    rename={
        "circulating_supply": "circulatingSupply",
        "max_supply": "maxSupply",
        "volume_24h": "volume24h",
    },
):
    """Static description of a tracked asset, supply is constant for the process"""

    id: str
    symbol: str
    name: str
    circulating_supply: float
    max_supply: float | None = None
    volume_24h: float = 0.0


DEFAULT_CATALOG: Final[tuple[CatalogEntry, ...]] = (
    CatalogEntry(
        id="bitcoin",
        symbol="BTC",
        name="Bitcoin",
        circulating_supply=19_500_000,
        max_supply=21_000_000,
        volume_24h=28_500_000_000,
    ),
    CatalogEntry(
        id="ethereum",
        symbol="ETH",
        name="Ethereum",
        circulating_supply=120_000_000,
        volume_24h=15_700_000_000,
    ),
    CatalogEntry(
        id="binancecoin",
        symbol="BNB",
        name="BNB",
        circulating_supply=153_000_000,
        max_supply=200_000_000,
        volume_24h=980_000_000,
    ),
    CatalogEntry(
        id="solana",
        symbol="SOL",
        name="Solana",
        circulating_supply=410_000_000,
        volume_24h=2_100_000_000,
    ),
    CatalogEntry(
        id="cardano",
        symbol="ADA",
        name="Cardano",
        circulating_supply=35_000_000_000,
        max_supply=45_000_000_000,
        volume_24h=850_000_000,
    ),
)

_catalog_decoder = msgspec.json.Decoder(list[CatalogEntry])


def load_catalog(path: str | Path) -> tuple[CatalogEntry, ...]:
    """
    Read a JSON array of catalog entries.

    Keys are camelCase (circulatingSupply, maxSupply, volume24h).

    Raises:
        CatalogError: file is missing, malformed, empty or has duplicate ids
    """
    try:
        entries = _catalog_decoder.decode(Path(path).read_bytes())
    except OSError as e:
        raise CatalogError(f"Unable to read catalog {path}: {e}") from e
    except msgspec.DecodeError as e:
        raise CatalogError(f"Invalid catalog {path}: {e}") from e

    if not entries:
        raise CatalogError(f"Catalog {path} is empty")

    ids = [entry.id.lower() for entry in entries]
    if len(set(ids)) != len(ids):
        raise CatalogError(f"Catalog {path} has duplicate asset ids")

    return tuple(entries)


def bootstrap_state(entry: CatalogEntry, now: int | None = None) -> AssetState:
    """Initial state: no price yet, a single zero sample stamped at now"""
    now = now_ms() if now is None else now

    return AssetState(
        id=entry.id,
        symbol=entry.symbol,
        name=entry.name,
        circulating_supply=entry.circulating_supply,
        max_supply=entry.max_supply,
        volume_24h=entry.volume_24h,
        series=(PriceSample(price=0.0, timestamp=now),),
        last_update=now,
    )
