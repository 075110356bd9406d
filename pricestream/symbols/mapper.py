from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from pricestream.catalog import CatalogEntry

# Exchange base ticker -> internal asset id
DEFAULT_SYMBOL_MAP: Final[Mapping[str, str]] = {
    "btc": "bitcoin",
    "eth": "ethereum",
    "bnb": "binancecoin",
    "sol": "solana",
    "ada": "cardano",
}


class SymbolMapper:
    """
    Translates exchange tickers to internal asset ids.

    Lookups are case-insensitive. Unknown tickers resolve to their lowercased
    form; the store treats ids it does not track as a no-op.
    """

    __slots__ = ("_table",)

    def __init__(self, extra: Mapping[str, str] | None = None) -> None:
        self._table: dict[str, str] = dict(DEFAULT_SYMBOL_MAP)
        if extra:
            self._table.update(
                {symbol.lower(): asset_id for symbol, asset_id in extra.items()}
            )

    @classmethod
    def from_catalog(cls, entries: Iterable["CatalogEntry"]) -> "SymbolMapper":
        return cls({entry.symbol: entry.id for entry in entries})

    def resolve(self, exchange_symbol: str) -> str:
        symbol = exchange_symbol.lower()
        return self._table.get(symbol, symbol)

    def __len__(self) -> int:
        return len(self._table)
