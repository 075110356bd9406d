"""
Inbound stream frame definitions using msgspec for typed decoding.

Key patterns:
- Trade frames are converted into a Struct, unknown fields are skipped
- Single-letter wire keys are mapped onto readable attribute names
- Decoded samples are frozen so they can be handed across components as-is
"""

from typing import Final

import msgspec

# Quote asset every subscribed pair is denominated in
QUOTE_ASSET: Final[str] = "USDT"
TRADE_EVENT: Final[str] = "trade"

# Per-symbol stream name suffix, e.g. btcusdt@trade
STREAM_SUFFIX: Final[str] = f"{QUOTE_ASSET.lower()}@{TRADE_EVENT}"


class StreamFrame(msgspec.Struct):
    """
    Trade event payload

    Converted from the raw frame only once its event type is known to be a
    trade, so other events are never type-checked against these fields.
    """

    event_type: str = msgspec.field(default="", name="e")
    symbol: str | None = msgspec.field(default=None, name="s")
    price: str | float | None = msgspec.field(default=None, name="p")
    trade_time: int | None = msgspec.field(default=None, name="T")


class TradeSample(msgspec.Struct, frozen=True):
    """Decoded trade, symbol is the base ticker with the quote stripped"""

    symbol: str
    price: float
    timestamp: int  # Unix ms


def strip_quote(pair: str) -> str:
    """BTCUSDT -> BTC"""
    return pair.upper().removesuffix(QUOTE_ASSET)
