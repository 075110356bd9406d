import math
from typing import Any

import msgspec
import structlog

from pricestream.core.clock import now_ms
from pricestream.core.logging import Logger
from pricestream.exceptions import MessageDecodeError
from pricestream.messages.protocol import (
    TRADE_EVENT,
    StreamFrame,
    TradeSample,
    strip_quote,
)

logger: Logger = structlog.getLogger(__name__)

# Pre-compiled decoder for raw json, frames are typed only once known to be trades
_raw_decoder = msgspec.json.Decoder()


class MessageParser:
    def parse_trade(
        self, data: bytes | str, received_at: int | None = None
    ) -> TradeSample | None:
        """
        Decode a raw stream frame into a trade sample.

        Returns None for well-formed frames that are not trade events,
        whatever else they carry. Falls back to received_at (or the local
        clock) when the exchange did not stamp the trade.

        Raises:
            MessageDecodeError: frame is not valid JSON, not an object,
                or a trade event with a missing or unusable symbol/price
        """
        raw = self._process_bytes(data)

        event_type = raw.get("e", "")
        if event_type != TRADE_EVENT:
            logger.debug(f"Ignoring non-trade event {event_type!r}")
            return None

        frame = self._convert_trade(raw)

        if not frame.symbol:
            raise MessageDecodeError("Trade event is missing a symbol")

        price = self._parse_price(frame.price)

        timestamp = frame.trade_time
        if not timestamp:
            timestamp = received_at if received_at is not None else now_ms()

        return TradeSample(
            symbol=strip_quote(frame.symbol),
            price=price,
            timestamp=timestamp,
        )

    @staticmethod
    def _process_bytes(data: bytes | str) -> dict[str, Any]:
        try:
            raw: Any = _raw_decoder.decode(data)
        except msgspec.DecodeError as e:
            raise MessageDecodeError(f"Unable to decode frame: {e}") from e

        if not isinstance(raw, dict):
            raise MessageDecodeError(
                f"Expected a JSON object, got {type(raw).__name__}"
            )

        return raw

    @staticmethod
    def _convert_trade(raw: dict[str, Any]) -> StreamFrame:
        try:
            return msgspec.convert(raw, StreamFrame)
        except msgspec.ValidationError as e:
            raise MessageDecodeError(f"Invalid trade event: {e}") from e

    @staticmethod
    def _parse_price(raw_price: str | float | None) -> float:
        if raw_price is None:
            raise MessageDecodeError("Trade event is missing a price")

        try:
            price = float(raw_price)
        except ValueError as e:
            raise MessageDecodeError(f"Invalid trade price {raw_price!r}") from e

        if not math.isfinite(price) or price < 0:
            raise MessageDecodeError(f"Invalid trade price {raw_price!r}")

        return price
