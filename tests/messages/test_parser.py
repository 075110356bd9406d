import pytest

from pricestream.exceptions import MessageDecodeError
from pricestream.messages.parser import MessageParser
from pricestream.messages.protocol import TradeSample, strip_quote


@pytest.mark.parametrize(
    argnames=("data,expected"),
    argvalues=[
        (
            b'{"e":"trade","E":1704067200123,"s":"BTCUSDT","t":12345,"p":"50000.10000000","q":"0.00100000","T":1704067200120,"m":true,"M":true}',
            TradeSample(symbol="BTC", price=50000.1, timestamp=1704067200120),
        ),
        (
            '{"e":"trade","s":"ETHUSDT","p":"2250.5","T":1704067200000}',
            TradeSample(symbol="ETH", price=2250.5, timestamp=1704067200000),
        ),
        (
            b'{"e":"trade","s":"DOGEUSDT","p":"0.08","T":1}',
            TradeSample(symbol="DOGE", price=0.08, timestamp=1),
        ),
        (
            b'{"e":"trade","s":"SOLUSDT","p":"0","T":5}',
            TradeSample(symbol="SOL", price=0.0, timestamp=5),
        ),
    ],
)
def test_parse_trade(data: bytes | str, expected: TradeSample) -> None:
    # Arrange
    parser = MessageParser()

    # Act
    trade = parser.parse_trade(data)

    # Assert
    assert trade == expected


class TestParserFallbacks:
    """Test timestamp fallback and ignored events."""

    def test_missing_trade_time_uses_received_at(self) -> None:
        # Arrange
        parser = MessageParser()
        data = b'{"e":"trade","s":"BTCUSDT","p":"1.5"}'

        # Act
        trade = parser.parse_trade(data, received_at=42)

        # Assert
        assert trade == TradeSample(symbol="BTC", price=1.5, timestamp=42)

    def test_missing_trade_time_uses_local_clock(self) -> None:
        # Arrange
        parser = MessageParser()
        data = b'{"e":"trade","s":"BTCUSDT","p":"1.5"}'

        # Act
        trade = parser.parse_trade(data)

        # Assert
        assert trade is not None
        assert trade.timestamp > 1_700_000_000_000

    @pytest.mark.parametrize(
        "data",
        [
            b'{"e":"ping"}',
            b'{"e":"aggTrade","s":"BTCUSDT","p":"1","T":1}',
            b'{"result":null,"id":1}',
            b'{"e":"ping","p":{}}',
            b'{"e":"24hrTicker","s":7,"T":1.5}',
            b'{"e":{"nested":true}}',
        ],
    )
    def test_non_trade_events_are_ignored(self, data: bytes) -> None:
        assert MessageParser().parse_trade(data) is None


class TestParserEdgeCases:
    """Test parser behavior with malformed inputs."""

    @pytest.mark.parametrize(
        "data",
        [
            b'{"e":"trade","invalid json',
            b"not json at all",
            b"[1, 2, 3]",
            b'"trade"',
            b'{"e":"trade","p":"1","T":1}',
            b'{"e":"trade","s":"","p":"1","T":1}',
            b'{"e":"trade","s":"BTCUSDT","T":1}',
            b'{"e":"trade","s":"BTCUSDT","p":"abc","T":1}',
            b'{"e":"trade","s":"BTCUSDT","p":"-1","T":1}',
            b'{"e":"trade","s":"BTCUSDT","p":"nan","T":1}',
            b'{"e":"trade","s":"BTCUSDT","p":"1","T":"soon"}',
        ],
    )
    def test_malformed_frames_raise_decode_error(self, data: bytes) -> None:
        # Arrange
        parser = MessageParser()

        # Act & Assert
        with pytest.raises(MessageDecodeError):
            parser.parse_trade(data)


@pytest.mark.parametrize(
    ("pair", "expected"),
    [("BTCUSDT", "BTC"), ("ethusdt", "ETH"), ("USDTUSDT", "USDT"), ("BTC", "BTC")],
)
def test_strip_quote(pair: str, expected: str) -> None:
    assert strip_quote(pair) == expected
