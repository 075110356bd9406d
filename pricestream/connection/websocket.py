import asyncio
import time
from collections.abc import Iterable
from typing import Final, assert_never

import structlog
from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed

from pricestream.connection.state_machine import ConnectionStateMachine
from pricestream.connection.stats import ConnectionStats
from pricestream.connection.types import ConnectionEvent, ConnectionState, Effect
from pricestream.core.config import settings
from pricestream.core.logging import Logger
from pricestream.exceptions import MessageDecodeError
from pricestream.messages.parser import MessageParser
from pricestream.messages.protocol import STREAM_SUFFIX
from pricestream.store.asset_store import AssetStore
from pricestream.symbols.mapper import SymbolMapper

# Binance caps a single raw stream connection at 1024 streams
MAX_STREAMS: Final[int] = 1024
MAX_MESSAGE_SIZE: Final[int] = 1024 * 1024
SILENCE_THRESHOLD: Final[float] = 60.0

CONNECTION_ERROR_MESSAGE: Final[str] = "WebSocket connection error"
PERMANENT_FAILURE_MESSAGE: Final[str] = (
    "Unable to establish WebSocket connection after multiple attempts"
)

logger: Logger = structlog.get_logger(__name__)


def build_stream_url(symbols: Iterable[str], host: str) -> str:
    """
    Raw stream URL for a set of tickers.

    ["BTC", "ETH"] -> wss://<host>/ws/btcusdt@trade/ethusdt@trade
    """
    streams = [f"{symbol.lower()}{STREAM_SUFFIX}" for symbol in symbols]

    if not streams:
        raise ValueError("At least one symbol is required to subscribe")

    if len(streams) > MAX_STREAMS:
        raise ValueError(
            f"Cannot subscribe to more than {MAX_STREAMS} streams, got {len(streams)}"
        )

    return f"wss://{host}/ws/{'/'.join(streams)}"


class StreamClient:
    """
    Single managed trade stream connection

    Lifecycle:
        1. Create with the store that receives price samples
        2. Call initialize(symbols) to connect
        3. Trades flow into the store, connectivity into its status
        4. Call disconnect() for teardown (safe to repeat)

    Failed connections are retried after a fixed delay up to max_attempts
    consecutive times, after which the client stays PERMANENTLY_FAILED
    until initialize() is called again.
    """

    __slots__ = (
        "_store",
        "_mapper",
        "_parser",
        "_host",
        "_reconnect_delay",
        "_ping_interval",
        "_ping_timeout",
        "_machine",
        "_stats",
        "_symbols",
        "_url",
        "_ws",
        "_connection_task",
        "_reconnect_task",
        "_generation",
    )

    def __init__(
        self,
        store: AssetStore,
        mapper: SymbolMapper | None = None,
        parser: MessageParser | None = None,
        host: str | None = None,
        reconnect_delay: float | None = None,
        max_attempts: int | None = None,
    ) -> None:
        self._store = store
        self._mapper = mapper or SymbolMapper()
        self._parser = parser or MessageParser()

        self._host = host or settings.STREAM_HOST
        self._reconnect_delay = (
            settings.RECONNECT_DELAY if reconnect_delay is None else reconnect_delay
        )
        self._ping_interval = settings.PING_INTERVAL
        self._ping_timeout = settings.PING_TIMEOUT

        self._machine = ConnectionStateMachine(
            settings.MAX_RECONNECT_ATTEMPTS if max_attempts is None else max_attempts
        )
        self._stats = ConnectionStats()

        self._symbols: tuple[str, ...] = ()
        self._url: str | None = None
        self._ws: ClientConnection | None = None
        self._connection_task: asyncio.Task[None] | None = None
        self._reconnect_task: asyncio.Task[None] | None = None

        # Bumped by initialize() and disconnect()
        self._generation = 0

    @property
    def state(self) -> ConnectionState:
        return self._machine.state

    @property
    def attempts(self) -> int:
        return self._machine.attempts

    @property
    def symbols(self) -> tuple[str, ...]:
        return self._symbols

    @property
    def url(self) -> str | None:
        return self._url

    @property
    def stats(self) -> ConnectionStats:
        return self._stats

    @property
    def has_pending_reconnect(self) -> bool:
        return self._reconnect_task is not None and not self._reconnect_task.done()

    @property
    def is_healthy(self) -> bool:
        if self._machine.state != ConnectionState.CONNECTED:
            return False

        if self._stats.last_message_ts > 0:
            silence = time.monotonic() - self._stats.last_message_ts
            if silence > SILENCE_THRESHOLD:
                return False

        return True

    async def initialize(self, symbols: Iterable[str]) -> None:
        """
        Subscribe to the trade streams of the given tickers.

        Tears down any existing connection first, so this is also the way
        to recover from PERMANENTLY_FAILED.
        """
        symbols = tuple(symbols)
        url = build_stream_url(symbols, self._host)

        await self.disconnect()

        self._symbols = symbols
        self._url = url

        logger.info(f"Connecting to trade stream for {len(symbols)} symbols")
        self._generation += 1
        await self._apply(self._machine.fire(ConnectionEvent.CONNECT))

    async def disconnect(self) -> None:
        """Cancel any pending reconnect and close the active connection"""
        self._generation += 1
        await self._apply(self._machine.fire(ConnectionEvent.DISCONNECT))

    async def _apply(
        self, effects: tuple[Effect, ...], error: str | None = None
    ) -> None:
        generation = self._generation

        for effect in effects:
            # initialize() or disconnect() ran while an earlier effect was awaited
            if self._generation != generation:
                logger.debug(f"Dropping stale {effect.name} effect")
                return

            match effect:
                case Effect.OPEN_CONNECTION:
                    self._open_connection()
                case Effect.CLOSE_CONNECTION:
                    await self._close_connection()
                case Effect.CANCEL_TIMER:
                    await self._cancel_reconnect()
                case Effect.SCHEDULE_RECONNECT:
                    self._schedule_reconnect()
                case Effect.SET_CONNECTED:
                    await self._store.set_connection_status(True)
                case Effect.SET_DISCONNECTED:
                    await self._store.set_connection_status(False)
                case Effect.RECORD_ERROR:
                    await self._store.set_error(error or CONNECTION_ERROR_MESSAGE)
                case Effect.REPORT_PERMANENT_FAILURE:
                    logger.error(
                        f"Giving up after {self._machine.max_attempts} reconnect attempts"
                    )
                    await self._store.set_error(PERMANENT_FAILURE_MESSAGE)
                case _:
                    assert_never(effect)

    def _open_connection(self) -> None:
        if self._url is None:
            raise RuntimeError("Stream URL not set, call initialize() first")

        self._connection_task = asyncio.create_task(
            self._connection_loop(self._url),
            name="stream-client-recv",
        )

    async def _connection_loop(self, url: str) -> None:
        """Run one connection until it closes or fails, then resolve the retry"""
        event = ConnectionEvent.CLOSED
        error: str | None = None

        try:
            async with connect(
                uri=url,
                ping_interval=self._ping_interval,
                ping_timeout=self._ping_timeout,
                max_size=MAX_MESSAGE_SIZE,
            ) as ws:
                self._ws = ws
                await self._apply(self._machine.fire(ConnectionEvent.OPENED))

                logger.info(f"Trade stream connected, {len(self._symbols)} streams")

                await self._receive_messages(ws)

        except asyncio.CancelledError:
            raise

        except ConnectionClosed as e:
            logger.warning(f"Trade stream closed: {e}")

        except Exception as e:
            event = ConnectionEvent.ERRORED
            error = f"{CONNECTION_ERROR_MESSAGE}: {e}"
            logger.error(f"Trade stream error: {e}")

        finally:
            self._ws = None

        # Torn down from inside this task, disconnect() already settled state
        if self._connection_task is not asyncio.current_task():
            return

        self._connection_task = None
        await self._apply(self._machine.fail(event), error=error)

    async def _receive_messages(self, ws: ClientConnection) -> None:
        # Iteration ends on a clean close and raises on an abnormal one
        async for message in ws:
            await self._on_message(message)

    async def _on_message(self, message: str | bytes) -> None:
        self._track_stats(message)

        try:
            trade = self._parser.parse_trade(message)
        except MessageDecodeError as e:
            self._stats.parse_errors += 1
            logger.warning(f"Discarding malformed frame: {e}")
            return

        if trade is None:
            return

        self._stats.trades_received += 1
        asset_id = self._mapper.resolve(trade.symbol)

        try:
            await self._store.apply_price_sample(
                asset_id, trade.price, trade.timestamp
            )
        except Exception as e:
            logger.exception(f"Failed to apply trade for {asset_id}: {e}")

    def _schedule_reconnect(self) -> None:
        if self._machine.state != ConnectionState.RECONNECTING:
            return

        self._stats.reconnect_count += 1

        logger.info(
            f"Reconnecting in {self._reconnect_delay:.1f}s "
            f"(attempt {self._machine.attempts}/{self._machine.max_attempts})"
        )

        self._reconnect_task = asyncio.create_task(
            self._reconnect_after(self._reconnect_delay),
            name="stream-client-reconnect",
        )

    async def _reconnect_after(self, delay: float) -> None:
        await asyncio.sleep(delay)

        if self._reconnect_task is not asyncio.current_task():
            return

        self._reconnect_task = None

        if not self._machine.can_fire(ConnectionEvent.RETRY):
            logger.debug(f"Skipping reconnect in state {self._machine.state.name}")
            return

        await self._apply(self._machine.fire(ConnectionEvent.RETRY))

    async def _cancel_reconnect(self) -> None:
        task, self._reconnect_task = self._reconnect_task, None

        if task is None or task.done() or task is asyncio.current_task():
            return

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _close_connection(self) -> None:
        task, self._connection_task = self._connection_task, None

        if task and not task.done() and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        if self._ws:
            await self._ws.close()
            self._ws = None

    def _track_stats(self, message: str | bytes) -> None:
        self._stats.last_message_ts = time.monotonic()
        self._stats.messages_received += 1
        self._stats.bytes_received += len(message)
