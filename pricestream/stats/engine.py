"""
Windowed price statistics.

apply_sample() is a pure function of (old state, sample, now): it never
mutates its inputs and returns a fresh AssetState. The series is kept
ascending by timestamp and pruned to the retention window on every call,
so out-of-order deliveries across reconnects land in the right place.
"""

import bisect
import math
from enum import IntEnum
from typing import Final

import msgspec
from sortedcontainers import SortedKeyList

from pricestream.core.clock import Clock, now_ms
from pricestream.store.asset_state import AssetState, PriceSample

HOUR_MS: Final[int] = 60 * 60 * 1000


class Window(IntEnum):
    """Percentage-change windows, value is the duration in ms"""

    ONE_HOUR = HOUR_MS
    ONE_DAY = 24 * HOUR_MS
    SEVEN_DAYS = 7 * 24 * HOUR_MS


RETENTION_MS: Final[int] = Window.SEVEN_DAYS.value


def _sample_timestamp(sample: PriceSample) -> int:
    return sample.timestamp


def _round_half_up(value: float) -> float:
    # Two decimal places, halves round towards +inf
    return math.floor(value * 100 + 0.5) / 100


def percentage_change(price: float, base: float) -> float:
    """Percent change from base to price, 0.0 when undefined"""
    if not base:
        return 0.0

    change = ((price - base) / base) * 100
    if not math.isfinite(change * 100):
        return 0.0

    return _round_half_up(change)


def base_price(
    series: tuple[PriceSample, ...], window_start: int, fallback: float
) -> float:
    """
    Price at or before the window boundary.

    Uses the earliest retained sample if it is stamped at or before
    window_start. History shorter than the window, or a zero-priced sample
    (the catalog bootstrap point), falls back to the previous price.
    """
    if series:
        earliest = series[0]
        if earliest.timestamp <= window_start and earliest.price:
            return earliest.price

    return fallback


def retain(
    series: tuple[PriceSample, ...], sample: PriceSample, now: int
) -> tuple[PriceSample, ...]:
    """Insert sample in timestamp order and drop everything older than retention"""
    cutoff = now - RETENTION_MS

    # Late arrival, sort it into place
    if series and sample.timestamp < series[-1].timestamp:
        samples = SortedKeyList(series, key=_sample_timestamp)
        samples.add(sample)
        return tuple(samples.irange_key(min_key=cutoff))

    start = bisect.bisect_left(series, cutoff, key=_sample_timestamp)
    if sample.timestamp < cutoff:
        return series[start:]

    return series[start:] + (sample,)


def apply_sample(old: AssetState, sample: PriceSample, now: int) -> AssetState:
    old_price = old.price
    price = sample.price
    series = retain(old.series, sample, now)

    changes = {window: 0.0 for window in Window}
    if old_price > 0:
        for window in Window:
            base = base_price(series, now - window.value, fallback=old_price)
            changes[window] = percentage_change(price, base)

    return msgspec.structs.replace(
        old,
        price=price,
        market_cap=old.circulating_supply * price,
        change_1h=changes[Window.ONE_HOUR],
        change_24h=changes[Window.ONE_DAY],
        change_7d=changes[Window.SEVEN_DAYS],
        series=series,
        last_update=now,
    )


class StatsEngine:
    """Applies price samples to asset state against an injectable clock"""

    __slots__ = ("_clock",)

    def __init__(self, clock: Clock = now_ms) -> None:
        self._clock = clock

    def apply(self, old: AssetState, sample: PriceSample) -> AssetState:
        return apply_sample(old, sample, now=self._clock())
