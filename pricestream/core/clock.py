import time
from typing import Callable

Clock = Callable[[], int]


def now_ms() -> int:
    """Wall-clock time as integer epoch milliseconds"""
    return time.time_ns() // 1_000_000
