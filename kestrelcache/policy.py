"""Clocks, the popularity estimator and the weighing helpers of the eviction policy."""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable, Hashable, Optional, Union

Duration = Union[float, int, timedelta]
Weigher = Callable[[Any, Any], int]

_MASK64 = (1 << 64) - 1
_U32_MAX = (1 << 32) - 1
_I32_MAX = (1 << 31) - 1
_MAX_TABLE_LEN = 1 << 30
_MIN_SKETCH_CAPACITY = 128

_SEED = (
    0xC3A5C85C97CB3127,
    0xB492B66FBE98F273,
    0x9AE16A3B2F90404F,
    0xCBF29CE484222325,
)
_RESET_MASK = 0x7777777777777777
_ONE_MASK = 0x1111111111111111


def _seconds(duration: Duration) -> float:
    if isinstance(duration, timedelta):
        return duration.total_seconds()
    return float(duration)


class Clock:
    """A monotonic clock reporting seconds."""

    def now(self) -> float:
        return time.monotonic()


class MockClock(Clock):
    """A clock that only moves when told to."""

    def __init__(self, start: float = 0.0) -> None:
        self._now = float(start)
        self._lock = threading.Lock()

    def now(self) -> float:
        with self._lock:
            return self._now

    def increment(self, seconds: Duration) -> None:
        """Advance the clock by ``seconds`` (a number or a timedelta)."""
        amount = _seconds(seconds)
        if amount < 0:
            raise ValueError("a clock cannot move backwards")
        with self._lock:
            self._now += amount


def _next_power_of_two(n: int) -> int:
    return 1 if n <= 1 else 1 << (n - 1).bit_length()


class FrequencySketch:
    """A count-min sketch of 4-bit counters estimating how often keys are used.

    The table stays empty, and every estimate zero, until
    :meth:`ensure_capacity` sizes it. Counters are halved periodically so
    that old popularity fades.
    """

    def __init__(self) -> None:
        self._table: dict[int, int] = {}
        self._table_len = 0
        self._table_mask = 0
        self._sample_size = 0
        self._size = 0

    def table_len(self) -> int:
        """The number of 64-bit words in the table."""
        return self._table_len

    def ensure_capacity(self, capacity: int) -> None:
        """Grow the table to suit ``capacity`` entries; never shrinks it."""
        maximum = min(capacity, _MAX_TABLE_LEN)
        table_len = 0 if maximum == 0 else _next_power_of_two(maximum)
        if self._table_len >= table_len:
            return
        self._table = {}
        self._table_len = table_len
        self._table_mask = table_len - 1 if table_len else 0
        self._sample_size = 10 if capacity == 0 else min(maximum * 10, _I32_MAX)
        self._size = 0

    def frequency(self, hash_value: int) -> int:
        """The estimated number of times ``hash_value`` was seen (0 to 15)."""
        if not self._table_len:
            return 0
        hash_value &= _MASK64
        start = (hash_value & 3) << 2
        return min(
            (self._table.get(self._index_of(hash_value, depth), 0) >> ((start + depth) << 2))
            & 0xF
            for depth in range(4)
        )

    def increment(self, hash_value: int) -> None:
        """Record one more occurrence of ``hash_value``."""
        if not self._table_len:
            return
        hash_value &= _MASK64
        start = (hash_value & 3) << 2
        added = False
        for depth in range(4):
            index = self._index_of(hash_value, depth)
            added |= self._increment_at(index, start + depth)
        if added:
            self._size += 1
            if self._size >= self._sample_size:
                self._reset()

    def _increment_at(self, index: int, counter: int) -> bool:
        offset = counter << 2
        mask = 0xF << offset
        word = self._table.get(index, 0)
        if word & mask == mask:
            return False
        self._table[index] = word + (1 << offset)
        return True

    def _reset(self) -> None:
        odd_counters = 0
        halved: dict[int, int] = {}
        for index, word in self._table.items():
            odd_counters += bin(word & _ONE_MASK).count("1")
            new_word = (word >> 1) & _RESET_MASK
            if new_word:
                halved[index] = new_word
        self._table = halved
        self._size = max((self._size >> 1) - (odd_counters >> 2), 0)

    def _index_of(self, hash_value: int, depth: int) -> int:
        seed = _SEED[depth]
        mixed = ((hash_value + seed) * seed) & _MASK64
        mixed = (mixed + (mixed >> 32)) & _MASK64
        return mixed & self._table_mask


def sketch_capacity(num_entries: int) -> int:
    """The sketch capacity for a cache of ``num_entries``: clamped to 128..2**32-1."""
    return max(min(num_entries, _U32_MAX), _MIN_SKETCH_CAPACITY)


def weigh(weigher: Optional[Weigher], key: Hashable, value: Any) -> int:
    """The policy weight of an entry: 1 without a weigher."""
    if weigher is None:
        return 1
    weight = int(weigher(key, value))
    if not 0 <= weight <= _U32_MAX:
        raise ValueError(f"weigher returned {weight}, outside 0..{_U32_MAX}")
    return weight


@dataclass
class EntrySizeAndFrequency:
    """Aggregated weight and estimated frequency of a candidate or its victims."""

    weight: int = 0
    freq: int = 0

    def add_policy_weight(self, key: Hashable, value: Any, weigher: Optional[Weigher]) -> None:
        self.weight += weigh(weigher, key, value)

    def add_frequency(self, sketch: FrequencySketch, hash_value: int) -> None:
        self.freq += sketch.frequency(hash_value)


def is_expired(timestamp: Optional[float], duration: Optional[Duration], now: float) -> bool:
    """Whether something stamped at ``timestamp`` has outlived ``duration`` at ``now``.

    Without a timestamp or a duration nothing expires.
    """
    if timestamp is None or duration is None:
        return False
    deadline = timestamp + _seconds(duration)
    if not math.isfinite(deadline):
        raise OverflowError("ttl overflow")
    return deadline <= now