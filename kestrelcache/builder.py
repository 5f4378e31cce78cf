"""A fluent builder for :class:`~kestrelcache.cache.Cache`."""

from __future__ import annotations

import copy
from datetime import timedelta
from typing import Optional

from .cache import Cache
from .policy import Duration, Weigher

THOUSAND_YEARS_SECS = 1000 * 365 * 24 * 3600


def _as_seconds(duration: Duration) -> float:
    if isinstance(duration, timedelta):
        return duration.total_seconds()
    return float(duration)


def _ensure_expirations(
    time_to_live: Optional[Duration], time_to_idle: Optional[Duration]
) -> None:
    if time_to_live is not None and _as_seconds(time_to_live) > THOUSAND_YEARS_SECS:
        raise ValueError("time_to_live is longer than 1000 years")
    if time_to_idle is not None and _as_seconds(time_to_idle) > THOUSAND_YEARS_SECS:
        raise ValueError("time_to_idle is longer than 1000 years")


class CacheBuilder:
    """Collects the settings of a :class:`Cache` and builds it.

    Every setting method returns a new builder, leaving this one unchanged.
    Durations are seconds (a number) or a :class:`datetime.timedelta`.
    """

    def __init__(self, max_capacity: Optional[int] = None) -> None:
        self._max_capacity = max_capacity
        self._initial_capacity: Optional[int] = None
        self._weigher: Optional[Weigher] = None
        self._time_to_live: Optional[Duration] = None
        self._time_to_idle: Optional[Duration] = None

    def _with(self, **settings) -> "CacheBuilder":
        builder = copy.copy(self)
        for name, value in settings.items():
            setattr(builder, f"_{name}", value)
        return builder

    def max_capacity(self, max_capacity: int) -> "CacheBuilder":
        """Set the maximum number of entries, or total weight with a weigher."""
        return self._with(max_capacity=max_capacity)

    def initial_capacity(self, number_of_entries: int) -> "CacheBuilder":
        """Set the number of entries the cache is sized for at first."""
        return self._with(initial_capacity=number_of_entries)

    def weigher(self, weigher: Weigher) -> "CacheBuilder":
        """Set a function of ``(key, value)`` giving the entry's relative size."""
        return self._with(weigher=weigher)

    def time_to_live(self, duration: Duration) -> "CacheBuilder":
        """Expire entries this long after they were inserted."""
        return self._with(time_to_live=duration)

    def time_to_idle(self, duration: Duration) -> "CacheBuilder":
        """Expire entries this long after they were last read or written."""
        return self._with(time_to_idle=duration)

    def build(self) -> Cache:
        """Build the cache.

        Raises ``ValueError`` if either expiration is longer than 1000 years.
        """
        _ensure_expirations(self._time_to_live, self._time_to_idle)
        return Cache(
            max_capacity=self._max_capacity,
            initial_capacity=self._initial_capacity,
            weigher=self._weigher,
            time_to_live=self._time_to_live,
            time_to_idle=self._time_to_idle,
        )