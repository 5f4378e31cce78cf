# kestrelcache

A bounded in-memory cache for Python. It has:

- a maximum capacity, counted in entries or in total weight;
- frequency-based admission, where a count-min sketch decides whether a new entry is worth evicting others for;
- size-aware eviction through an optional weigher;
- time-based expiration, either after writing (time to live) or after the last use (time to idle).

The package needs nothing outside the standard library.

## Install

    pip install kestrelcache

## Basic use

`kestrelcache.cache.Cache` is meant to be used from one thread. Expired entries and entries over capacity are removed as part of `get`, `insert` and `invalidate`. There is no background work.

```python
from kestrelcache.cache import Cache

cache = Cache(max_capacity=10_000)

for key in range(64):
    cache.insert(key, f"value {key}")

for key in range(0, 64, 4):
    cache.invalidate(key)

assert cache.get(4) is None
assert cache.get(5) == "value 5"
```

`get` returns `None` for a key that is absent or has expired. Inserting a key that is already present replaces its value.

Other operations:

- `invalidate_all()` drops every entry. The popularity estimates are kept.
- `invalidate_entries_if(predicate)` drops every entry for which `predicate(key, value)` is true.
- `entry_count()` and `weighted_size()` report the size as the eviction policy counts it.
- `len(cache)` gives the number of stored entries, and `key in cache` tests whether a key is stored.
- `max_capacity()`, `time_to_live()` and `time_to_idle()` return the settings.

Leaving out `max_capacity` makes the cache unbounded.

## Admission

The popularity estimator is sized once the cache is half full. `enable_frequency_sketch()` sizes it straight away, and `sketch_table_len()` reports the size of its table.

Every `get` counts as a use of the key. When the cache is full, a new entry is admitted only if its estimated popularity is strictly higher than the combined popularity of the least recently used entries it would displace. Otherwise the new entry is dropped.

An entry heavier than the whole capacity is never stored.

## Configuring with a builder

```python
from kestrelcache.builder import CacheBuilder

cache = (
    CacheBuilder(10_000)
    .time_to_live(30 * 60)   # expire 30 minutes after insert
    .time_to_idle(5 * 60)    # expire 5 minutes after the last get or insert
    .build()
)
```

Durations are given in seconds, as a number or a `datetime.timedelta`. Every setting method returns a new builder and leaves the original unchanged. `initial_capacity(n)` is also accepted.

`build()` raises `ValueError` if the time to live or the time to idle is longer than 1000 years.

### Size-aware eviction

Give the cache a weigher that returns the relative size of an entry. The capacity then bounds the total weight instead of the number of entries.

```python
cache = (
    CacheBuilder(32 * 1024 * 1024)
    .weigher(lambda key, value: len(value))
    .build()
)
cache.insert("greeting", "hello")
```

The weigher must return an integer from 0 to 2**32 - 1; any other value raises `ValueError`. Without a weigher, each entry weighs 1.

## Testing with a fake clock

`set_expiration_clock(clock)` makes the cache use `clock` for expiration times. Pass `None` to go back to the system's monotonic clock.

`kestrelcache.policy.MockClock` only moves when you call `increment(seconds)`, so expiration can be tested without waiting:

```python
from kestrelcache.builder import CacheBuilder
from kestrelcache.policy import MockClock

cache = CacheBuilder(100).time_to_live(10).build()
clock = MockClock()
cache.set_expiration_clock(clock)

cache.insert("a", "alice")
clock.increment(10)
assert cache.get("a") is None
```

## What this package does not do

- It does not lock. A `Cache` must not be used from several threads at once unless you guard it with your own lock.
- It has no variant that can be shared between threads.
- It has no "get or compute once" operation.
- It does not invalidate by predicate in the background.
- Entries live only in memory. Nothing is persisted.