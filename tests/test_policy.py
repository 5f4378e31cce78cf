from datetime import timedelta

import pytest

from kestrelcache.policy import (
    Clock,
    EntrySizeAndFrequency,
    FrequencySketch,
    MockClock,
    is_expired,
    sketch_capacity,
    weigh,
)


def _sized_sketch(capacity):
    sketch = FrequencySketch()
    sketch.ensure_capacity(sketch_capacity(capacity))
    return sketch


def test_real_clock_is_monotonic():
    clock = Clock()
    first = clock.now()
    assert clock.now() >= first


def test_mock_clock_increments():
    clock = MockClock()
    start = clock.now()
    clock.increment(5)
    assert clock.now() == start + 5
    clock.increment(timedelta(seconds=5))
    assert clock.now() == start + 10


def test_mock_clock_rejects_going_backwards():
    clock = MockClock()
    with pytest.raises(ValueError):
        clock.increment(-1)


@pytest.mark.parametrize(
    "capacity, expected",
    [
        (0, 128),
        (128, 128),
        (2**16, 2**16),
        (2**16 + 1, 2**17),
        (2**30 - 1, 2**30),
        (2**30, 2**30),
        (2**64 - 1, 2**30),
    ],
)
def test_sketch_table_len(capacity, expected):
    assert _sized_sketch(capacity).table_len() == expected


def test_sketch_capacity_clamps():
    assert sketch_capacity(0) == 128
    assert sketch_capacity(2**64 - 1) == 2**32 - 1
    assert sketch_capacity(2**16) == 2**16


def test_unsized_sketch_counts_nothing():
    sketch = FrequencySketch()
    sketch.increment(42)
    assert sketch.frequency(42) == 0
    assert sketch.table_len() == 0


def test_ensure_capacity_never_shrinks():
    sketch = _sized_sketch(2**16)
    sketch.ensure_capacity(sketch_capacity(128))
    assert sketch.table_len() == 2**16


@pytest.mark.parametrize("hash_value", [0, 1, 12345, -7, 2**63 + 3])
def test_frequency_counts_increments(hash_value):
    sketch = _sized_sketch(1024)
    for n in range(1, 8):
        sketch.increment(hash_value)
        assert sketch.frequency(hash_value) == n


def test_frequency_saturates_at_fifteen():
    sketch = _sized_sketch(1024)
    for _ in range(40):
        sketch.increment(99)
    assert sketch.frequency(99) == 15


def test_periodic_reset_ages_counts():
    sketch = _sized_sketch(128)
    hot = 7
    for _ in range(10):
        sketch.increment(hot)
    assert sketch.frequency(hot) == 10
    for other in range(1000, 1000 + 1280):
        sketch.increment(other * 2654435761)
    assert 0 < sketch.frequency(hot) < 10


def test_weigh_defaults_to_one():
    assert weigh(None, "k", "v") == 1
    assert weigh(lambda k, v: v[1], "a", ("alice", 10)) == 10


@pytest.mark.parametrize("bad", [-1, 2**32])
def test_weigh_rejects_out_of_range(bad):
    with pytest.raises(ValueError):
        weigh(lambda k, v: bad, "k", "v")


def test_entry_size_and_frequency_accumulates():
    sketch = _sized_sketch(1024)
    for _ in range(3):
        sketch.increment(5)
    sketch.increment(6)
    agg = EntrySizeAndFrequency()
    agg.add_policy_weight("c", ("cindy", 5), lambda k, v: v[1])
    agg.add_policy_weight("a", ("alice", 10), lambda k, v: v[1])
    agg.add_frequency(sketch, 5)
    agg.add_frequency(sketch, 6)
    assert agg.weight == 15
    assert agg.freq == 4


def test_entry_size_and_frequency_starts_from_weight():
    agg = EntrySizeAndFrequency(15)
    agg.add_policy_weight("k", "v", None)
    assert agg.weight == 16
    assert agg.freq == 0


def test_is_expired_boundaries():
    assert is_expired(0.0, 10, 10.0)
    assert not is_expired(0.0, 10, 5.0)
    assert is_expired(5.0, timedelta(seconds=10), 15.0)
    assert not is_expired(5.0, timedelta(seconds=10), 10.0)


def test_is_expired_without_timestamp_or_duration():
    assert not is_expired(None, 10, 100.0)
    assert not is_expired(0.0, None, 100.0)


def test_is_expired_overflow():
    with pytest.raises(OverflowError, match="ttl overflow"):
        is_expired(1.7e308, 1.7e308, 0.0)