"""A bounded in-memory cache for use from a single thread."""

from __future__ import annotations

from typing import Any, Callable, Hashable, Iterator, Optional

from .entries import CacheRegion, Deques, DeqNode, KeyDate, KeyHashDate, ValueEntry, _Deque
from .policy import (
    Clock,
    Duration,
    EntrySizeAndFrequency,
    FrequencySketch,
    Weigher,
    is_expired,
    sketch_capacity,
    weigh,
)

EVICTION_BATCH_SIZE = 100

_MASK64 = (1 << 64) - 1


class Cache:
    """An in-memory cache that is not thread-safe.

    Entries are bounded by ``max_capacity`` (a count of entries, or a total
    weight when a ``weigher`` is given). A popularity estimator decides
    whether a new entry may evict existing ones. Entries may also expire a
    fixed time after being written (``time_to_live``) or after their last
    read or write (``time_to_idle``); expired entries are removed as part of
    reads and writes.
    """

    def __init__(
        self,
        max_capacity: Optional[int] = None,
        initial_capacity: Optional[int] = None,
        weigher: Optional[Weigher] = None,
        time_to_live: Optional[Duration] = None,
        time_to_idle: Optional[Duration] = None,
    ) -> None:
        self._max_capacity = max_capacity
        self._initial_capacity = initial_capacity
        self._weigher = weigher
        self._time_to_live = time_to_live
        self._time_to_idle = time_to_idle
        self._entry_count = 0
        self._weighted_size = 0
        self._store: dict[Hashable, ValueEntry] = {}
        self._deques = Deques()
        self._sketch = FrequencySketch()
        self._expiration_clock: Optional[Clock] = None
        self._default_clock = Clock()

    # ------------------------------------------------------------------ public

    def get(self, key: Hashable) -> Any:
        """The value stored for ``key``, or ``None`` if absent or expired."""
        timestamp = self._evict_expired_if_needed()
        self._evict_lru_entries()
        self._sketch.increment(self._hash(key))

        entry = self._store.get(key)
        if entry is None:
            return None
        if timestamp is not None and (
            is_expired(entry.last_modified, self._time_to_live, timestamp)
            or is_expired(entry.last_accessed, self._time_to_idle, timestamp)
        ):
            return None
        self._record_hit(entry, timestamp)
        return entry.value

    def insert(self, key: Hashable, value: Any) -> None:
        """Store ``value`` under ``key``, replacing any present value."""
        timestamp = self._evict_expired_if_needed()
        self._evict_lru_entries()
        policy_weight = weigh(self._weigher, key, value)
        entry = ValueEntry(value, policy_weight)

        old_entry = self._store.get(key)
        self._store[key] = entry
        if old_entry is not None:
            self._handle_update(key, timestamp, policy_weight, old_entry)
        else:
            self._handle_insert(key, self._hash(key), policy_weight, timestamp)

    def invalidate(self, key: Hashable) -> None:
        """Discard any value stored for ``key``."""
        self._evict_expired_if_needed()
        self._evict_lru_entries()
        entry = self._store.pop(key, None)
        if entry is not None:
            self._unlink(entry)
            self._entry_count = max(self._entry_count - 1, 0)
            self._sub_weight(entry.policy_weight)

    def invalidate_all(self) -> None:
        """Discard every value; the popularity estimates are kept."""
        self._store.clear()
        self._deques.clear()
        self._entry_count = 0
        self._weighted_size = 0

    def invalidate_entries_if(self, predicate: Callable[[Any, Any], bool]) -> None:
        """Discard every entry for which ``predicate(key, value)`` is true."""
        doomed = [key for key, entry in self._store.items() if predicate(key, entry.value)]
        removed_weight = 0
        for key in doomed:
            entry = self._store.pop(key, None)
            if entry is not None:
                self._unlink(entry)
                self._entry_count = max(self._entry_count - 1, 0)
                removed_weight += entry.policy_weight
        self._sub_weight(removed_weight)

    def max_capacity(self) -> Optional[int]:
        return self._max_capacity

    def time_to_live(self) -> Optional[Duration]:
        return self._time_to_live

    def time_to_idle(self) -> Optional[Duration]:
        return self._time_to_idle

    def entry_count(self) -> int:
        """The number of entries the eviction policy accounts for."""
        return self._entry_count

    def weighted_size(self) -> int:
        """The total policy weight of the stored entries."""
        return self._weighted_size

    def enable_frequency_sketch(self) -> None:
        """Size the popularity estimator for this cache's capacity."""
        if self._max_capacity is None:
            return
        num_entries = self._entry_count if self._weigher is not None else self._max_capacity
        self._sketch.ensure_capacity(sketch_capacity(num_entries))

    def sketch_table_len(self) -> int:
        """The size of the popularity estimator's table."""
        return self._sketch.table_len()

    def set_expiration_clock(self, clock: Optional[Clock]) -> None:
        """Use ``clock`` for expiration times; ``None`` restores the system clock."""
        self._expiration_clock = clock

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, key: object) -> bool:
        return key in self._store

    # ----------------------------------------------------------------- private

    @staticmethod
    def _hash(key: Hashable) -> int:
        return hash(key) & _MASK64

    def _has_expiry(self) -> bool:
        return self._time_to_live is not None or self._time_to_idle is not None

    def _now(self) -> float:
        clock = self._expiration_clock or self._default_clock
        return clock.now()

    def _evict_expired_if_needed(self) -> Optional[float]:
        if not self._has_expiry():
            return None
        now = self._now()
        self._evict_expired(now)
        return now

    def _record_hit(self, entry: ValueEntry, timestamp: Optional[float]) -> None:
        if timestamp is not None:
            entry.last_accessed = timestamp
        self._deques.move_to_back_ao(entry)

    def _has_enough_capacity(self, candidate_weight: int) -> bool:
        if self._max_capacity is None:
            return True
        return self._weighted_size + candidate_weight <= self._max_capacity

    def _weights_to_evict(self) -> int:
        if self._max_capacity is None:
            return 0
        return max(self._weighted_size - self._max_capacity, 0)

    def _should_enable_frequency_sketch(self) -> bool:
        return (
            self._max_capacity is not None
            and self._weighted_size >= self._max_capacity // 2
        )

    def _add_weight(self, weight: int) -> None:
        self._weighted_size += weight

    def _sub_weight(self, weight: int) -> None:
        self._weighted_size = max(self._weighted_size - weight, 0)

    def _unlink(self, entry: ValueEntry) -> None:
        self._deques.unlink_ao(entry)
        self._deques.unlink_wo(entry)

    def _link_new(
        self, key: Hashable, hash_value: int, entry: ValueEntry, timestamp: Optional[float]
    ) -> None:
        self._deques.push_back_ao(
            CacheRegion.MAIN_PROBATION, KeyHashDate(key, hash_value, timestamp), entry
        )
        if self._time_to_live is not None:
            self._deques.push_back_wo(KeyDate(key, timestamp), entry)

    def _handle_insert(
        self, key: Hashable, hash_value: int, policy_weight: int, timestamp: Optional[float]
    ) -> None:
        entry = self._store[key]

        if self._has_enough_capacity(policy_weight):
            self._link_new(key, hash_value, entry, timestamp)
            self._entry_count += 1
            self._add_weight(policy_weight)
            if self._should_enable_frequency_sketch():
                self.enable_frequency_sketch()
            return

        if self._max_capacity is not None and policy_weight > self._max_capacity:
            # Too big to ever fit.
            del self._store[key]
            return

        candidate = EntrySizeAndFrequency(policy_weight)
        candidate.add_frequency(self._sketch, hash_value)

        admission = self._admit(candidate)
        if admission is None:
            del self._store[key]
            return

        victim_nodes, victims_weight = admission
        for victim in victim_nodes:
            victim_entry = self._store.pop(victim.element.key)
            self._unlink(victim_entry)
            self._entry_count -= 1

        self._link_new(key, hash_value, entry, timestamp)
        self._entry_count += 1
        self._sub_weight(victims_weight)
        self._add_weight(policy_weight)
        if self._should_enable_frequency_sketch():
            self.enable_frequency_sketch()

    def _admit(
        self, candidate: EntrySizeAndFrequency
    ) -> Optional[tuple[list[DeqNode[KeyHashDate]], int]]:
        """Size-aware admission: the candidate must be strictly more popular
        than the least recently used entries it would displace."""
        victims = EntrySizeAndFrequency()
        victim_nodes: list[DeqNode[KeyHashDate]] = []
        nodes: Iterator[DeqNode[KeyHashDate]] = iter(self._deques.probation)

        while victims.weight < candidate.weight:
            if candidate.freq < victims.freq:
                break
            victim = next(nodes, None)
            if victim is None:
                break
            victim_entry = self._store[victim.element.key]
            victims.add_policy_weight(victim.element.key, victim_entry.value, self._weigher)
            victims.add_frequency(self._sketch, victim.element.hash)
            victim_nodes.append(victim)

        if victims.weight >= candidate.weight and candidate.freq > victims.freq:
            return victim_nodes, victims.weight
        return None

    def _handle_update(
        self,
        key: Hashable,
        timestamp: Optional[float],
        policy_weight: int,
        old_entry: ValueEntry,
    ) -> None:
        old_weight = old_entry.policy_weight
        entry = self._store[key]
        entry.replace_deq_nodes_with(old_entry)
        if timestamp is not None:
            entry.last_accessed = timestamp
            entry.last_modified = timestamp
        entry.policy_weight = policy_weight

        self._deques.move_to_back_ao(entry)
        if self._time_to_live is not None:
            self._deques.move_to_back_wo(entry)

        self._sub_weight(old_weight)
        self._add_weight(policy_weight)

    def _evict_expired(self, now: float) -> None:
        if self._time_to_live is not None:
            count, weight = self._remove_expired(
                self._deques.write_order, self._time_to_live, now
            )
            self._entry_count = max(self._entry_count - count, 0)
            self._sub_weight(weight)

        if self._time_to_idle is not None:
            for deque in (self._deques.window, self._deques.probation, self._deques.protected):
                count, weight = self._remove_expired(deque, self._time_to_idle, now)
                self._entry_count = max(self._entry_count - count, 0)
                self._sub_weight(weight)

    def _remove_expired(self, deque: _Deque, duration: Duration, now: float) -> tuple[int, int]:
        """Remove expired entries from the front of ``deque``; returns (count, weight)."""
        evicted_count = 0
        evicted_weight = 0
        for _ in range(EVICTION_BATCH_SIZE):
            node = deque.peek_front()
            if node is None or not is_expired(node.element.timestamp, duration, now):
                break
            entry = self._store.pop(node.element.key, None)
            if entry is None:
                deque.pop_front()
                continue
            self._unlink(entry)
            evicted_count += 1
            evicted_weight += entry.policy_weight
        return evicted_count, evicted_weight

    def _evict_lru_entries(self) -> None:
        weights_to_evict = self._weights_to_evict()
        evicted_count = 0
        evicted_weight = 0
        probation = self._deques.probation

        for _ in range(EVICTION_BATCH_SIZE):
            if evicted_weight >= weights_to_evict:
                break
            node = probation.peek_front()
            if node is None:
                break
            entry = self._store.pop(node.element.key, None)
            if entry is None:
                probation.pop_front()
                continue
            self._unlink(entry)
            evicted_count += 1
            evicted_weight += entry.policy_weight

        self._entry_count = max(self._entry_count - evicted_count, 0)
        self._sub_weight(evicted_weight)