"""Cache entries and the access-order and write-order queues that track them."""

from __future__ import annotations

import enum
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Generic, Hashable, Iterator, Optional, TypeVar

E = TypeVar("E")


class CacheRegion(enum.Enum):
    """The queue a node lives in."""

    WINDOW = "window"
    MAIN_PROBATION = "probation"
    MAIN_PROTECTED = "protected"
    WRITE_ORDER = "write_order"


@dataclass
class KeyDate:
    """Element of the write-order queue: a key and its last write time."""

    key: Hashable
    timestamp: Optional[float] = None


@dataclass
class KeyHashDate:
    """Element of an access-order queue: a key, its hash and its last access time."""

    key: Hashable
    hash: int
    timestamp: Optional[float] = None


@dataclass(eq=False)
class DeqNode(Generic[E]):
    """A node of a queue; compared and hashed by identity."""

    region: CacheRegion
    element: E


class _Deque(Generic[E]):
    """An ordered queue of nodes with constant-time unlink and move-to-back."""

    def __init__(self, region: CacheRegion) -> None:
        self.region = region
        self._nodes: OrderedDict[DeqNode[E], None] = OrderedDict()

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[DeqNode[E]]:
        return iter(self._nodes)

    def __contains__(self, node: object) -> bool:
        return node in self._nodes

    def push_back(self, node: DeqNode[E]) -> DeqNode[E]:
        self._nodes[node] = None
        return node

    def move_to_back(self, node: DeqNode[E]) -> None:
        self._nodes.move_to_end(node)

    def unlink(self, node: DeqNode[E]) -> None:
        if node not in self._nodes:
            raise ValueError(
                f"unlink_node - node is not a member of {self.region.value} deque. {node!r}"
            )
        del self._nodes[node]

    def peek_front(self) -> Optional[DeqNode[E]]:
        return next(iter(self._nodes), None)

    def pop_front(self) -> Optional[DeqNode[E]]:
        if not self._nodes:
            return None
        node, _ = self._nodes.popitem(last=False)
        return node


@dataclass
class ValueEntry:
    """A stored value with its policy weight and its queue nodes."""

    value: Any
    policy_weight: int = 1
    access_order_q_node: Optional[DeqNode[KeyHashDate]] = field(default=None, repr=False)
    write_order_q_node: Optional[DeqNode[KeyDate]] = field(default=None, repr=False)

    def replace_deq_nodes_with(self, other: "ValueEntry") -> None:
        """Take over the queue nodes of ``other``, leaving it without any."""
        self.access_order_q_node, other.access_order_q_node = other.access_order_q_node, None
        self.write_order_q_node, other.write_order_q_node = other.write_order_q_node, None

    @property
    def last_accessed(self) -> Optional[float]:
        node = self.access_order_q_node
        return node.element.timestamp if node is not None else None

    @last_accessed.setter
    def last_accessed(self, timestamp: float) -> None:
        if self.access_order_q_node is not None:
            self.access_order_q_node.element.timestamp = timestamp

    @property
    def last_modified(self) -> Optional[float]:
        node = self.write_order_q_node
        return node.element.timestamp if node is not None else None

    @last_modified.setter
    def last_modified(self, timestamp: float) -> None:
        if self.write_order_q_node is not None:
            self.write_order_q_node.element.timestamp = timestamp


class Deques:
    """The three access-order queues and the write-order queue of a cache."""

    def __init__(self) -> None:
        self.clear()

    def clear(self) -> None:
        """Replace every queue with an empty one."""
        self.window: _Deque[KeyHashDate] = _Deque(CacheRegion.WINDOW)
        self.probation: _Deque[KeyHashDate] = _Deque(CacheRegion.MAIN_PROBATION)
        self.protected: _Deque[KeyHashDate] = _Deque(CacheRegion.MAIN_PROTECTED)
        self.write_order: _Deque[KeyDate] = _Deque(CacheRegion.WRITE_ORDER)

    def _access_deque(self, region: CacheRegion) -> _Deque[KeyHashDate]:
        if region is CacheRegion.WINDOW:
            return self.window
        if region is CacheRegion.MAIN_PROBATION:
            return self.probation
        if region is CacheRegion.MAIN_PROTECTED:
            return self.protected
        raise ValueError(f"{region.value} is not an access-order region")

    def push_back_ao(self, region: CacheRegion, kh: KeyHashDate, entry: ValueEntry) -> None:
        """Append a node for ``kh`` to the access-order queue of ``region``."""
        deque = self._access_deque(region)
        entry.access_order_q_node = deque.push_back(DeqNode(region, kh))

    def push_back_wo(self, kd: KeyDate, entry: ValueEntry) -> None:
        """Append a node for ``kd`` to the write-order queue."""
        node = DeqNode(CacheRegion.WRITE_ORDER, kd)
        entry.write_order_q_node = self.write_order.push_back(node)

    def move_to_back_ao(self, entry: ValueEntry) -> None:
        """Move the entry's access-order node to the most recently used end."""
        node = entry.access_order_q_node
        if node is None:
            raise ValueError("entry has no access-order node")
        deque = self._access_deque(node.region)
        if node in deque:
            deque.move_to_back(node)

    def move_to_back_wo(self, entry: ValueEntry) -> None:
        """Move the entry's write-order node to the newest end."""
        node = entry.write_order_q_node
        if node is None:
            raise ValueError("entry has no write-order node")
        if node in self.write_order:
            self.write_order.move_to_back(node)

    def unlink_ao(self, entry: ValueEntry) -> None:
        """Detach the entry's access-order node, if it has one."""
        node, entry.access_order_q_node = entry.access_order_q_node, None
        if node is not None:
            self._access_deque(node.region).unlink(node)

    def unlink_wo(self, entry: ValueEntry) -> None:
        """Detach the entry's write-order node, if it has one."""
        node, entry.write_order_q_node = entry.write_order_q_node, None
        if node is not None:
            self.write_order.unlink(node)

    def peek_front_probation(self) -> Optional[DeqNode[KeyHashDate]]:
        """The least recently used node of the probation queue."""
        return self.probation.peek_front()

    def peek_front_write_order(self) -> Optional[DeqNode[KeyDate]]:
        """The oldest node of the write-order queue."""
        return self.write_order.peek_front()