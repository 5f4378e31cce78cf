import pytest

from kestrelcache.entries import CacheRegion, Deques, KeyDate, KeyHashDate, ValueEntry


def _probation_keys(deques):
    return [node.element.key for node in deques.probation]


def _add(deques, key, ts=None, with_wo=False):
    entry = ValueEntry(value=f"v-{key}")
    deques.push_back_ao(CacheRegion.MAIN_PROBATION, KeyHashDate(key, hash(key), ts), entry)
    if with_wo:
        deques.push_back_wo(KeyDate(key, ts), entry)
    return entry


def test_push_back_sets_nodes_and_timestamps():
    deques = Deques()
    entry = _add(deques, "a", ts=1.5, with_wo=True)
    assert entry.last_accessed == 1.5
    assert entry.last_modified == 1.5
    assert deques.peek_front_probation().element.key == "a"
    assert deques.peek_front_write_order().element.key == "a"


def test_entry_without_nodes_has_no_timestamps():
    entry = ValueEntry(value="x", policy_weight=3)
    entry.last_accessed = 2.0
    entry.last_modified = 2.0
    assert entry.last_accessed is None
    assert entry.last_modified is None
    assert entry.policy_weight == 3


def test_timestamp_setters_update_nodes():
    deques = Deques()
    entry = _add(deques, "a", ts=1.0, with_wo=True)
    entry.last_accessed = 4.0
    entry.last_modified = 5.0
    assert deques.peek_front_probation().element.timestamp == 4.0
    assert deques.peek_front_write_order().element.timestamp == 5.0


def test_move_to_back_ao_reorders():
    deques = Deques()
    a = _add(deques, "a")
    _add(deques, "b")
    _add(deques, "c")
    deques.move_to_back_ao(a)
    assert _probation_keys(deques) == ["b", "c", "a"]


def test_move_to_back_wo_reorders():
    deques = Deques()
    a = _add(deques, "a", with_wo=True)
    _add(deques, "b", with_wo=True)
    deques.move_to_back_wo(a)
    assert [n.element.key for n in deques.write_order] == ["b", "a"]


def test_move_without_node_raises():
    deques = Deques()
    with pytest.raises(ValueError):
        deques.move_to_back_ao(ValueEntry(value=1))
    with pytest.raises(ValueError):
        deques.move_to_back_wo(ValueEntry(value=1))


def test_unlink_removes_and_is_idempotent():
    deques = Deques()
    a = _add(deques, "a", with_wo=True)
    _add(deques, "b", with_wo=True)
    deques.unlink_ao(a)
    deques.unlink_wo(a)
    assert _probation_keys(deques) == ["b"]
    assert len(deques.write_order) == 1
    assert a.access_order_q_node is None and a.write_order_q_node is None
    deques.unlink_ao(a)
    deques.unlink_wo(a)
    assert _probation_keys(deques) == ["b"]


def test_unlink_after_clear_raises():
    deques = Deques()
    a = _add(deques, "a", with_wo=True)
    deques.clear()
    assert deques.peek_front_probation() is None
    with pytest.raises(ValueError):
        deques.unlink_ao(a)
    with pytest.raises(ValueError):
        deques.unlink_wo(a)


def test_push_back_ao_rejects_write_order_region():
    deques = Deques()
    with pytest.raises(ValueError):
        deques.push_back_ao(CacheRegion.WRITE_ORDER, KeyHashDate("k", 0), ValueEntry(value=1))


def test_push_back_ao_in_other_regions():
    deques = Deques()
    entry = ValueEntry(value=1)
    deques.push_back_ao(CacheRegion.WINDOW, KeyHashDate("w", 7), entry)
    assert len(deques.window) == 1
    assert len(deques.probation) == 0
    deques.move_to_back_ao(entry)
    deques.unlink_ao(entry)
    assert len(deques.window) == 0


def test_replace_deq_nodes_with_moves_nodes():
    deques = Deques()
    old = _add(deques, "a", ts=3.0, with_wo=True)
    new = ValueEntry(value="new")
    new.replace_deq_nodes_with(old)
    assert new.last_accessed == 3.0
    assert new.last_modified == 3.0
    assert old.access_order_q_node is None
    assert old.write_order_q_node is None
    deques.unlink_ao(new)
    assert len(deques.probation) == 0


def test_pop_front_returns_oldest():
    deques = Deques()
    _add(deques, "a")
    _add(deques, "b")
    assert deques.probation.pop_front().element.key == "a"
    assert _probation_keys(deques) == ["b"]