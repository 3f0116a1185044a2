"""Tests for dense 1..N ordering of sibling collections."""
from types import SimpleNamespace

import pytest

from kanbanflow.engine import positions
from kanbanflow.engine.errors import NotFound


def _items(*ids):
    return [SimpleNamespace(id=item_id, position=index) for index, item_id in enumerate(ids, start=1)]


def _ids(items):
    return [i.id for i in positions.ordered(items)]


def _assert_dense(items):
    assert sorted(i.position for i in items) == list(range(1, len(items) + 1))


def test_insert_appends_without_position():
    """Test that a new item goes after the current maximum."""
    items = _items("x", "y")
    new = SimpleNamespace(id="z", position=None)

    assert positions.insert(items, new) == 3
    assert _ids([*items, new]) == ["x", "y", "z"]


def test_insert_at_position_shifts_following_items():
    """Test inserting in the middle pushes later siblings down."""
    items = _items("x", "y", "z")
    new = SimpleNamespace(id="n", position=None)

    positions.insert(items, new, 2)

    all_items = [*items, new]
    assert _ids(all_items) == ["x", "n", "y", "z"]
    _assert_dense(all_items)


def test_insert_clamps_out_of_range_positions():
    """Test positions outside 1..N+1 are clamped."""
    items = _items("x", "y")
    first = SimpleNamespace(id="first", position=None)
    positions.insert(items, first, -5)
    assert first.position == 1

    items = [*items, first]
    last = SimpleNamespace(id="last", position=None)
    positions.insert(items, last, 99)
    assert last.position == 4
    _assert_dense([*items, last])


def test_move_to_front():
    """Test moving the last of X, Y, Z to position 1 gives Z, X, Y."""
    items = _items("x", "y", "z")

    result = positions.move(items, "z", 1)

    assert [i.id for i in result] == ["z", "x", "y"]
    _assert_dense(items)


def test_move_down():
    """Test moving an item later closes the gap behind it."""
    items = _items("a", "b", "c", "d")

    result = positions.move(items, "a", 3)

    assert [i.id for i in result] == ["b", "c", "a", "d"]
    _assert_dense(items)


def test_move_same_position_is_noop():
    """Test moving an item onto its own slot changes nothing."""
    items = _items("a", "b")

    result = positions.move(items, "b", 2)

    assert [(i.id, i.position) for i in result] == [("a", 1), ("b", 2)]


def test_move_clamps_position():
    """Test a move beyond the end lands on the last slot."""
    items = _items("a", "b", "c")

    result = positions.move(items, "a", 10)

    assert [i.id for i in result] == ["b", "c", "a"]


def test_move_unknown_item():
    """Test moving an unknown id raises NotFound."""
    with pytest.raises(NotFound):
        positions.move(_items("a"), "missing", 1)


def test_remove_closes_gap():
    """Test removal renumbers the remaining items."""
    items = _items("a", "b", "c")

    remaining = positions.remove(items, "b")

    assert [(i.id, i.position) for i in remaining] == [("a", 1), ("c", 2)]


def test_move_across_lists():
    """Test moving between collections keeps both dense."""
    source = _items("a", "b", "c")
    target = _items("x", "y")

    remaining, moved_into = positions.move_across(source, target, "a", 2)

    assert [i.id for i in remaining] == ["b", "c"]
    assert [i.id for i in moved_into] == ["x", "a", "y"]
    _assert_dense(remaining)
    _assert_dense(moved_into)


def test_move_across_appends_by_default():
    """Test a cross-collection move without position appends."""
    source = _items("a")
    target = _items("x")

    remaining, moved_into = positions.move_across(source, target, "a")

    assert remaining == []
    assert [i.id for i in moved_into] == ["x", "a"]


def test_renumber_repairs_gaps():
    """Test renumber rewrites positions to 1..N in order."""
    items = [SimpleNamespace(id="a", position=4), SimpleNamespace(id="b", position=9)]

    result = positions.renumber(items)

    assert [(i.id, i.position) for i in result] == [("a", 1), ("b", 2)]


def test_mixed_sequence_stays_dense():
    """Test positions remain exactly 1..N through inserts, moves and removals."""
    items = _items("a", "b")
    other = _items("x")

    def add(item_id, position):
        new_item = SimpleNamespace(id=item_id, position=0)
        positions.insert(items, new_item, position)
        return [*items, new_item]

    items = add("c", None)
    _assert_dense(items)
    items = add("d", 1)
    _assert_dense(items)
    items = add("e", 99)
    _assert_dense(items)
    items = add("f", 3)
    _assert_dense(items)
    assert _ids(items) == ["d", "a", "f", "b", "c", "e"]

    items = positions.move(items, "e", 1)
    _assert_dense(items)
    items = positions.move(items, "a", 6)
    _assert_dense(items)
    items = positions.remove(items, "c")
    _assert_dense(items)
    items = positions.move(items, "d", -3)
    _assert_dense(items)
    items = add("g", 2)
    _assert_dense(items)
    items, other = positions.move_across(items, other, "b", 1)
    _assert_dense(items)
    _assert_dense(other)
    items = positions.remove(items, "f")
    _assert_dense(items)

    assert _ids(items) == ["d", "g", "e", "a"]
    assert _ids(other) == ["b", "x"]
