# Opening and closing gaps in a tree's numbering

from nestset.gap import GapAllocator
from nestset.node import Node


def _tree(store):
    """root (1, 8) > a (2, 5) > a1 (3, 4); b (6, 7); plus an unrelated tree 2."""
    nodes = {
        "root": store.save(Node(left=1, right=8, tree_id=1, name="root")),
        "a": store.save(Node(left=2, right=5, tree_id=1, name="a")),
        "a1": store.save(Node(left=3, right=4, tree_id=1, name="a1")),
        "b": store.save(Node(left=6, right=7, tree_id=1, name="b")),
        "other": store.save(Node(left=1, right=8, tree_id=2, name="other")),
    }
    return nodes


def _snapshot(store):
    return {n.name: (n.left, n.right, n.tree_id) for n in store.nodes()}


def test_open_gap_shifts_boundaries_at_or_after_start(store):
    _tree(store)
    GapAllocator(store).open_gap(1, 3, 2)
    got = _snapshot(store)
    assert got["root"] == (1, 10, 1)
    assert got["a"] == (2, 7, 1)
    assert got["a1"] == (5, 6, 1)
    assert got["b"] == (8, 9, 1)
    assert got["other"] == (1, 8, 2)


def test_gap_at_right_boundary_widens_enclosing_nodes(store):
    _tree(store)
    # Start at a's right boundary: a and root grow, a1 stays
    GapAllocator(store).open_gap(1, 5, 2)
    got = _snapshot(store)
    assert got["a"] == (2, 7, 1)
    assert got["a1"] == (3, 4, 1)
    assert got["root"] == (1, 10, 1)
    assert got["b"] == (8, 9, 1)


def test_gap_round_trip(store):
    _tree(store)
    before = _snapshot(store)
    gaps = GapAllocator(store)
    for start, width in [(1, 4), (3, 2), (8, 6), (7, 10)]:
        gaps.open_gap(1, start, width)
        assert _snapshot(store) != before
        gaps.close_gap(1, start, width)
        assert _snapshot(store) == before


def test_zero_width_is_noop(store):
    _tree(store)
    before = _snapshot(store)
    GapAllocator(store).open_gap(1, 1, 0)
    assert _snapshot(store) == before


def test_gap_ignores_staged_rows(store):
    _tree(store)
    staged = store.save(Node(left=-1, right=0, tree_id=1, name="staged"))
    GapAllocator(store).open_gap(1, 2, 2)
    assert store.read(staged.id).left == -1
