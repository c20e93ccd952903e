"""audit.py - Invariant checks over a stored forest.

For every tree, at rest:
- left < right for every node, all values >= 1;
- boundary values are unique and cover 1 .. 2n without holes;
- any two intervals are nested or disjoint, never partially overlapping;
- size - 1 equals twice the number of nodes inside the interval;
- exactly one root (left == 1), spanning the whole tree.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass

import numpy as np

from .node import Node, descendant_count
from .store import BoundaryStore


@dataclass(frozen=True)
class Violation:
    tree_id: int
    node_id: int | None
    message: str

    def __str__(self) -> str:
        where = f"node {self.node_id}" if self.node_id is not None else "tree"
        return f"tree {self.tree_id}, {where}: {self.message}"


def audit_tree(tree_id: int, nodes: list[Node]) -> list[Violation]:
    violations: list[Violation] = []

    def flag(node: Node | None, message: str) -> None:
        violations.append(Violation(tree_id, node.id if node else None, message))

    nodes = sorted(nodes, key=lambda n: n.left)
    if not nodes:
        return violations

    for node in nodes:
        if node.left >= node.right:
            flag(node, f"left {node.left} is not below right {node.right}")
        if node.left < 1:
            flag(node, f"left {node.left} is outside the tree numbering")

    counts = Counter(v for n in nodes for v in (n.left, n.right))
    duplicates = sorted(v for v, c in counts.items() if c > 1)
    if duplicates:
        flag(None, f"duplicate boundary values {duplicates}")
    expected = set(range(1, 2 * len(nodes) + 1))
    if set(counts) != expected:
        missing = sorted(expected - set(counts))[:10]
        flag(None, f"numbering is not contiguous 1..{2 * len(nodes)} (missing {missing})")

    roots = [n for n in nodes if n.left == 1]
    if len(roots) != 1:
        flag(None, f"expected exactly one root, found {len(roots)}")
    elif roots[0].right != 2 * len(nodes):
        flag(roots[0], f"root does not span the tree (right={roots[0].right})")

    # Nested-or-disjoint, via a stack of enclosing intervals
    open_nodes: list[Node] = []
    for node in nodes:
        while open_nodes and open_nodes[-1].right < node.left:
            open_nodes.pop()
        if open_nodes and node.right > open_nodes[-1].right:
            flag(node, f"partially overlaps node {open_nodes[-1].id}")
        open_nodes.append(node)

    lefts = np.fromiter((n.left for n in nodes), dtype=np.int64, count=len(nodes))
    for node in nodes:
        inside = int(np.count_nonzero((lefts > node.left) & (lefts < node.right)))
        if descendant_count(node) != inside or (node.right - node.left) % 2 == 0:
            flag(
                node,
                f"size {node.right - node.left} does not match {inside} descendant(s)",
            )
    return violations


def audit_store(store: BoundaryStore) -> list[Violation]:
    violations: list[Violation] = []
    for tree_id in store.tree_ids():
        violations.extend(audit_tree(tree_id, store.nodes(tree_id)))
    return violations
