"""node.py - Node record, child positions and subtree size."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import NamedTuple

from .exceptions import InvalidPositionError, NotPersistedError


class Position(Enum):
    FIRST = "first"
    LAST = "last"

    @classmethod
    def from_value(cls, value: "Position | str") -> "Position":
        """Accept a Position or its string form; anything else is invalid."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.lower())
            except ValueError:
                pass
        raise InvalidPositionError(value)


@dataclass(frozen=True)
class Node:
    """One row of the forest.

    `id` is None until a store has saved the node. `left`/`right` encode the
    node's position and the extent of its subtree inside tree `tree_id`.
    """

    left: int = 0
    right: int = 0
    tree_id: int = 0
    name: str = ""
    id: int | None = None

    @property
    def exists(self) -> bool:
        return self.id is not None

    def require_persisted(self) -> int:
        if self.id is None:
            raise NotPersistedError(
                "This operation requires a node that has been persisted to a store"
            )
        return self.id

    @property
    def is_root(self) -> bool:
        return self.exists and self.left == 1

    def with_bounds(self, left: int, right: int, tree_id: int | None = None) -> "Node":
        return replace(
            self,
            left=left,
            right=right,
            tree_id=self.tree_id if tree_id is None else tree_id,
        )

    def contains(self, other: "Node") -> bool:
        """True if `other` is a strict descendant of this node."""
        return (
            self.tree_id == other.tree_id
            and self.left < other.left
            and other.right < self.right
        )

    def __repr__(self) -> str:
        return (
            f"Node(id={self.id}, name={self.name!r}, "
            f"left={self.left}, right={self.right}, tree_id={self.tree_id})"
        )


class Placement(NamedTuple):
    """Result of a structural operation: the placed node and its re-read parent."""

    node: Node
    parent: Node | None


def size(node: Node) -> int:
    """Subtree width: right - left. A leaf has size 1."""
    return node.right - node.left


def descendant_count(node: Node) -> int:
    return (size(node) - 1) // 2
