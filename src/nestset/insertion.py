"""insertion.py - Place a brand-new node as first or last child of a parent."""

from __future__ import annotations

from .events import EventBus, StructureChanged
from .exceptions import InvalidParentError
from .gap import GapAllocator
from .logger import get_logger
from .node import Node, Placement, Position, size
from .store import BoundaryStore

logger = get_logger(__name__)


class InsertionPlanner:
    def __init__(
        self,
        store: BoundaryStore,
        gaps: GapAllocator,
        events: EventBus | None = None,
    ) -> None:
        self.store = store
        self.gaps = gaps
        self.events = events

    def as_first_child(self, child: Node, parent: Node) -> Placement:
        return self.insert(child, parent, Position.FIRST)

    def as_last_child(self, child: Node, parent: Node) -> Placement:
        return self.insert(child, parent, Position.LAST)

    def insert(self, child: Node, parent: Node, position: Position | str) -> Placement:
        """Insert an unsaved `child` under `parent`.

        The child takes the first slot inside the parent (left + 1) or the
        slot just before the parent's right boundary. Opening a gap at the
        child's left value widens the parent and every ancestor and pushes
        later siblings right, all in one bulk pass per column.
        """
        if not parent.exists:
            raise InvalidParentError(
                "The parent node must be persisted before children can be assigned to it."
            )
        position = Position.from_value(position)
        if child.exists:
            raise ValueError(
                f"Node {child.id} is already persisted; relocate it instead of inserting"
            )

        with self.store.transaction():
            parent = self.store.read(parent.id)
            if position is Position.FIRST:
                left = parent.left + 1
            else:
                left = parent.right
            child = child.with_bounds(left, left + 1, parent.tree_id)
            self.gaps.open_gap(parent.tree_id, child.left, size(child) + 1)
            child = self.store.save(child)
            parent = self.store.read(parent.id)

        logger.info(
            f"Inserted node {child.id} as {position.value} child of {parent.id} "
            f"in tree {parent.tree_id}"
        )
        if self.events is not None:
            self.events.publish(
                StructureChanged(parent.id, child.id, frozenset({parent.tree_id}), "insert")
            )
        return Placement(child, parent)
