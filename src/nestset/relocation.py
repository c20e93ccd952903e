"""relocation.py - Move a persisted node, with its whole subtree, to a new place.

A move is three bulk phases against the store:

1. extract: shift the node's interval so its right boundary lands on 0,
   parking the subtree in the non-positive staging region, then close the
   gap it left behind;
2. retarget: when the destination is another tree, move every staged row
   to the destination tree id;
3. reinsert: open a gap at the destination and shift the staged rows into it.

Each phase moves the contiguous run of rows selected by the subtree's own
interval with one uniform delta, so the relative nesting inside the subtree
is preserved exactly. The whole sequence runs in one store transaction.
"""

from __future__ import annotations

from .config import LEFT, RIGHT, TREE
from .events import EventBus, StructureChanged
from .exceptions import (
    InvalidParentError,
    InvalidPositionError,
    NodeNotFoundError,
    NotPersistedError,
    RelocationFailedError,
)
from .gap import GapAllocator
from .insertion import InsertionPlanner
from .logger import get_logger
from .node import Node, Placement, Position, size
from .predicates import Between
from .roots import RootInitializer
from .store import BoundaryStore

logger = get_logger(__name__)

# Precondition failures pass through unchanged; anything else raised inside
# the sequence becomes RelocationFailedError.
PRECONDITION_ERRORS = (
    InvalidParentError,
    InvalidPositionError,
    NotPersistedError,
    NodeNotFoundError,
)


class SubtreeRelocator:
    def __init__(
        self,
        store: BoundaryStore,
        gaps: GapAllocator,
        roots: RootInitializer,
        planner: InsertionPlanner,
        events: EventBus | None = None,
    ) -> None:
        self.store = store
        self.gaps = gaps
        self.roots = roots
        self.planner = planner
        self.events = events

    def move_as_child(
        self, node: Node, parent: Node, position: Position | str
    ) -> Placement:
        """Make `node` the first or last child of `parent`.

        Unsaved nodes are inserted by the InsertionPlanner. Saved nodes are
        relocated together with their subtree, across trees if needed.
        """
        if not parent.exists:
            raise InvalidParentError(
                "The parent node must be persisted before children can be assigned to it."
            )
        position = Position.from_value(position)
        if not node.exists:
            return self.planner.insert(node, parent, position)

        try:
            with self.store.transaction():
                node = self.store.read(node.id)
                parent = self.store.read(parent.id)
                self._check_target(node, parent)
                source_tree = node.tree_id

                staged = self._extract(node)
                parent = self.store.read(parent.id)
                if staged.tree_id != parent.tree_id:
                    staged = self._retarget(staged, parent.tree_id)

                if position is Position.FIRST:
                    new_left = parent.left + 1
                else:
                    new_left = parent.right
                moved = self._reinsert(staged, new_left)
                parent = self.store.read(parent.id)
        except PRECONDITION_ERRORS:
            raise
        except Exception as e:
            logger.exception(f"Relocation of node {node.id} under {parent.id} failed")
            raise RelocationFailedError(node.id, str(e)) from e

        logger.info(
            f"Moved node {moved.id} (size {size(moved)}) from tree {source_tree} "
            f"to {position.value} child of {parent.id} in tree {parent.tree_id}"
        )
        if self.events is not None:
            self.events.publish(
                StructureChanged(
                    parent.id,
                    moved.id,
                    frozenset({source_tree, parent.tree_id}),
                    "move",
                )
            )
        return Placement(moved, parent)

    def move_as_root(self, node: Node) -> Placement:
        """Detach a saved node and its subtree into a tree of its own."""
        node_id = node.require_persisted()
        try:
            with self.store.transaction():
                node = self.store.read(node_id)
                if node.left == 1:
                    return Placement(node, None)
                source_tree = node.tree_id
                staged = self._extract(node)
                staged = self._retarget(staged, self.roots.next_tree_id())
                moved = self._land(staged, 1)
        except PRECONDITION_ERRORS:
            raise
        except Exception as e:
            logger.exception(f"Detaching node {node_id} into a new tree failed")
            raise RelocationFailedError(node_id, str(e)) from e

        logger.info(
            f"Detached node {moved.id} from tree {source_tree} as root of tree {moved.tree_id}"
        )
        if self.events is not None:
            self.events.publish(
                StructureChanged(
                    None, moved.id, frozenset({source_tree, moved.tree_id}), "make_root"
                )
            )
        return Placement(moved, None)

    # ----------------------------------------------------------------
    # Phases
    # ----------------------------------------------------------------

    def _check_target(self, node: Node, parent: Node) -> None:
        if node.id == parent.id or node.contains(parent):
            raise InvalidParentError(
                f"Node {node.id} may not be made a child of itself or of its descendants."
            )

    def _extract(self, node: Node) -> Node:
        """Park the subtree at [-size, 0] and close the gap it leaves."""
        width = size(node)
        delta = -node.right
        self.store.bulk_update(
            node.tree_id,
            Between(LEFT, node.left, node.right),
            {LEFT: delta, RIGHT: delta},
        )
        self.gaps.close_gap(node.tree_id, node.left, width + 1)
        return self.store.read(node.id)

    def _retarget(self, staged: Node, tree_id: int) -> Node:
        """Move every staged row, not only the subtree root, to `tree_id`."""
        self.store.bulk_update(
            staged.tree_id,
            Between(LEFT, -size(staged), 0),
            {TREE: tree_id - staged.tree_id},
        )
        return self.store.read(staged.id)

    def _reinsert(self, staged: Node, new_left: int) -> Node:
        self.gaps.open_gap(staged.tree_id, new_left, size(staged) + 1)
        return self._land(staged, new_left)

    def _land(self, staged: Node, new_left: int) -> Node:
        """Shift the staged rows so the subtree root starts at `new_left`."""
        width = size(staged)
        delta = new_left + width
        self.store.bulk_update(
            staged.tree_id,
            Between(LEFT, -width, 0),
            {LEFT: delta, RIGHT: delta},
        )
        return self.store.read(staged.id)
