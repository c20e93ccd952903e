"""roots.py - Tree id allocation and root seeding."""

from __future__ import annotations

from .events import EventBus, StructureChanged
from .logger import get_logger
from .node import Node
from .store import BoundaryStore

logger = get_logger(__name__)


class RootInitializer:
    def __init__(self, store: BoundaryStore, events: EventBus | None = None) -> None:
        self.store = store
        self.events = events

    def next_tree_id(self) -> int:
        """Allocate a tree id; ids are never handed out twice."""
        return self.store.allocate_tree_id()

    def make_root(self, node: Node) -> Node:
        """Save an unsaved node as the single node (1, 2) of a new tree."""
        if node.exists:
            raise ValueError(
                f"Node {node.id} is already persisted; relocate it to make it a root"
            )
        with self.store.transaction():
            tree_id = self.next_tree_id()
            root = self.store.save(node.with_bounds(1, 2, tree_id))
        logger.info(f"Created root {root.id} ({root.name!r}) of tree {tree_id}")
        if self.events is not None:
            self.events.publish(
                StructureChanged(None, root.id, frozenset({tree_id}), "make_root")
            )
        return root
