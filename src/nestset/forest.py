"""forest.py - Entry point wiring a store to the nested-set algorithms."""

from __future__ import annotations

from pathlib import Path

from .audit import Violation, audit_store
from .cache import ChildCache
from .config import DEFAULT_COLUMNS, ColumnConfig
from .events import EventBus, Listener
from .exceptions import CorruptForestError
from .gap import GapAllocator
from .insertion import InsertionPlanner
from .logger import get_logger
from .node import Node, Placement, Position, size
from .relocation import SubtreeRelocator
from .roots import RootInitializer
from .storage import HDF5BoundaryStore
from .store import BoundaryStore, MemoryBoundaryStore

logger = get_logger(__name__)


class Forest:
    """A forest of nested-set trees kept in a BoundaryStore.

    - make_root() seeds a new tree or detaches a saved subtree into one.
    - first_child_of()/last_child_of()/child_of() insert unsaved nodes and
      relocate saved ones, across trees if needed.
    - Structural operations return a Placement with the fresh node and
      parent; caller-held Node values are never mutated.
    - Listeners subscribed here hear about every structural change.
    """

    def __init__(self, store: BoundaryStore) -> None:
        self.store = store
        self.events = EventBus()
        self.gaps = GapAllocator(store)
        self.roots = RootInitializer(store, self.events)
        self.planner = InsertionPlanner(store, self.gaps, self.events)
        self.relocator = SubtreeRelocator(
            store, self.gaps, self.roots, self.planner, self.events
        )

    @classmethod
    def in_memory(cls, columns: ColumnConfig = DEFAULT_COLUMNS) -> "Forest":
        return cls(MemoryBoundaryStore(columns))

    @classmethod
    def open(cls, path: str | Path, columns: ColumnConfig = DEFAULT_COLUMNS) -> "Forest":
        return cls(HDF5BoundaryStore(path, columns))

    def close(self) -> None:
        close = getattr(self.store, "close", None)
        if close is not None:
            close()

    def __enter__(self) -> "Forest":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    # --- Structure ---

    def make_root(self, node: Node) -> Node:
        if node.exists:
            return self.relocator.move_as_root(node).node
        return self.roots.make_root(node)

    def first_child_of(self, node: Node, parent: Node) -> Placement:
        return self.child_of(node, parent, Position.FIRST)

    def last_child_of(self, node: Node, parent: Node) -> Placement:
        return self.child_of(node, parent, Position.LAST)

    def child_of(self, node: Node, parent: Node, position: Position | str) -> Placement:
        return self.relocator.move_as_child(node, parent, position)

    # --- Queries ---

    def reload(self, node: Node) -> Node:
        return self.store.read(node.require_persisted())

    @staticmethod
    def size(node: Node) -> int:
        return size(node)

    def check(self, raise_on_error: bool = True) -> list[Violation]:
        violations = audit_store(self.store)
        if violations:
            logger.error(f"Forest audit found {len(violations)} violation(s)")
            if raise_on_error:
                raise CorruptForestError(violations)
        return violations

    # --- Events ---

    def subscribe(self, listener: Listener) -> Listener:
        return self.events.subscribe(listener)

    def unsubscribe(self, listener: Listener) -> None:
        self.events.unsubscribe(listener)

    def child_cache(self, loader) -> ChildCache:
        """Create a ChildCache already subscribed to this forest."""
        cache = ChildCache(loader, resolve=self.reload)
        self.subscribe(cache)
        return cache

    def __len__(self) -> int:
        return len(self.store)

    def __repr__(self) -> str:
        return f"Forest({self.store!r})"
