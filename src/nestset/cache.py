"""cache.py - Caller-owned cache of derived child collections.

Boundary values of every ancestor and later sibling change on each
structural mutation, so cached entries for an affected tree are dropped
wholesale rather than patched. Entries are filed under the tree the parent
is in when it is loaded, which is only known for sure when the cache can
re-read the parent from the store; without that every event clears the
whole cache.
"""

from __future__ import annotations

import threading
from typing import Callable, Generic, TypeVar

from .events import StructureChanged
from .node import Node

T = TypeVar("T")


class ChildCache(Generic[T]):
    """Memoise `loader(parent)` per parent id until a structure change.

    Subscribe the cache to a forest (``forest.subscribe(cache)``). With a
    `resolve` callable (``forest.reload``) every event clears the entries of
    the trees it names; without one every event clears the cache.
    """

    def __init__(
        self,
        loader: Callable[[Node], T],
        resolve: Callable[[Node], Node] | None = None,
    ) -> None:
        self.loader = loader
        self.resolve = resolve
        self._entries: dict[int, tuple[int, T]] = {}
        self._lock = threading.RLock()
        self.hits = 0
        self.misses = 0

    def get(self, parent: Node) -> T:
        parent_id = parent.require_persisted()
        with self._lock:
            entry = self._entries.get(parent_id)
            if entry is not None:
                self.hits += 1
                return entry[1]
            self.misses += 1
            if self.resolve is not None:
                parent = self.resolve(parent)
            value = self.loader(parent)
            self._entries[parent_id] = (parent.tree_id, value)
            return value

    def invalidate(self, parent_id: int) -> None:
        with self._lock:
            self._entries.pop(parent_id, None)

    def invalidate_tree(self, tree_id: int) -> None:
        with self._lock:
            stale = [pid for pid, (tid, _) in self._entries.items() if tid == tree_id]
            for pid in stale:
                del self._entries[pid]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __call__(self, event: StructureChanged) -> None:
        with self._lock:
            if self.resolve is None:
                self._entries.clear()
                return
            if event.parent_id is not None:
                self.invalidate(event.parent_id)
            for tree_id in event.tree_ids:
                self.invalidate_tree(tree_id)

    def __contains__(self, parent_id: object) -> bool:
        return parent_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)
