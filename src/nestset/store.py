"""store.py - BoundaryStore contract and the numpy-backed stores.

The nested-set algorithms only talk to a store through this narrow
interface: column maxima, range-predicate bulk updates, single-row
read/save and a transaction scope. `ArrayBoundaryStore` implements all of it
on top of a numpy structured array; subclasses only decide where that array
lives (process memory here, an HDF5 dataset in `storage.py`).
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterator, Mapping

import numpy as np

from .config import (
    BOUNDARY_COLUMNS,
    DEFAULT_COLUMNS,
    LAST_NODE_ID_ATTR,
    LAST_TREE_ID_ATTR,
    NAME_MAX_BYTES,
    TREE,
    ColumnConfig,
)
from .exceptions import NodeNotFoundError
from .logger import get_logger
from .node import Node
from .predicates import Predicate

logger = get_logger(__name__)

COUNTERS = (LAST_NODE_ID_ATTR, LAST_TREE_ID_ATTR)


def node_dtype(columns: ColumnConfig = DEFAULT_COLUMNS) -> np.dtype:
    """Record layout of one node, with field names taken from `columns`."""
    return np.dtype([
        (columns.id, "<i8"),
        (columns.left, "<i8"),
        (columns.right, "<i8"),
        (columns.tree, "<i8"),
        (columns.name, f"S{NAME_MAX_BYTES}"),
    ])


class BoundaryStore(ABC):
    """Record store consumed by the nested-set algorithms."""

    columns: ColumnConfig

    @abstractmethod
    def max_of(self, column: str, tree_id: int | None = None) -> int:
        """Maximum of a logical column (left/right/tree), 0 when no row matches."""

    @abstractmethod
    def bulk_update(
        self, tree_id: int, predicate: Predicate, deltas: Mapping[str, int]
    ) -> int:
        """Add each delta to its column for every matching row of `tree_id`.

        The set of matching rows is decided once, against the values as they
        were before any of the deltas is applied. Returns the row count.
        """

    @abstractmethod
    def read(self, node_id: int) -> Node:
        ...

    @abstractmethod
    def save(self, node: Node) -> Node:
        """Persist `node`; a node without an id gets a new one."""

    @abstractmethod
    def allocate_tree_id(self) -> int:
        """Return a tree id that has never been handed out before."""

    @abstractmethod
    def transaction(self):
        """Context manager making a sequence of updates all-or-nothing."""

    @abstractmethod
    def nodes(self, tree_id: int | None = None) -> list[Node]:
        ...

    @abstractmethod
    def tree_ids(self) -> list[int]:
        ...

    @abstractmethod
    def __len__(self) -> int:
        ...


class ArrayBoundaryStore(BoundaryStore):
    """BoundaryStore over a numpy structured array.

    Subclasses implement `_load`/`_write` for the rows and
    `_get_counter`/`_set_counter` for the id counters. Every read and every
    transaction runs inside a re-entrant session; `_begin`/`_end` bracket the
    outermost one, which is where a backend acquires and releases its
    resources. Transactions are re-entrant too: only the outermost one
    snapshots rows and counters and restores them if the block raises.
    """

    def __init__(self, columns: ColumnConfig = DEFAULT_COLUMNS) -> None:
        self.columns = columns
        self.dtype = node_dtype(columns)
        self._lock = threading.RLock()
        self._depth = 0
        self._sessions = 0

    # ----------------------------------------------------------------
    # Backend hooks
    # ----------------------------------------------------------------

    @abstractmethod
    def _load(self) -> np.ndarray:
        ...

    @abstractmethod
    def _write(self, rows: np.ndarray) -> None:
        ...

    @abstractmethod
    def _get_counter(self, name: str) -> int:
        ...

    @abstractmethod
    def _set_counter(self, name: str, value: int) -> None:
        ...

    def _load_ids(self) -> np.ndarray:
        return self._load()[self.columns.id]

    def _load_row(self, index: int) -> np.void:
        return self._load()[index]

    def _begin(self) -> None:
        """Called when the outermost session starts."""

    def _commit(self) -> None:
        """Called after the outermost transaction succeeded."""

    def _end(self) -> None:
        """Called when the outermost session finished either way."""

    # ----------------------------------------------------------------
    # Sessions and transactions
    # ----------------------------------------------------------------

    @contextmanager
    def session(self) -> Iterator["ArrayBoundaryStore"]:
        with self._lock:
            if self._sessions == 0:
                self._begin()
            self._sessions += 1
            try:
                yield self
            finally:
                self._sessions -= 1
                if self._sessions == 0:
                    self._end()

    @contextmanager
    def transaction(self) -> Iterator["ArrayBoundaryStore"]:
        with self.session():
            if self._depth:
                self._depth += 1
                try:
                    yield self
                finally:
                    self._depth -= 1
                return

            snapshot = self._load().copy()
            counters = {name: self._get_counter(name) for name in COUNTERS}
            self._depth = 1
            try:
                yield self
            except BaseException:
                logger.warning(
                    f"Rolling back transaction ({len(snapshot)} row(s) restored)."
                )
                self._write(snapshot)
                for name, value in counters.items():
                    self._set_counter(name, value)
                raise
            else:
                self._commit()
            finally:
                self._depth = 0

    # ----------------------------------------------------------------
    # Row conversion
    # ----------------------------------------------------------------

    def _to_node(self, row: np.void) -> Node:
        c = self.columns
        return Node(
            id=int(row[c.id]),
            left=int(row[c.left]),
            right=int(row[c.right]),
            tree_id=int(row[c.tree]),
            name=bytes(row[c.name]).decode("utf-8"),
        )

    def _to_record(self, node: Node, node_id: int) -> np.ndarray:
        name = node.name.encode("utf-8")
        if len(name) > NAME_MAX_BYTES:
            raise ValueError(
                f"Node name is {len(name)} bytes, at most {NAME_MAX_BYTES} are stored"
            )
        # Field order follows node_dtype()
        record = np.zeros(1, dtype=self.dtype)
        record[0] = (node_id, node.left, node.right, node.tree_id, name)
        return record

    def _index_of(self, ids: np.ndarray, node_id: int) -> int:
        # Rows are only ever appended with increasing ids, so the id
        # column is sorted
        index = int(np.searchsorted(ids, node_id))
        if index == len(ids) or ids[index] != node_id:
            raise NodeNotFoundError(node_id)
        return index

    # ----------------------------------------------------------------
    # BoundaryStore
    # ----------------------------------------------------------------

    def max_of(self, column: str, tree_id: int | None = None) -> int:
        with self.session():
            rows = self._load()
        values = rows[self.columns.physical(column)]
        if tree_id is not None:
            values = values[rows[self.columns.tree] == tree_id]
        if values.size == 0:
            return 0
        return int(values.max())

    def bulk_update(
        self, tree_id: int, predicate: Predicate, deltas: Mapping[str, int]
    ) -> int:
        for column in deltas:
            if column not in BOUNDARY_COLUMNS:
                raise ValueError(
                    f"Cannot apply a delta to {column!r}; expected one of {BOUNDARY_COLUMNS}"
                )
        with self.transaction():
            rows = self._load()
            mask = (rows[self.columns.tree] == tree_id) & predicate.mask(
                rows[self.columns.physical(predicate.column)]
            )
            count = int(np.count_nonzero(mask))
            if count and any(deltas.values()):
                for column, delta in deltas.items():
                    rows[self.columns.physical(column)][mask] += delta
                self._write(rows)
            logger.debug(
                f"bulk_update tree={tree_id} where {predicate}: {dict(deltas)} -> {count} row(s)"
            )
            return count

    def read(self, node_id: int) -> Node:
        with self.session():
            index = self._index_of(self._load_ids(), node_id)
            return self._to_node(self._load_row(index))

    def save(self, node: Node) -> Node:
        with self.transaction():
            rows = self._load()
            if node.id is None:
                node_id = self._get_counter(LAST_NODE_ID_ATTR) + 1
                self._set_counter(LAST_NODE_ID_ATTR, node_id)
                self._write(np.concatenate([rows, self._to_record(node, node_id)]))
                logger.debug(f"Inserted node {node_id} ({node.name!r})")
            else:
                node_id = node.id
                rows[self._index_of(rows[self.columns.id], node_id)] = self._to_record(node, node_id)[0]
                self._write(rows)
            if node.tree_id > self._get_counter(LAST_TREE_ID_ATTR):
                self._set_counter(LAST_TREE_ID_ATTR, node.tree_id)
        return self.read(node_id)

    def allocate_tree_id(self) -> int:
        with self.transaction():
            tree_id = max(self.max_of(TREE), self._get_counter(LAST_TREE_ID_ATTR)) + 1
            self._set_counter(LAST_TREE_ID_ATTR, tree_id)
        return tree_id

    def nodes(self, tree_id: int | None = None) -> list[Node]:
        with self.session():
            rows = self._load()
        if tree_id is not None:
            rows = rows[rows[self.columns.tree] == tree_id]
        rows = np.sort(rows, order=[self.columns.tree, self.columns.left])
        return [self._to_node(row) for row in rows]

    def tree_ids(self) -> list[int]:
        with self.session():
            return [int(t) for t in np.unique(self._load()[self.columns.tree])]

    def __len__(self) -> int:
        with self.session():
            return len(self._load_ids())


class MemoryBoundaryStore(ArrayBoundaryStore):
    """BoundaryStore keeping its rows in process memory."""

    def __init__(self, columns: ColumnConfig = DEFAULT_COLUMNS) -> None:
        super().__init__(columns)
        self._rows = np.zeros(0, dtype=self.dtype)
        self._counters = dict.fromkeys(COUNTERS, 0)

    def _load(self) -> np.ndarray:
        return self._rows

    def _write(self, rows: np.ndarray) -> None:
        self._rows = rows

    def _get_counter(self, name: str) -> int:
        return self._counters[name]

    def _set_counter(self, name: str, value: int) -> None:
        self._counters[name] = int(value)

    def __repr__(self) -> str:
        return f"MemoryBoundaryStore(rows={len(self._rows)}, columns={self.columns})"
