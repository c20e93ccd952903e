# HDF5-specific behaviour: layout, persistence across reopen, locking

import os
import subprocess
import sys
from pathlib import Path

import h5py
import pytest

from nestset.config import (
    LAST_NODE_ID_ATTR,
    LAST_TREE_ID_ATTR,
    META_GROUP,
    NODES_DATASET,
    ColumnConfig,
)
from nestset.exceptions import StoreError
from nestset.forest import Forest
from nestset.node import Node
from nestset.storage import HDF5BoundaryStore


def test_layout_created(tmp_path):
    path = tmp_path / "layout.h5"
    HDF5BoundaryStore(path).close()
    with h5py.File(path, "r") as f:
        assert NODES_DATASET in f
        assert f[NODES_DATASET].shape == (0,)
        meta = f[META_GROUP]
        assert meta.attrs["created_by"] == "nestset"
        assert meta.attrs[LAST_NODE_ID_ATTR] == 0
        assert meta.attrs[LAST_TREE_ID_ATTR] == 0


def test_forest_survives_reopen(tmp_path):
    path = tmp_path / "persist.h5"
    with Forest.open(path) as forest:
        root = forest.make_root(Node(name="root"))
        a = forest.last_child_of(Node(name="a"), root).node
        forest.last_child_of(Node(name="b"), root)

    with Forest.open(path) as forest:
        assert len(forest) == 3
        assert forest.reload(root) == Node(left=1, right=6, tree_id=1, name="root", id=1)
        assert forest.reload(a).name == "a"
        # Counters are persisted too
        assert forest.make_root(Node(name="second")).tree_id == 2
        assert forest.last_child_of(Node(name="c"), root).node.id == 5
        assert forest.check() == []


def test_reopen_with_other_columns_fails(tmp_path):
    path = tmp_path / "columns.h5"
    HDF5BoundaryStore(path).close()
    with pytest.raises(StoreError):
        HDF5BoundaryStore(path, ColumnConfig(left="lo", right="hi"))


def test_custom_columns_on_disk(tmp_path):
    path = tmp_path / "custom.h5"
    columns = ColumnConfig(left="lo", right="hi", tree="forest")
    with Forest.open(path, columns) as forest:
        root = forest.make_root(Node(name="r"))
        forest.first_child_of(Node(name="c"), root)
    with h5py.File(path, "r") as f:
        rows = f[NODES_DATASET][...]
        assert list(rows["lo"]) == [1, 2]
        assert list(rows["hi"]) == [4, 3]
        assert list(rows["forest"]) == [1, 1]


def test_open_file_without_forest_read_only(tmp_path):
    path = tmp_path / "other.h5"
    with h5py.File(path, "w") as f:
        f.create_group("unrelated")
    with pytest.raises(StoreError):
        HDF5BoundaryStore(path, mode="r")


def test_open_unreadable_path(tmp_path):
    with pytest.raises(StoreError):
        HDF5BoundaryStore(tmp_path / "missing" / "dir" / "f.h5")


def test_close_is_idempotent(h5_store):
    h5_store.close()
    h5_store.close()
    with pytest.raises(StoreError):
        h5_store.read(1)


def test_transaction_uses_file_lock(h5_store):
    with h5_store.transaction():
        assert h5_store._file_lock.is_locked
        with h5_store.transaction():
            assert h5_store._file_lock.is_locked
    assert not h5_store._file_lock.is_locked


def test_rollback_restores_dataset(h5_store, tmp_path):
    h5_store.save(Node(left=1, right=2, tree_id=1))
    with pytest.raises(RuntimeError):
        with h5_store.transaction():
            h5_store.save(Node(left=1, right=2, tree_id=2))
            h5_store.save(Node(left=1, right=2, tree_id=3))
            raise RuntimeError("abort")
    with h5_store.session():
        assert h5_store.ds.shape == (1,)
        assert h5_store.meta.attrs[LAST_NODE_ID_ATTR] == 1


def test_file_is_only_open_inside_sessions(h5_store):
    assert h5_store.file is None
    with h5_store.session():
        assert h5_store.file is not None
        assert h5_store._file_lock.is_locked
    assert h5_store.file is None
    assert not h5_store._file_lock.is_locked

    h5_store.save(Node(left=1, right=2, tree_id=1, name="r"))
    # Committed rows are on disk while the store itself stays usable
    with h5py.File(h5_store.path, "r") as f:
        assert f[NODES_DATASET].shape == (1,)
    assert h5_store.read(1).name == "r"


def test_store_sees_rows_written_by_another_store(tmp_path):
    path = tmp_path / "shared.h5"
    with Forest.open(path) as first, Forest.open(path) as second:
        root = first.make_root(Node(name="root"))
        second.last_child_of(Node(name="a"), root)
        first.last_child_of(Node(name="b"), root)
        assert len(first) == len(second) == 3
        assert first.reload(root).right == 6
        assert first.check() == []


WORKER = """
import sys
from nestset.forest import Forest
from nestset.node import Node

path, tag, count = sys.argv[1], sys.argv[2], int(sys.argv[3])
with Forest.open(path) as forest:
    root = forest.reload(Node(id=1))
    parent = root
    for i in range(count):
        placed = forest.last_child_of(Node(name=f"{tag}{i}"), parent).node
        parent = placed if i % 2 == 0 else root
"""


def test_concurrent_processes_share_one_file(tmp_path):
    path = tmp_path / "shared.h5"
    count = 10
    src = Path(__file__).resolve().parents[1] / "src"
    env = {**os.environ, "PYTHONPATH": str(src)}

    with Forest.open(path) as forest:
        root = forest.make_root(Node(name="root"))
        workers = [
            subprocess.Popen(
                [sys.executable, "-c", WORKER, str(path), tag, str(count)],
                env=env,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
            )
            for tag in ("p", "q")
        ]
        try:
            for i in range(count):
                forest.first_child_of(Node(name=f"local{i}"), root)
        finally:
            results = [w.communicate(timeout=120) for w in workers]

        for worker, (_, err) in zip(workers, results):
            assert worker.returncode == 0, err
        assert len(forest) == 1 + 3 * count
        assert forest.reload(root).right == 2 * (1 + 3 * count)
        assert forest.check() == []
        names = {n.name for n in forest.store.nodes()}
        assert {f"p{i}" for i in range(count)} <= names
        assert {f"q{i}" for i in range(count)} <= names
