"""storage.py - HDF5-backed BoundaryStore.

All nodes of the forest live in one resizable structured dataset
(`/nodes`); the node-id and tree-id counters are attributes of the `/meta`
group. The file is only open while a session is: the outermost session
takes a FileLock on `<path>.lock`, opens the file, and flushes and closes it
again before releasing the lock. Reads and transactions from several
processes sharing the file are therefore serialised, and each of them sees
everything the previous one committed.
"""

# mypy: ignore-errors

from __future__ import annotations

import time
from pathlib import Path

import h5py
import numpy as np
from filelock import FileLock

from .config import (
    DEFAULT_COLUMNS,
    FORMAT_VERSION,
    META_GROUP,
    NODES_DATASET,
    ColumnConfig,
)
from .exceptions import StoreError
from .logger import get_logger
from .store import COUNTERS, ArrayBoundaryStore

logger = get_logger(__name__)

HDF5_NOT_OPEN_MSG = "HDF5 file is not open."
HDF5_CLOSED_MSG = "HDF5 store has been closed."


class HDF5BoundaryStore(ArrayBoundaryStore):
    def __init__(
        self,
        path: str | Path,
        columns: ColumnConfig = DEFAULT_COLUMNS,
        mode: str = "a",
    ) -> None:
        super().__init__(columns)
        self.path = Path(path)
        self.mode = mode
        self._file_lock = FileLock(f"{self.path}.lock")
        self.file: h5py.File | None = None
        self._closed = False
        self.open()

    # ----------------------------------------------------------------
    # Lifecycle
    # ----------------------------------------------------------------

    @property
    def _session_mode(self) -> str:
        # "w"/"x" only apply to the first session; later ones must keep
        # what the earlier ones wrote
        return "r" if self.mode == "r" else "r+"

    def open(self) -> None:
        """Create the layout if needed and check it, under the file lock."""
        self._closed = False
        with self._lock:
            self._acquire_file_lock()
            try:
                self._open_file(self.mode)
                try:
                    if self.mode != "r":
                        self._init_layout()
                    self._check_layout()
                    count = self.ds.shape[0]
                finally:
                    self._close_file()
            finally:
                self._file_lock.release()
        logger.info(f"Opened forest store {self.path} ({count} node(s)).")

    def _acquire_file_lock(self) -> None:
        try:
            self._file_lock.acquire()
        except OSError as e:
            raise StoreError(f"Failed to lock '{self.path}': {e}") from e

    def _open_file(self, mode: str) -> h5py.File:
        try:
            self.file = h5py.File(self.path, mode, libver="latest")
        except (OSError, RuntimeError) as e:
            raise StoreError(f"Failed to open HDF5 file '{self.path}': {e}") from e
        return self.file

    def _close_file(self) -> None:
        if self.file is None:
            return
        try:
            if self.file.mode != "r":
                self.file.flush()
            self.file.close()
        except (OSError, RuntimeError) as e:
            raise StoreError(f"Failed to close HDF5 file: {e}") from e
        finally:
            self.file = None

    def _init_layout(self) -> None:
        f = self._require_file()
        meta = f.require_group(META_GROUP)
        meta.attrs.setdefault("format_version", FORMAT_VERSION)
        meta.attrs.setdefault("created_by", "nestset")
        meta.attrs.setdefault("created", int(time.time()))
        for name in COUNTERS:
            meta.attrs.setdefault(name, 0)
        if NODES_DATASET not in f:
            f.create_dataset(
                NODES_DATASET,
                shape=(0,),
                maxshape=(None,),
                dtype=self.dtype,
                chunks=True,
                track_times=False,
            )
        f.flush()

    def _check_layout(self) -> None:
        f = self._require_file()
        if NODES_DATASET not in f or META_GROUP not in f:
            raise StoreError(f"'{self.path}' does not contain a nestset forest")
        ds = f[NODES_DATASET]
        if not isinstance(ds, h5py.Dataset):
            raise StoreError(f"{NODES_DATASET} must be an HDF5 dataset")
        if ds.dtype.names != self.dtype.names:
            raise StoreError(
                f"Column layout mismatch: file has {ds.dtype.names}, "
                f"store configured for {self.dtype.names}"
            )

    def _require_file(self) -> h5py.File:
        if self.file is None:
            raise StoreError(HDF5_NOT_OPEN_MSG)
        return self.file

    @property
    def ds(self) -> h5py.Dataset:
        return self._require_file()[NODES_DATASET]

    @property
    def meta(self) -> h5py.Group:
        return self._require_file()[META_GROUP]

    @property
    def closed(self) -> bool:
        return self._closed

    def flush(self) -> None:
        if self.file is not None:
            self.file.flush()

    def close(self) -> None:
        """Refuse further sessions. Safe to call multiple times."""
        with self._lock:
            self._closed = True
            if self._sessions == 0:
                self._close_file()

    def __enter__(self) -> "HDF5BoundaryStore":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    # ----------------------------------------------------------------
    # ArrayBoundaryStore hooks
    # ----------------------------------------------------------------

    def _load(self) -> np.ndarray:
        try:
            return self.ds[...]
        except (OSError, RuntimeError) as e:
            raise StoreError(f"Failed to read {NODES_DATASET}: {e}") from e

    def _load_ids(self) -> np.ndarray:
        ds = self.ds
        if ds.shape[0] == 0:
            return np.zeros(0, dtype=self.dtype[self.columns.id])
        try:
            return ds.fields(self.columns.id)[...]
        except (OSError, RuntimeError) as e:
            raise StoreError(f"Failed to read {NODES_DATASET}: {e}") from e

    def _load_row(self, index: int) -> np.void:
        try:
            return self.ds[index]
        except (OSError, RuntimeError) as e:
            raise StoreError(f"Failed to read {NODES_DATASET}: {e}") from e

    def _write(self, rows: np.ndarray) -> None:
        ds = self.ds
        try:
            if ds.shape[0] != len(rows):
                ds.resize((len(rows),))
            if len(rows):
                ds[...] = rows
        except (OSError, RuntimeError, ValueError) as e:
            raise StoreError(f"Failed to write {NODES_DATASET}: {e}") from e

    def _get_counter(self, name: str) -> int:
        return int(self.meta.attrs.get(name, 0))

    def _set_counter(self, name: str, value: int) -> None:
        self.meta.attrs[name] = int(value)

    def _begin(self) -> None:
        if self._closed:
            raise StoreError(HDF5_CLOSED_MSG)
        self._acquire_file_lock()
        try:
            self._open_file(self._session_mode)
        except StoreError:
            self._file_lock.release()
            raise

    def _commit(self) -> None:
        self.meta.attrs["last_modified"] = int(time.time())
        self.flush()

    def _end(self) -> None:
        try:
            self._close_file()
        finally:
            self._file_lock.release()

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"HDF5BoundaryStore({str(self.path)!r}, {state})"
