import pytest

from nestset.forest import Forest
from nestset.storage import HDF5BoundaryStore
from nestset.store import MemoryBoundaryStore


@pytest.fixture
def memory_store():
    return MemoryBoundaryStore()


@pytest.fixture
def h5_store(tmp_path):
    store = HDF5BoundaryStore(tmp_path / "forest.h5")
    try:
        yield store
    finally:
        store.close()


@pytest.fixture(params=["memory", "hdf5"])
def store(request, tmp_path):
    if request.param == "memory":
        yield MemoryBoundaryStore()
        return
    store = HDF5BoundaryStore(tmp_path / "forest.h5")
    try:
        yield store
    finally:
        store.close()


@pytest.fixture
def forest(store):
    return Forest(store)

