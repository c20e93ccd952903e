"""nestset - forests of ordered trees stored as nested-set boundaries."""

from .audit import Violation, audit_store
from .cache import ChildCache
from .config import ColumnConfig
from .events import EventBus, StructureChanged
from .exceptions import (
    CorruptForestError,
    InvalidParentError,
    InvalidPositionError,
    NestSetError,
    NodeNotFoundError,
    NotPersistedError,
    RelocationFailedError,
    StoreError,
)
from .forest import Forest
from .gap import GapAllocator
from .insertion import InsertionPlanner
from .node import Node, Placement, Position, descendant_count, size
from .predicates import AtLeast, Between
from .relocation import SubtreeRelocator
from .roots import RootInitializer
from .storage import HDF5BoundaryStore
from .store import BoundaryStore, MemoryBoundaryStore

__version__ = "0.1.0"

__all__ = [
    "AtLeast",
    "Between",
    "BoundaryStore",
    "ChildCache",
    "ColumnConfig",
    "CorruptForestError",
    "EventBus",
    "Forest",
    "GapAllocator",
    "HDF5BoundaryStore",
    "InsertionPlanner",
    "InvalidParentError",
    "InvalidPositionError",
    "MemoryBoundaryStore",
    "NestSetError",
    "Node",
    "NodeNotFoundError",
    "NotPersistedError",
    "Placement",
    "Position",
    "RelocationFailedError",
    "RootInitializer",
    "StoreError",
    "StructureChanged",
    "SubtreeRelocator",
    "Violation",
    "audit_store",
    "descendant_count",
    "size",
]
