"""config.py - Configuration and constants for nestset"""

from __future__ import annotations

import os
from dataclasses import dataclass

NODES_DATASET = "/nodes"
META_GROUP = "/meta"

# Attribute names on META_GROUP
LAST_NODE_ID_ATTR = "last_node_id"
LAST_TREE_ID_ATTR = "last_tree_id"
FORMAT_VERSION = 1

# Fixed width of the name field in the on-disk/in-memory record
NAME_MAX_BYTES = 128

# Logical column names used by predicates and deltas
LEFT = "left"
RIGHT = "right"
TREE = "tree"
BOUNDARY_COLUMNS = (LEFT, RIGHT, TREE)

LOG_LEVEL = os.getenv("NESTSET_LOG_LEVEL", "")


@dataclass(frozen=True)
class ColumnConfig:
    """Physical field names for the boundary columns.

    `left` and `right` are reserved words in many databases, so the
    defaults are `lft`/`rgt`.
    """

    left: str = "lft"
    right: str = "rgt"
    tree: str = "tree_id"
    id: str = "id"
    name: str = "name"

    def __post_init__(self) -> None:
        fields = (self.left, self.right, self.tree, self.id, self.name)
        if len(set(fields)) != len(fields):
            raise ValueError(f"Column names must be distinct, got {fields}")

    def physical(self, column: str) -> str:
        """Map a logical boundary column (left/right/tree) to its field name."""
        match column:
            case "left":
                return self.left
            case "right":
                return self.right
            case "tree":
                return self.tree
            case _:
                raise ValueError(
                    f"Unknown boundary column {column!r}; expected one of {BOUNDARY_COLUMNS}"
                )


DEFAULT_COLUMNS = ColumnConfig()
