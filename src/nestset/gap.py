"""gap.py - Open and close numeric gaps in one tree's numbering."""

from __future__ import annotations

from .config import LEFT, RIGHT
from .logger import get_logger
from .predicates import AtLeast
from .store import BoundaryStore

logger = get_logger(__name__)


class GapAllocator:
    """Shift every boundary at or after a position by a fixed width.

    Left and right values are shifted by two separate bulk updates, each
    selecting rows by the column it changes, so neither update can see the
    other's result. A negative width closes a gap; the caller guarantees the
    closed range holds no boundary values (widths are always derived from a
    subtree's own size).
    """

    def __init__(self, store: BoundaryStore) -> None:
        self.store = store

    def open_gap(self, tree_id: int, start: int, width: int) -> None:
        if width == 0:
            return
        with self.store.transaction():
            lefts = self.store.bulk_update(tree_id, AtLeast(LEFT, start), {LEFT: width})
            rights = self.store.bulk_update(tree_id, AtLeast(RIGHT, start), {RIGHT: width})
        logger.debug(
            f"Gap of {width:+d} at {start} in tree {tree_id}: "
            f"{lefts} left / {rights} right value(s) shifted"
        )

    def close_gap(self, tree_id: int, start: int, width: int) -> None:
        self.open_gap(tree_id, start, -width)
