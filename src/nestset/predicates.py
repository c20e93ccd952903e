"""predicates.py - Range predicates over boundary columns.

Stores evaluate a predicate against a column of the pre-update rows to build
a boolean mask; every column delta of one bulk update is then applied through
that same mask.

- Between(column, low, high): low <= value <= high (inclusive, BETWEEN-style)
- AtLeast(column, start):     value >= start
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

import numpy as np

from .config import BOUNDARY_COLUMNS


class Predicate(ABC):
    """Base class for predicates on one logical boundary column."""

    column: str

    @abstractmethod
    def mask(self, values: np.ndarray) -> np.ndarray:
        """Boolean mask of the `values` that satisfy the predicate."""


def _check_column(column: str) -> None:
    if column not in BOUNDARY_COLUMNS:
        raise ValueError(
            f"Unknown boundary column {column!r}; expected one of {BOUNDARY_COLUMNS}"
        )


@dataclass(frozen=True)
class Between(Predicate):
    column: str
    low: int
    high: int

    def __post_init__(self) -> None:
        _check_column(self.column)

    def mask(self, values: np.ndarray) -> np.ndarray:
        return (values >= self.low) & (values <= self.high)

    def __str__(self) -> str:
        return f"{self.column} BETWEEN {self.low} AND {self.high}"


@dataclass(frozen=True)
class AtLeast(Predicate):
    column: str
    start: int

    def __post_init__(self) -> None:
        _check_column(self.column)

    def mask(self, values: np.ndarray) -> np.ndarray:
        return values >= self.start

    def __str__(self) -> str:
        return f"{self.column} >= {self.start}"
