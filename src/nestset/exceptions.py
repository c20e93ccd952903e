"""exceptions.py - Exception hierarchy for nested-set forest operations.

Every error is surfaced to the caller. The core never retries and never
recovers silently: each one signals either a violated precondition or a
sequence of bulk updates that could not be applied as a whole.
"""

from __future__ import annotations


class NestSetError(Exception):
    """Base exception for all nestset errors."""

    pass


class InvalidParentError(NestSetError):
    """Raised when a node cannot be placed under the given parent.

    Examples:
        - The parent has never been saved to a store
        - The parent is the node itself or one of its descendants
    """

    pass


class InvalidPositionError(NestSetError, ValueError):
    """Raised for a child position other than first or last."""

    def __init__(self, position: object):
        self.position = position
        super().__init__(f"Position {position!r} is not a valid position.")


class NotPersistedError(NestSetError):
    """Raised when an operation needs a persisted node but got an unsaved one."""

    pass


class NodeNotFoundError(NestSetError, LookupError):
    """Raised when a store has no row for the requested node id."""

    def __init__(self, node_id: int):
        self.node_id = node_id
        super().__init__(f"No node with id {node_id}")


class RelocationFailedError(NestSetError):
    """Raised when a multi-step relocation could not complete.

    The partial relocation is rolled back when the outermost store
    transaction unwinds; if the relocation runs inside a caller's own
    transaction that happens only once the error leaves that block. The
    underlying failure is available as ``__cause__``.
    """

    def __init__(self, node_id: int | None, reason: str):
        self.node_id = node_id
        self.reason = reason
        super().__init__(f"Relocation of node {node_id} failed: {reason}")


class StoreError(NestSetError):
    """Raised when the backing storage fails (I/O, closed file, bad layout)."""

    pass


class CorruptForestError(NestSetError):
    """Raised by an audit that found nested-set invariant violations."""

    def __init__(self, violations: list):
        self.violations = violations
        summary = "; ".join(str(v) for v in violations[:5])
        more = f" (+{len(violations) - 5} more)" if len(violations) > 5 else ""
        super().__init__(f"{len(violations)} invariant violation(s): {summary}{more}")
