"""events.py - Structure-change notifications.

Structural operations do not own any child cache. They publish a
`StructureChanged` event naming the parent whose children changed and every
tree whose numbering moved; callers that cache derived collections subscribe
and drop what the event covers.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable

from .logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class StructureChanged:
    parent_id: int | None
    node_id: int
    tree_ids: frozenset[int]
    operation: str


Listener = Callable[[StructureChanged], None]


class EventBus:
    def __init__(self) -> None:
        self._listeners: list[Listener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: Listener) -> Listener:
        with self._lock:
            if listener not in self._listeners:
                self._listeners.append(listener)
        return listener

    def unsubscribe(self, listener: Listener) -> None:
        with self._lock:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

    def publish(self, event: StructureChanged) -> None:
        with self._lock:
            listeners = list(self._listeners)
        logger.debug(f"{event.operation}: node={event.node_id} parent={event.parent_id}")
        for listener in listeners:
            listener(event)

    def __len__(self) -> int:
        return len(self._listeners)
