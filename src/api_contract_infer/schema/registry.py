"""Named-schema registry.

An arena of named `SchemaNode`s shared by every route file of a run. Nodes
reference each other by name (`SchemaNode.reference`), callers receive deep
copies, and concurrent requests for the same name build it only once. A
thread never waits on a build that is itself (directly or through other
threads) waiting on one of its own builds; it gets None, which callers turn
into a reference, so mutually referencing names cannot deadlock.
"""

import logging
import threading
from collections.abc import Callable

from .node import SchemaNode

logger = logging.getLogger(__name__)


class SchemaRegistry:
    """Thread-safe store of named schemas with in-progress memoization."""

    def __init__(self):
        self._nodes: dict[str, SchemaNode] = {}
        self._building: dict[str, tuple[int, threading.Event]] = {}
        self._waiting: dict[int, str] = {}
        self._lock = threading.Lock()

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._nodes

    def __len__(self) -> int:
        with self._lock:
            return len(self._nodes)

    def get(self, name: str) -> SchemaNode | None:
        """The stored node itself, for read-only walks."""
        with self._lock:
            return self._nodes.get(name)

    def copy(self, name: str) -> SchemaNode | None:
        """An independently mutable copy of a stored node."""
        node = self.get(name)
        return node.copy_node() if node is not None else None

    def put(self, name: str, node: SchemaNode) -> None:
        """Store a node; the last writer wins."""
        with self._lock:
            if name in self._nodes:
                logger.debug("Replacing registered schema %s", name)
            self._nodes[name] = node

    def is_building(self, name: str) -> bool:
        """True while the calling thread is building `name` further up its stack."""
        with self._lock:
            entry = self._building.get(name)
            return entry is not None and entry[0] == threading.get_ident()

    def resolve(self, name: str, build: Callable[[], SchemaNode | None]) -> SchemaNode | None:
        """Return a copy of `name`, building and storing it on first request.

        A second thread asking for a name that is being built waits for the
        builder instead of duplicating the work. A re-entrant request from the
        building thread itself, or one whose wait would close a cycle of
        waiting builders, returns None; callers treat that as a cycle.
        """
        with self._lock:
            if name in self._nodes:
                return self._nodes[name].copy_node()
            entry = self._building.get(name)
            if entry is None:
                event = threading.Event()
                self._building[name] = (threading.get_ident(), event)
                owner = True
            else:
                owner = False
                if self._would_deadlock(entry[0]):
                    return None
                event = entry[1]
                self._waiting[threading.get_ident()] = name

        if not owner:
            try:
                event.wait()
            finally:
                with self._lock:
                    self._waiting.pop(threading.get_ident(), None)
            return self.copy(name)

        try:
            node = build()
            if node is not None:
                self.put(name, node)
        finally:
            with self._lock:
                self._building.pop(name, None)
            event.set()
        return node.copy_node() if node is not None else None

    def _would_deadlock(self, owner: int) -> bool:
        """True if `owner` already waits, directly or transitively, on the calling thread.

        Must be called with the lock held.
        """
        me = threading.get_ident()
        seen = set()
        while owner not in seen:
            if owner == me:
                return True
            seen.add(owner)
            waited = self._waiting.get(owner)
            entry = self._building.get(waited) if waited is not None else None
            if entry is None:
                return False
            owner = entry[0]
        return False

    def snapshot(self) -> dict[str, SchemaNode]:
        """Copies of every stored node, in insertion order."""
        with self._lock:
            return {name: node.copy_node() for name, node in self._nodes.items()}
