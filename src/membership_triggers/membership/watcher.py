"""Live-node membership watcher.

The watcher keeps the last observed live-node snapshot and, on every change
reported by the coordination service, calls each registered listener with the
old and new snapshots. Listeners are called synchronously, in registration
order, and a failing listener never stops the others.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol

from membership_triggers.coordination.client import CoordinationClient

logger = logging.getLogger(__name__)


class LiveNodesListener(Protocol):
    """Called with `(old_live_nodes, new_live_nodes)`; the return value is ignored."""

    def __call__(self, old_live_nodes: frozenset[str], new_live_nodes: frozenset[str]) -> None: ...


@dataclass(frozen=True, slots=True)
class MembershipDelta:
    lost: frozenset[str]
    added: frozenset[str]

    @property
    def empty(self) -> bool:
        return not self.lost and not self.added


def compute_delta(old: Iterable[str], new: Iterable[str]) -> MembershipDelta:
    """`lost = old - new`, `added = new - old`."""

    old_set = frozenset(old)
    new_set = frozenset(new)
    return MembershipDelta(lost=old_set - new_set, added=new_set - old_set)


class MembershipWatcher:
    def __init__(self, client: CoordinationClient) -> None:
        self._client = client
        self._listeners: list[LiveNodesListener] = []
        self._listeners_lock = threading.Lock()
        # Serializes deliveries so listeners see transitions in reported order.
        self._delivery_lock = threading.RLock()
        self._live_nodes: frozenset[str] = frozenset()
        self._started = False

    @property
    def live_nodes(self) -> frozenset[str]:
        with self._delivery_lock:
            return self._live_nodes

    def sorted_live_nodes(self) -> list[str]:
        return sorted(self.live_nodes)

    def start(self) -> None:
        """Take the initial snapshot and subscribe to changes. Idempotent."""

        with self._delivery_lock:
            if self._started:
                return
            self._live_nodes = self._client.get_live_nodes()
            self._started = True
        self._client.watch_live_nodes(self._on_live_nodes)
        logger.info("Watching live nodes", extra={"live_nodes": sorted(self._live_nodes)})

    def register_listener(self, listener: LiveNodesListener) -> None:
        with self._listeners_lock:
            self._listeners.append(listener)

    def unregister_listener(self, listener: LiveNodesListener) -> bool:
        with self._listeners_lock:
            try:
                self._listeners.remove(listener)
            except ValueError:
                return False
            return True

    def _on_live_nodes(self, new_live_nodes: frozenset[str]) -> None:
        with self._delivery_lock:
            old = self._live_nodes
            new = frozenset(new_live_nodes)
            if old == new:
                return
            self._live_nodes = new
            self._notify(old, new)

    def _notify(self, old: frozenset[str], new: frozenset[str]) -> None:
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(old, new)
            except Exception:
                logger.exception(
                    "Live nodes listener failed",
                    extra={"listener": repr(listener)},
                )
