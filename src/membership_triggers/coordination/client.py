"""Coordination-service client contract and local implementations.

The production coordination service (watch/read/write of persistent nodes,
leader election) is an external collaborator. This module defines the narrow
surface the trigger core needs and ships two local implementations:

- :class:`InMemoryCoordinationClient` for tests and embedded use
- :class:`FileCoordinationClient`, whose persistent nodes survive restarts
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

LiveNodesCallback = Callable[[frozenset[str]], None]


class CoordinationError(Exception):
    """Base class for coordination-service failures."""


class TransientCoordinationError(CoordinationError):
    """A failure that is safe to retry (connection loss, session move, timeout)."""


class NodeExistsError(CoordinationError):
    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Node already exists: {path}")


class NoNodeError(CoordinationError):
    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"No such node: {path}")


class CoordinationClient(Protocol):
    """What the trigger core needs from the coordination service."""

    def get_live_nodes(self) -> frozenset[str]: ...

    def watch_live_nodes(self, callback: LiveNodesCallback) -> None: ...

    def create(self, path: str, data: bytes = b"") -> None: ...

    def exists(self, path: str) -> bool: ...

    def get_data(self, path: str) -> bytes: ...

    def delete(self, path: str) -> None: ...

    def get_children(self, path: str) -> list[str]: ...


def normalize_path(path: str) -> str:
    if not path.startswith("/"):
        raise ValueError(f"Coordination paths must be absolute: {path!r}")
    parts = [p for p in path.split("/") if p]
    if any(p in {".", ".."} for p in parts):
        raise ValueError(f"Relative segments are not allowed: {path!r}")
    return "/" + "/".join(parts)


def _parent(path: str) -> str:
    head, _, _ = path.rpartition("/")
    return head or "/"


class InMemoryCoordinationClient:
    """Thread-safe, process-local stand-in for the coordination service.

    Persistent nodes are kept in a dict keyed by normalized path. Parents are
    created implicitly, like a recursive `makePath`. The live-node set is
    driven by the caller through :meth:`set_live_nodes` and friends; watchers
    are notified synchronously on the calling thread, in registration order.
    """

    def __init__(self, live_nodes: Iterable[str] = ()) -> None:
        self._lock = threading.RLock()
        # Held while delivering, separately from the data lock, so watchers may
        # call back into the client from another thread.
        self._watch_lock = threading.RLock()
        self._nodes: dict[str, bytes] = {"/": b""}
        self._live_nodes: frozenset[str] = frozenset(live_nodes)
        self._watchers: list[LiveNodesCallback] = []

    # Live nodes

    def get_live_nodes(self) -> frozenset[str]:
        with self._lock:
            return self._live_nodes

    def watch_live_nodes(self, callback: LiveNodesCallback) -> None:
        with self._lock:
            self._watchers.append(callback)

    def set_live_nodes(self, nodes: Iterable[str]) -> None:
        with self._watch_lock:
            with self._lock:
                new = frozenset(nodes)
                if new == self._live_nodes:
                    return
                self._live_nodes = new
                watchers = list(self._watchers)
            for callback in watchers:
                callback(new)

    def add_live_node(self, node: str) -> None:
        with self._watch_lock:
            self.set_live_nodes(self._live_nodes | {node})

    def remove_live_node(self, node: str) -> None:
        with self._watch_lock:
            self.set_live_nodes(self._live_nodes - {node})

    # Persistent nodes

    def create(self, path: str, data: bytes = b"") -> None:
        path = normalize_path(path)
        with self._lock:
            if self._has(path):
                raise NodeExistsError(path)
            self._ensure_parents(path)
            self._put(path, data)

    def exists(self, path: str) -> bool:
        path = normalize_path(path)
        with self._lock:
            return self._has(path)

    def get_data(self, path: str) -> bytes:
        path = normalize_path(path)
        with self._lock:
            if not self._has(path):
                raise NoNodeError(path)
            return self._get(path)

    def delete(self, path: str) -> None:
        path = normalize_path(path)
        with self._lock:
            if not self._has(path):
                raise NoNodeError(path)
            if self._children(path):
                raise CoordinationError(f"Node has children: {path}")
            self._remove(path)

    def get_children(self, path: str) -> list[str]:
        path = normalize_path(path)
        with self._lock:
            if not self._has(path):
                raise NoNodeError(path)
            return sorted(self._children(path))

    def _ensure_parents(self, path: str) -> None:
        missing: list[str] = []
        parent = _parent(path)
        while not self._has(parent):
            missing.append(parent)
            parent = _parent(parent)
        for p in reversed(missing):
            self._put(p, b"")

    # Storage primitives; FileCoordinationClient overrides these.

    def _has(self, path: str) -> bool:
        return path in self._nodes

    def _get(self, path: str) -> bytes:
        return self._nodes[path]

    def _put(self, path: str, data: bytes) -> None:
        self._nodes[path] = data

    def _remove(self, path: str) -> None:
        del self._nodes[path]

    def _children(self, path: str) -> list[str]:
        prefix = path.rstrip("/") + "/"
        names = (p[len(prefix) :] for p in self._nodes if p.startswith(prefix))
        return [name for name in names if name and "/" not in name]


class FileCoordinationClient(InMemoryCoordinationClient):
    """Coordination client whose persistent nodes are files under `root`.

    A node at `/a/b` is the directory `root/a/b`; its data is stored in the
    `.data` file inside it. Markers written here outlive the process, which is
    what single-host failover relies on.
    """

    DATA_FILE = ".data"

    def __init__(self, root: Path, live_nodes: Iterable[str] = ()) -> None:
        super().__init__(live_nodes)
        self.root = root
        self.root.mkdir(parents=True, exist_ok=True)
        logger.debug("File coordination client rooted at %s", root)

    def _dir(self, path: str) -> Path:
        if path == "/":
            return self.root
        return self.root.joinpath(*path.strip("/").split("/"))

    def _has(self, path: str) -> bool:
        return self._dir(path).is_dir()

    def _get(self, path: str) -> bytes:
        data_file = self._dir(path) / self.DATA_FILE
        if not data_file.exists():
            return b""
        return data_file.read_bytes()

    def _put(self, path: str, data: bytes) -> None:
        node_dir = self._dir(path)
        node_dir.mkdir(parents=True, exist_ok=True)
        tmp = node_dir / (self.DATA_FILE + ".tmp")
        tmp.write_bytes(data)
        tmp.replace(node_dir / self.DATA_FILE)

    def _remove(self, path: str) -> None:
        node_dir = self._dir(path)
        (node_dir / self.DATA_FILE).unlink(missing_ok=True)
        node_dir.rmdir()

    def _children(self, path: str) -> list[str]:
        node_dir = self._dir(path)
        if not node_dir.is_dir():
            return []
        return [p.name for p in node_dir.iterdir() if p.is_dir()]
