"""Leader-side owner of all trigger runtimes.

Leader election is external: whoever runs it calls
:meth:`OverseerTriggerThread.on_leadership_acquired` and
:meth:`OverseerTriggerThread.on_leadership_lost`. Every leadership term gets a
fresh set of runtimes and a fresh debounce scheduler; nothing in memory
carries over between terms, only the durable markers.

Membership deltas arrive on the watcher's thread and are queued to this
object's own worker thread, so the watcher never waits on marker I/O. While
not leader the overseer only remembers which nodes came and went; the next
acquisition hands those to the fresh runtimes. That is how a successor fires
for the loss of the leader it replaces.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from membership_triggers.actions.executor import ActionExecutor
from membership_triggers.actions.loader import load_actions
from membership_triggers.config import OverseerSettings
from membership_triggers.coordination.client import CoordinationClient
from membership_triggers.errors import (
    ActionLoadError,
    MarkerStoreError,
    TriggerConflictError,
    UnknownTriggerError,
)
from membership_triggers.markers.store import NodeMarkerStore
from membership_triggers.membership.watcher import MembershipWatcher, compute_delta
from membership_triggers.triggers.config import TriggerConfig
from membership_triggers.triggers.events import TriggerEventType
from membership_triggers.triggers.runtime import TimerFactory, TriggerRuntime
from membership_triggers.triggers.scheduler import DebounceScheduler

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class _Delta:
    old: frozenset[str]
    new: frozenset[str]
    detected_at: float


@dataclass(frozen=True, slots=True)
class _Flush:
    done: threading.Event


_STOP = object()

_OPPOSITE = {
    TriggerEventType.ADDED: TriggerEventType.LOST,
    TriggerEventType.LOST: TriggerEventType.ADDED,
}


class OverseerTriggerThread:
    def __init__(
        self,
        client: CoordinationClient,
        *,
        settings: OverseerSettings | None = None,
        marker_store: NodeMarkerStore | None = None,
        watcher: MembershipWatcher | None = None,
        executor: ActionExecutor | None = None,
        timer_factory: Callable[[], TimerFactory] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Create an overseer.

        Args:
            client: Coordination-service client.
            settings: Marker root and retry settings; loaded from the environment if omitted.
            marker_store: Overrides the store built from `settings`.
            watcher: Overrides the watcher built on `client`.
            executor: Overrides the process-wide action executor.
            timer_factory: Called once per leadership term to produce the timer
                factory its runtimes share. Defaults to a fresh DebounceScheduler.
            clock: Source of detection times for changes buffered while not leader.
        """
        self._settings = settings or OverseerSettings()
        self._marker_store = marker_store or NodeMarkerStore.from_settings(client, self._settings)
        self._watcher = watcher or MembershipWatcher(client)
        self._executor = executor or ActionExecutor()
        self._timer_factory_provider = timer_factory
        self._clock = clock

        self._lock = threading.RLock()
        self._configs: dict[str, TriggerConfig] = {}
        self._suspended: set[str] = set()
        self._runtimes: dict[str, TriggerRuntime] = {}
        self._leader = False
        self._term = 0
        self._scheduler: DebounceScheduler | None = None
        self._term_timer_factory: TimerFactory | None = None
        self._closed = False
        # event type -> node name -> first detection time, collected while not leader
        self._unrouted: dict[TriggerEventType, dict[str, float]] = {
            event_type: {} for event_type in TriggerEventType
        }

        self._queue: queue.Queue[object] = queue.Queue()
        self._worker: threading.Thread | None = None

        self._watcher.register_listener(self._on_live_nodes_change)

    @property
    def marker_store(self) -> NodeMarkerStore:
        return self._marker_store

    @property
    def watcher(self) -> MembershipWatcher:
        return self._watcher

    @property
    def is_leader(self) -> bool:
        with self._lock:
            return self._leader

    def start(self) -> None:
        """Start the routing worker and the membership watcher."""

        with self._lock:
            if self._closed:
                raise RuntimeError("Overseer is closed")
            if self._worker is None:
                self._worker = threading.Thread(
                    target=self._run, name="overseer-trigger-thread", daemon=True
                )
                self._worker.start()
        self._watcher.start()

    def close(self, timeout: float | None = 5.0) -> None:
        self.on_leadership_lost()
        with self._lock:
            self._closed = True
            worker = self._worker
        self._watcher.unregister_listener(self._on_live_nodes_change)
        if worker is not None:
            self._queue.put(_STOP)
            worker.join(timeout)

    def flush(self, timeout: float | None = 5.0) -> bool:
        """Wait until every delta queued so far has been routed."""

        with self._lock:
            if self._worker is None or not self._worker.is_alive():
                return self._queue.empty()
        done = threading.Event()
        self._queue.put(_Flush(done))
        return done.wait(timeout)

    # Leadership

    def on_leadership_acquired(self) -> None:
        with self._lock:
            if self._closed:
                logger.warning("Ignoring leadership for a closed overseer")
                return
            if self._leader:
                return
            self._leader = True
            self._term += 1
            self._new_timer_factory()
            logger.info("Leadership acquired", extra={"term": self._term})

            for config in self._configs.values():
                if config.enabled:
                    self._start_runtime(config)
            self._purge_orphan_markers()
            self._route_unrouted()
        self._watcher.start()

    def on_leadership_lost(self) -> None:
        with self._lock:
            if not self._leader:
                return
            self._leader = False
            for runtime in self._runtimes.values():
                runtime.close()
            self._runtimes.clear()
            if self._scheduler is not None:
                # An in-flight firing runs to completion; do not wait for it.
                self._scheduler.stop(timeout=0)
            self._scheduler = None
            self._term_timer_factory = None
            logger.info("Leadership lost", extra={"term": self._term})

    # Trigger administration inputs

    def set_trigger(self, config: TriggerConfig) -> None:
        """Create or replace a trigger configuration."""

        with self._lock:
            if config.enabled:
                for other in self._configs.values():
                    if (
                        other.name != config.name
                        and other.enabled
                        and other.event_type is config.event_type
                    ):
                        raise TriggerConflictError(
                            f"Trigger {other.name!r} already handles {config.event_type.value}"
                        )

            self._configs[config.name] = config
            logger.info(
                "Trigger configured",
                extra={"trigger": config.name, "trigger_config": config.to_json()},
            )
            if not self._leader:
                return

            old = self._runtimes.pop(config.name, None)
            if old is not None:
                old.close()
            if config.enabled:
                self._start_runtime(config)

    def suspend_trigger(self, name: str) -> None:
        with self._lock:
            self._require(name)
            self._suspended.add(name)
            runtime = self._runtimes.get(name)
            if runtime is not None:
                runtime.suspend()

    def resume_trigger(self, name: str) -> None:
        with self._lock:
            self._require(name)
            self._suspended.discard(name)
            runtime = self._runtimes.get(name)
            if runtime is not None:
                runtime.resume()

    def remove_trigger(self, name: str, *, delete_markers: bool = False) -> None:
        with self._lock:
            config = self._require(name)
            del self._configs[name]
            self._suspended.discard(name)
            runtime = self._runtimes.pop(name, None)
            if runtime is not None:
                runtime.close(delete_markers=delete_markers)
            elif delete_markers and self._leader:
                self._delete_markers(config.event_type)
            logger.info("Trigger removed", extra={"trigger": name})

    def get_trigger(self, name: str) -> TriggerConfig:
        with self._lock:
            return self._require(name)

    def runtime(self, name: str) -> TriggerRuntime | None:
        with self._lock:
            return self._runtimes.get(name)

    def describe_triggers(self) -> list[dict[str, object]]:
        with self._lock:
            out: list[dict[str, object]] = []
            for name in sorted(self._configs):
                config = self._configs[name]
                runtime = self._runtimes.get(name)
                entry: dict[str, object] = {
                    **config.to_json(),
                    "suspended": name in self._suspended,
                }
                if runtime is not None:
                    entry.update(runtime.describe())
                else:
                    entry.update({"state": "inactive", "pending_nodes": [], "firings": 0})
                out.append(entry)
            return out

    def _require(self, name: str) -> TriggerConfig:
        try:
            return self._configs[name]
        except KeyError:
            raise UnknownTriggerError(name) from None

    # Runtimes

    def _new_timer_factory(self) -> None:
        if self._timer_factory_provider is not None:
            self._term_timer_factory = self._timer_factory_provider()
            return
        self._scheduler = DebounceScheduler(name=f"trigger-scheduler-{self._term}")
        self._scheduler.start()
        self._term_timer_factory = self._scheduler

    def _start_runtime(self, config: TriggerConfig) -> None:
        if self._term_timer_factory is None:
            raise RuntimeError("No leadership term is active")
        try:
            actions = load_actions(config.actions)
        except ActionLoadError:
            logger.exception("Trigger not started", extra={"trigger": config.name})
            return

        runtime = TriggerRuntime(
            config,
            marker_store=self._marker_store,
            executor=self._executor,
            actions=actions,
            timer_factory=self._term_timer_factory,
        )
        self._runtimes[config.name] = runtime
        if config.name in self._suspended:
            runtime.suspend()
        try:
            runtime.recover()
        except MarkerStoreError:
            logger.exception("Marker recovery failed", extra={"trigger": config.name})

    def _purge_orphan_markers(self) -> None:
        owned = {c.event_type for c in self._configs.values() if c.enabled}
        for event_type in TriggerEventType:
            if event_type not in owned:
                self._delete_markers(event_type)

    def _delete_markers(self, event_type: TriggerEventType) -> None:
        try:
            orphans = self._marker_store.list_markers(event_type)
            for node in sorted(orphans):
                self._marker_store.delete_marker(event_type, node)
        except MarkerStoreError:
            logger.exception("Orphan marker cleanup failed", extra={"event_type": event_type.value})
            return
        if orphans:
            logger.info(
                "Deleted orphan markers",
                extra={"event_type": event_type.value, "node_names": sorted(orphans)},
            )

    # Routing

    def _on_live_nodes_change(
        self, old_live_nodes: frozenset[str], new_live_nodes: frozenset[str]
    ) -> None:
        # Runs on the watcher's thread; must not wait on the overseer lock.
        delta = _Delta(old=old_live_nodes, new=new_live_nodes, detected_at=self._clock())
        if self._worker is None:
            self._route(delta)
        else:
            self._queue.put(delta)

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                return
            if isinstance(item, _Flush):
                item.done.set()
                continue
            try:
                if isinstance(item, _Delta):
                    self._route(item)
            except Exception:
                logger.exception("Routing membership change failed")

    def _route(self, delta: _Delta) -> None:
        change = compute_delta(delta.old, delta.new)
        if change.empty:
            return
        with self._lock:
            if self._closed:
                return
            if not self._leader:
                self._buffer(change.lost, change.added, delta.detected_at)
                return
            for runtime in list(self._runtimes.values()):
                nodes = change.lost if runtime.event_type is TriggerEventType.LOST else change.added
                if not nodes:
                    continue
                try:
                    runtime.on_nodes(nodes, detected_at=delta.detected_at)
                except Exception:
                    logger.exception("Trigger runtime failed", extra={"trigger": runtime.name})

    def _buffer(self, lost: frozenset[str], added: frozenset[str], detected_at: float) -> None:
        for event_type, nodes in (
            (TriggerEventType.LOST, lost),
            (TriggerEventType.ADDED, added),
        ):
            for node in nodes:
                self._unrouted[_OPPOSITE[event_type]].pop(node, None)
                self._unrouted[event_type].setdefault(node, detected_at)
        logger.debug(
            "Buffered membership change while not leader",
            extra={"lost": sorted(lost), "added": sorted(added)},
        )

    def _route_unrouted(self) -> None:
        horizon = self._clock() - self._settings.follower_buffer_seconds
        for runtime in list(self._runtimes.values()):
            buffered = self._unrouted[runtime.event_type]
            fresh = {node: ts for node, ts in buffered.items() if ts >= horizon}
            # Oldest first, so the batch timestamp is the earliest detection.
            for ts in sorted(set(fresh.values())):
                nodes = [node for node, t in fresh.items() if t == ts]
                try:
                    runtime.on_nodes(nodes, detected_at=ts)
                except Exception:
                    logger.exception("Trigger runtime failed", extra={"trigger": runtime.name})
            if fresh:
                logger.info(
                    "Routed membership changes seen before acquisition",
                    extra={"trigger": runtime.name, "node_names": sorted(fresh)},
                )
        for buffered in self._unrouted.values():
            buffered.clear()
