"""Per-trigger debounce state machine.

A runtime accumulates node names for one enabled trigger. Every arrival
writes a durable marker first and only then (re)arms the debounce timer, so a
crash between the two still leaves something for the next leader to recover.
When the timer expires the accumulated set is fired through the executor; on a
consumed outcome the markers are deleted.

Locking: the runtime lock guards in-memory state only. Marker I/O and action
execution happen outside it.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable, Sequence
from typing import Protocol

from membership_triggers.actions.base import TriggerAction
from membership_triggers.actions.executor import ActionExecutor, FiringOutcome
from membership_triggers.errors import MarkerStoreError
from membership_triggers.markers.store import NodeMarkerStore
from membership_triggers.triggers.config import TriggerConfig
from membership_triggers.triggers.events import TriggerEvent, TriggerEventType
from membership_triggers.triggers.state_machine import TriggerState, transition

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], TimerHandle]


def thread_timer(delay: float, callback: Callable[[], None]) -> TimerHandle:
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.name = "trigger-debounce"
    return timer


class TriggerRuntime:
    def __init__(
        self,
        config: TriggerConfig,
        *,
        marker_store: NodeMarkerStore,
        executor: ActionExecutor,
        actions: Sequence[TriggerAction],
        timer_factory: TimerFactory = thread_timer,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config
        self._marker_store = marker_store
        self._executor = executor
        self._actions = list(actions)
        self._timer_factory = timer_factory
        self._clock = clock

        self._lock = threading.RLock()
        self._state = TriggerState.IDLE
        # node name -> first detection time
        self._pending: dict[str, float] = {}
        self._firing = False
        # Nodes re-detected while a firing that already includes them is running.
        self._rearrived: set[str] = set()
        self._timer: TimerHandle | None = None
        self._timer_generation = 0
        self._firings = 0

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def event_type(self) -> TriggerEventType:
        return self.config.event_type

    @property
    def state(self) -> TriggerState:
        with self._lock:
            return self._state

    @property
    def pending_nodes(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._pending)

    @property
    def firings(self) -> int:
        with self._lock:
            return self._firings

    def describe(self) -> dict[str, object]:
        with self._lock:
            return {
                "state": self._state.value,
                "pending_nodes": sorted(self._pending),
                "firings": self._firings,
            }

    def recover(self) -> set[str]:
        """Adopt outstanding markers of this trigger's event type.

        Called once on a freshly built runtime when leadership is acquired (or
        the trigger is reconfigured). Returns the recovered node names.
        """

        markers = self._marker_store.read_markers(self.event_type)
        now = self._clock()
        with self._lock:
            if self._state is TriggerState.CLOSED:
                return set()
            for marker in markers:
                ts = marker.timestamp if marker.timestamp is not None else now
                self._pending.setdefault(marker.node_id, ts)
            if self._pending and self._state is TriggerState.IDLE:
                self._arm_locked()
        recovered = {m.node_id for m in markers}
        if recovered:
            logger.info(
                "Recovered pending nodes from markers",
                extra={"trigger": self.name, "node_names": sorted(recovered)},
            )
        return recovered

    def on_nodes(self, nodes: Iterable[str], *, detected_at: float | None = None) -> None:
        """Accept a batch of nodes matching this trigger's event type.

        `detected_at` overrides the detection time recorded for the batch.
        """

        batch = sorted(set(nodes))
        if not batch:
            return
        with self._lock:
            if self._state in {TriggerState.SUSPENDED, TriggerState.CLOSED}:
                logger.debug(
                    "Ignoring nodes for inactive trigger",
                    extra={"trigger": self.name, "state": self._state.value},
                )
                return

        now = detected_at if detected_at is not None else self._clock()
        created: list[str] = []
        for node in batch:
            try:
                if self._marker_store.write_marker(self.event_type, node, timestamp=now):
                    created.append(node)
            except MarkerStoreError:
                # Still fire in this term; only crash recovery is lost for it.
                logger.exception(
                    "Could not persist node marker",
                    extra={"trigger": self.name, "node_id": node},
                )

        with self._lock:
            state = self._state
            if state is TriggerState.SUSPENDED:
                # Suspended while the markers were written; undo this batch's markers.
                stale = [n for n in created if n not in self._pending]
            elif state is TriggerState.CLOSED:
                return
            else:
                stale = []
                for node in batch:
                    self._pending.setdefault(node, now)
                    if self._firing:
                        self._rearrived.add(node)
                if state in {TriggerState.IDLE, TriggerState.PENDING}:
                    self._arm_locked()

        if state is TriggerState.SUSPENDED:
            for node in stale:
                try:
                    self._marker_store.delete_marker(self.event_type, node)
                except MarkerStoreError:
                    logger.exception(
                        "Could not delete marker of suspended trigger",
                        extra={"trigger": self.name, "node_id": node},
                    )
            return

        logger.debug(
            "Nodes accumulated",
            extra={"trigger": self.name, "node_names": batch},
        )

    def suspend(self) -> None:
        with self._lock:
            if self._state in {TriggerState.SUSPENDED, TriggerState.CLOSED}:
                return
            self._cancel_timer_locked()
            self._state = transition(current=self._state, to=TriggerState.SUSPENDED)
        logger.info("Trigger suspended", extra={"trigger": self.name})

    def resume(self) -> None:
        with self._lock:
            if self._state is not TriggerState.SUSPENDED:
                return
            if self._firing:
                self._state = transition(current=self._state, to=TriggerState.FIRED)
            elif self._pending:
                self._arm_locked()
            else:
                self._state = transition(current=self._state, to=TriggerState.IDLE)
        logger.info("Trigger resumed", extra={"trigger": self.name})

    def close(self, *, delete_markers: bool = False) -> None:
        """Stop the runtime for good.

        Pending nodes are dropped from memory; their markers stay unless
        `delete_markers` is set.
        """

        with self._lock:
            if self._state is TriggerState.CLOSED:
                return
            self._cancel_timer_locked()
            self._state = transition(current=self._state, to=TriggerState.CLOSED)
            dropped = set(self._pending)
            self._pending.clear()
            # _rearrived stays: an in-flight firing must not consume those markers.
            firing = self._firing

        if not firing:
            self._close_actions()

        if delete_markers:
            try:
                for node in sorted(dropped | self._marker_store.list_markers(self.event_type)):
                    self._marker_store.delete_marker(self.event_type, node)
            except MarkerStoreError:
                logger.exception("Could not delete markers on close", extra={"trigger": self.name})

        logger.info(
            "Trigger runtime closed",
            extra={"trigger": self.name, "dropped_nodes": sorted(dropped)},
        )

    # Debounce timer

    def _arm_locked(self) -> None:
        self._cancel_timer_locked()
        self._state = transition(current=self._state, to=TriggerState.PENDING)
        self._timer_generation += 1
        generation = self._timer_generation
        self._timer = self._timer_factory(self.config.wait_for, lambda: self._on_timer(generation))
        self._timer.start()

    def _cancel_timer_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        # Invalidates a callback that already started but has not taken the lock.
        self._timer_generation += 1

    def _on_timer(self, generation: int) -> None:
        with self._lock:
            if generation != self._timer_generation or self._state is not TriggerState.PENDING:
                return
            self._timer = None
            if not self._pending:
                self._state = transition(current=self._state, to=TriggerState.IDLE)
                return
            nodes = frozenset(self._pending)
            event = TriggerEvent(
                trigger_name=self.name,
                event_type=self.event_type,
                node_names=nodes,
                timestamp=min(self._pending[n] for n in nodes),
            )
            self._state = transition(current=self._state, to=TriggerState.FIRED)
            self._firing = True
            self._rearrived.clear()

        outcome = FiringOutcome.REJECTED
        try:
            outcome = self._executor.fire(event, self._actions)
        finally:
            self._complete(event, outcome)

    def _complete(self, event: TriggerEvent, outcome: FiringOutcome) -> None:
        with self._lock:
            self._firing = False
            consumed: frozenset[str] = frozenset()
            if outcome.consumed:
                consumed = event.node_names - self._rearrived
                for node in consumed:
                    self._pending.pop(node, None)
                self._firings += 1
            self._rearrived.clear()

            closed = self._state is TriggerState.CLOSED
            if self._state is TriggerState.FIRED:
                if self._pending:
                    self._arm_locked()
                else:
                    self._state = transition(current=self._state, to=TriggerState.IDLE)

        if closed:
            self._close_actions()

        for node in sorted(consumed):
            try:
                self._marker_store.delete_marker(self.event_type, node)
            except MarkerStoreError:
                logger.exception(
                    "Could not delete consumed marker",
                    extra={"trigger": self.name, "node_id": node},
                )

        if outcome is FiringOutcome.REJECTED:
            logger.warning(
                "Firing rejected; nodes stay pending",
                extra={"trigger": self.name, "node_names": sorted(event.node_names)},
            )

    def _close_actions(self) -> None:
        for action in self._actions:
            try:
                action.close()
            except Exception:
                logger.exception(
                    "Action close failed", extra={"trigger": self.name, "action": action.name}
                )
