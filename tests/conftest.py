"""Test configuration and fixtures."""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterator

import pytest

from membership_triggers.actions.base import ActionContext, TriggerAction
from membership_triggers.actions.executor import ActionExecutor
from membership_triggers.coordination.client import InMemoryCoordinationClient
from membership_triggers.markers.store import NodeMarkerStore
from membership_triggers.triggers.events import TriggerEvent

RECORDING_ACTION = "conftest:RecordingAction"
FAILING_ACTION = "conftest:FailingAction"


class RecordingAction(TriggerAction):
    """Records events and flags any overlapping `process` calls."""

    events: list[TriggerEvent] = []
    inits: list[dict[str, str]] = []
    closed: list[str] = []
    overlaps = 0
    _running = threading.Lock()

    @classmethod
    def reset(cls) -> None:
        cls.events = []
        cls.inits = []
        cls.closed = []
        cls.overlaps = 0

    def init(self, args: dict[str, str]) -> None:
        super().init(args)
        type(self).inits.append(dict(args))

    def process(self, event: TriggerEvent, context: ActionContext) -> str:
        cls = type(self)
        if not cls._running.acquire(blocking=False):
            cls.overlaps += 1
            return "overlap"
        try:
            cls.events.append(event)
            return "recorded"
        finally:
            cls._running.release()

    def close(self) -> None:
        type(self).closed.append(self.name)


class FailingAction(TriggerAction):
    def process(self, event: TriggerEvent, context: ActionContext) -> None:
        raise RuntimeError("boom")


class ManualTimer:
    def __init__(self, delay: float, callback: Callable[[], None]) -> None:
        self.delay = delay
        self.callback = callback
        self.started = False
        self.cancelled = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def active(self) -> bool:
        return self.started and not self.cancelled


class ManualTimers:
    """Timer factory whose timers only fire when the test says so."""

    def __init__(self) -> None:
        self.created: list[ManualTimer] = []
        self.on_start: Callable[[ManualTimer], None] | None = None

    def __call__(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(delay, callback)
        if self.on_start is not None:
            hook = self.on_start
            original_start = timer.start

            def _start() -> None:
                hook(timer)
                original_start()

            timer.start = _start  # type: ignore[method-assign]
        self.created.append(timer)
        return timer

    @property
    def active(self) -> list[ManualTimer]:
        return [t for t in self.created if t.active]

    def fire_all(self) -> int:
        due = self.active
        for timer in due:
            timer.cancelled = True
            timer.callback()
        return len(due)


@pytest.fixture(autouse=True)
def reset_recording_action() -> Iterator[None]:
    RecordingAction.reset()
    yield
    RecordingAction.reset()


@pytest.fixture
def client() -> InMemoryCoordinationClient:
    return InMemoryCoordinationClient(live_nodes={"node1:8983_solr", "node2:8983_solr"})


@pytest.fixture
def marker_store(client: InMemoryCoordinationClient) -> NodeMarkerStore:
    return NodeMarkerStore(client, retry_backoff_seconds=0.0, sleep=lambda _s: None)


@pytest.fixture
def executor() -> ActionExecutor:
    return ActionExecutor()


@pytest.fixture
def timers() -> ManualTimers:
    return ManualTimers()
