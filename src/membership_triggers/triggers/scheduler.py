"""Single-threaded scheduler shared by all debounce timers of a leadership term.

Callbacks run one at a time on the scheduler thread, so firings of different
triggers are sequenced before they ever reach the executor's lock.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import threading
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)


class ScheduledCallback:
    def __init__(self, scheduler: DebounceScheduler, delay: float, callback: Callable[[], None]):
        self._scheduler = scheduler
        self._delay = delay
        self.callback = callback
        self.cancelled = False

    def start(self) -> None:
        self._scheduler.submit(self, self._delay)

    def cancel(self) -> None:
        self.cancelled = True


class DebounceScheduler:
    def __init__(
        self, *, name: str = "trigger-scheduler", clock: Callable[[], float] = time.monotonic
    ) -> None:
        self._name = name
        self._clock = clock
        self._cond = threading.Condition()
        self._queue: list[tuple[float, int, ScheduledCallback]] = []
        self._seq = itertools.count()
        self._thread: threading.Thread | None = None
        self._stopped = False

    def __call__(self, delay: float, callback: Callable[[], None]) -> ScheduledCallback:
        """Create a timer handle; usable wherever a timer factory is expected."""

        return ScheduledCallback(self, delay, callback)

    def start(self) -> None:
        with self._cond:
            if self._thread is not None:
                return
            self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
            self._thread.start()

    def submit(self, handle: ScheduledCallback, delay: float) -> None:
        with self._cond:
            if self._stopped:
                logger.debug("Scheduler stopped; dropping timer")
                return
            heapq.heappush(self._queue, (self._clock() + max(delay, 0.0), next(self._seq), handle))
            self._cond.notify()
        self.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        with self._cond:
            self._stopped = True
            for _, _, handle in self._queue:
                handle.cancel()
            self._queue.clear()
            self._cond.notify()
            thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def _run(self) -> None:
        while True:
            with self._cond:
                while not self._stopped:
                    if not self._queue:
                        self._cond.wait()
                        continue
                    deadline, _, handle = self._queue[0]
                    remaining = deadline - self._clock()
                    if remaining > 0:
                        self._cond.wait(remaining)
                        continue
                    heapq.heappop(self._queue)
                    if not handle.cancelled:
                        break
                else:
                    return
            try:
                handle.callback()
            except Exception:
                logger.exception("Scheduled callback failed")
