"""Unit tests for the shared debounce scheduler (real threads, short delays)."""

from __future__ import annotations

import threading

from membership_triggers.triggers.scheduler import DebounceScheduler


def test_callbacks_run_in_deadline_order_on_one_thread() -> None:
    scheduler = DebounceScheduler()
    order: list[str] = []
    threads: set[str] = set()
    done = threading.Event()

    def record(label: str) -> None:
        order.append(label)
        threads.add(threading.current_thread().name)
        if len(order) == 2:
            done.set()

    try:
        scheduler(0.10, lambda: record("late")).start()
        scheduler(0.01, lambda: record("early")).start()
        assert done.wait(5.0)
    finally:
        scheduler.stop()

    assert order == ["early", "late"]
    assert threads == {"trigger-scheduler"}


def test_cancelled_callback_does_not_run() -> None:
    scheduler = DebounceScheduler()
    ran: list[str] = []
    done = threading.Event()

    try:
        handle = scheduler(0.01, lambda: ran.append("cancelled"))
        handle.start()
        handle.cancel()
        scheduler(0.05, done.set).start()
        assert done.wait(5.0)
    finally:
        scheduler.stop()

    assert ran == []


def test_failing_callback_does_not_stop_scheduler() -> None:
    scheduler = DebounceScheduler()
    done = threading.Event()

    def boom() -> None:
        raise RuntimeError("boom")

    try:
        scheduler(0.0, boom).start()
        scheduler(0.02, done.set).start()
        assert done.wait(5.0)
    finally:
        scheduler.stop()


def test_stopped_scheduler_drops_new_timers() -> None:
    scheduler = DebounceScheduler()
    scheduler.stop()
    ran: list[bool] = []

    scheduler(0.0, lambda: ran.append(True)).start()

    assert ran == []
