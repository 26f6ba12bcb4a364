from __future__ import annotations

from enum import Enum

from membership_triggers.errors import IllegalTransitionError


class TriggerState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    FIRED = "fired"
    SUSPENDED = "suspended"
    CLOSED = "closed"


ALLOWED_TRANSITIONS: dict[TriggerState, set[TriggerState]] = {
    TriggerState.IDLE: {TriggerState.PENDING, TriggerState.SUSPENDED, TriggerState.CLOSED},
    TriggerState.PENDING: {
        # Re-arming the debounce timer stays in PENDING.
        TriggerState.PENDING,
        TriggerState.FIRED,
        TriggerState.SUSPENDED,
        TriggerState.CLOSED,
    },
    TriggerState.FIRED: {
        TriggerState.IDLE,
        TriggerState.PENDING,
        TriggerState.SUSPENDED,
        TriggerState.CLOSED,
    },
    TriggerState.SUSPENDED: {
        TriggerState.IDLE,
        TriggerState.PENDING,
        # Resumed while a firing started before the suspension is still running.
        TriggerState.FIRED,
        TriggerState.CLOSED,
    },
    TriggerState.CLOSED: set(),
}


def transition(*, current: TriggerState, to: TriggerState) -> TriggerState:
    allowed = ALLOWED_TRANSITIONS.get(current, set())
    if to not in allowed:
        raise IllegalTransitionError(f"Illegal transition: {current.value} -> {to.value}")
    return to
