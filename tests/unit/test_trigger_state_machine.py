"""Unit tests for the trigger state machine.

Illegal transitions must fail loudly.
"""

from __future__ import annotations

import pytest

from membership_triggers.errors import IllegalTransitionError
from membership_triggers.triggers.state_machine import TriggerState, transition


def test_debounce_cycle_is_allowed() -> None:
    state = TriggerState.IDLE
    for to in (TriggerState.PENDING, TriggerState.PENDING, TriggerState.FIRED, TriggerState.IDLE):
        state = transition(current=state, to=to)
    assert state is TriggerState.IDLE


@pytest.mark.parametrize(
    ("current", "to"),
    [
        (TriggerState.IDLE, TriggerState.FIRED),
        (TriggerState.IDLE, TriggerState.IDLE),
        (TriggerState.SUSPENDED, TriggerState.SUSPENDED),
        (TriggerState.CLOSED, TriggerState.IDLE),
        (TriggerState.CLOSED, TriggerState.PENDING),
    ],
)
def test_illegal_transitions_raise(current: TriggerState, to: TriggerState) -> None:
    with pytest.raises(IllegalTransitionError):
        transition(current=current, to=to)


def test_every_live_state_can_be_suspended_or_closed() -> None:
    for state in (TriggerState.IDLE, TriggerState.PENDING, TriggerState.FIRED):
        assert transition(current=state, to=TriggerState.SUSPENDED) is TriggerState.SUSPENDED
    for state in TriggerState:
        if state is not TriggerState.CLOSED:
            assert transition(current=state, to=TriggerState.CLOSED) is TriggerState.CLOSED
