"""Trigger domain concepts.

- Trigger configuration (what the admin API hands us)
- Trigger events (what a firing carries)
- The per-trigger debounce state machine and its runtime
"""

from membership_triggers.triggers.config import ActionConfig, TriggerConfig, parse_duration
from membership_triggers.triggers.events import TriggerEvent, TriggerEventType
from membership_triggers.triggers.state_machine import TriggerState

__all__ = [
    "ActionConfig",
    "TriggerConfig",
    "TriggerEvent",
    "TriggerEventType",
    "TriggerState",
    "parse_duration",
]
