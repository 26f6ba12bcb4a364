"""Membership-driven cluster triggers.

Watches a cluster's live-node set and turns node joins/losses into debounced,
exactly-once trigger firings that survive leader failover:
- durable node markers in the coordination service
- one debounce state machine per enabled trigger
- serialized action execution
"""

__version__ = "0.1.0"

from membership_triggers.config import OverseerSettings
from membership_triggers.overseer import OverseerTriggerThread

__all__ = ["__version__", "OverseerSettings", "OverseerTriggerThread"]
