"""Trigger actions and their serialized executor."""

from membership_triggers.actions.base import ActionContext, TriggerAction
from membership_triggers.actions.executor import ActionExecutor, FiringOutcome
from membership_triggers.actions.loader import load_action, load_actions, resolve_action_class

__all__ = [
    "ActionContext",
    "ActionExecutor",
    "FiringOutcome",
    "TriggerAction",
    "load_action",
    "load_actions",
    "resolve_action_class",
]
