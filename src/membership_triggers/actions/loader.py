"""Resolve action implementations from their configured class path."""

from __future__ import annotations

import importlib
import logging

from membership_triggers.actions.base import TriggerAction
from membership_triggers.errors import ActionLoadError
from membership_triggers.triggers.config import ActionConfig

logger = logging.getLogger(__name__)


def resolve_action_class(path: str) -> type[TriggerAction]:
    """Import `package.module:Name` or `package.module.Name`."""

    if ":" in path:
        module_name, _, attr = path.partition(":")
    else:
        module_name, _, attr = path.rpartition(".")
    if not module_name or not attr:
        raise ActionLoadError(f"Invalid action class path: {path!r}")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ActionLoadError(f"Cannot import action module {module_name!r}: {e}") from e

    cls = getattr(module, attr, None)
    if not isinstance(cls, type) or not issubclass(cls, TriggerAction):
        raise ActionLoadError(f"{path!r} is not a TriggerAction subclass")
    return cls


def load_action(config: ActionConfig) -> TriggerAction:
    """Instantiate and `init` one action."""

    cls = resolve_action_class(config.implementation)
    try:
        action = cls()
        action.init(config.init_args())
    except Exception as e:
        raise ActionLoadError(f"Failed to initialise action {config.name!r}: {e}") from e
    logger.debug("Action loaded", extra={"action": config.name, "class": config.implementation})
    return action


def load_actions(configs: list[ActionConfig]) -> list[TriggerAction]:
    actions: list[TriggerAction] = []
    try:
        for config in configs:
            actions.append(load_action(config))
    except ActionLoadError:
        for action in actions:
            action.close()
        raise
    return actions
