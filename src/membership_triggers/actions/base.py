"""Abstract base class for trigger actions."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from membership_triggers.triggers.events import TriggerEvent


@dataclass
class ActionContext:
    """Scratch space shared by the actions of one firing.

    Created by the executor per firing and discarded afterwards. Each action's
    return value is recorded under its name in `properties`.
    """

    event: TriggerEvent
    properties: dict[str, Any] = field(default_factory=dict)


class TriggerAction(ABC):
    """Abstract base class for trigger actions.

    Implementations are constructed without arguments, then `init` is called
    exactly once with the action's configuration. `process` runs once per
    firing under the executor's global lock, so it must not block on slow
    network work.
    """

    def __init__(self) -> None:
        self.args: dict[str, str] = {}
        self.name: str = type(self).__name__

    def init(self, args: dict[str, str]) -> None:
        """Receive configuration.

        Args:
            args: String arguments from the action config, including `name`.
        """
        self.args = dict(args)
        self.name = args.get("name", self.name)

    @abstractmethod
    def process(self, event: TriggerEvent, context: ActionContext) -> Any:
        """Handle one firing.

        Args:
            event: The fired trigger event.
            context: Per-firing scratch space.

        Returns:
            Anything; recorded in `context.properties` under the action name.
        """

    def close(self) -> None:
        """Release resources when the owning trigger runtime is closed."""
