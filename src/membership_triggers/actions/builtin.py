"""Actions shipped with the package."""

from __future__ import annotations

import logging

from membership_triggers.actions.base import ActionContext, TriggerAction
from membership_triggers.triggers.events import TriggerEvent

logger = logging.getLogger(__name__)


class LogTriggerEventAction(TriggerAction):
    """Log every firing. Accepts an optional `level` arg (default INFO)."""

    def init(self, args: dict[str, str]) -> None:
        super().init(args)
        level_name = args.get("level", "INFO").upper()
        level = logging.getLevelName(level_name)
        if not isinstance(level, int):
            raise ValueError(f"Unknown log level: {level_name}")
        self.level = level

    def process(self, event: TriggerEvent, context: ActionContext) -> dict[str, object]:
        logger.log(
            self.level,
            "Trigger %s fired for %d node(s)",
            event.trigger_name,
            len(event.node_names),
            extra={"event": event.to_json()},
        )
        return event.to_json()
