"""Serialized execution of trigger action chains.

One lock per executor; the overseer owns exactly one executor per process,
so no two firings (of the same or different triggers) ever overlap. The lock
is only ever tried, never waited on: finding it held means the sequencing
guarantee was broken somewhere, and the firing is rejected instead of queued.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from enum import Enum

from membership_triggers.actions.base import ActionContext, TriggerAction
from membership_triggers.triggers.events import TriggerEvent

logger = logging.getLogger(__name__)


class FiringOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    # An action raised; the rest of the chain was skipped. Not retried.
    FAILED = "failed"
    # Another firing held the lock; nothing ran.
    REJECTED = "rejected"

    @property
    def consumed(self) -> bool:
        return self is not FiringOutcome.REJECTED


class ActionExecutor:
    def __init__(self) -> None:
        self._lock = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def fire(self, event: TriggerEvent, actions: Sequence[TriggerAction]) -> FiringOutcome:
        if not self._lock.acquire(blocking=False):
            logger.error(
                "Concurrent firing rejected; actions must never run concurrently",
                extra={"trigger": event.trigger_name, "event_id": event.id},
            )
            return FiringOutcome.REJECTED

        try:
            context = ActionContext(event=event)
            for action in actions:
                try:
                    result = action.process(event, context)
                except Exception:
                    logger.exception(
                        "Trigger action failed; skipping the rest of the chain",
                        extra={
                            "trigger": event.trigger_name,
                            "event_id": event.id,
                            "action": action.name,
                        },
                    )
                    return FiringOutcome.FAILED
                context.properties[action.name] = result

            logger.info(
                "Trigger fired",
                extra={
                    "trigger": event.trigger_name,
                    "event_id": event.id,
                    "event_type": event.event_type.value,
                    "node_names": sorted(event.node_names),
                },
            )
            return FiringOutcome.SUCCEEDED
        finally:
            self._lock.release()
