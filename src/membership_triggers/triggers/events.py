from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum


class TriggerEventType(str, Enum):
    ADDED = "nodeAdded"
    LOST = "nodeLost"


@dataclass(frozen=True, slots=True)
class TriggerEvent:
    """A firing of one trigger.

    Built when a debounce window closes and handed to the action chain by
    value. `timestamp` is the earliest detection time among `node_names`.
    """

    trigger_name: str
    event_type: TriggerEventType
    node_names: frozenset[str]
    timestamp: float = field(default_factory=time.time)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)  # noqa: A003

    def to_json(self) -> dict[str, object]:
        return {
            "id": self.id,
            "trigger_name": self.trigger_name,
            "event_type": self.event_type.value,
            "node_names": sorted(self.node_names),
            "timestamp": self.timestamp,
        }
