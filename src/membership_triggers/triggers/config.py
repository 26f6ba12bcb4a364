"""Trigger configuration as supplied by the administrative API.

Accepts the admin wire form::

    {
      "name": "node_added_trigger",
      "event": "nodeAdded",
      "waitFor": "1s",
      "enabled": true,
      "actions": [{"name": "log", "class": "membership_triggers.actions.builtin:LogTriggerEventAction"}]
    }

as well as the snake_case field names.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from membership_triggers.triggers.events import TriggerEventType

DEFAULT_ACTION_CLASS = "membership_triggers.actions.builtin:LogTriggerEventAction"

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$")
_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(value: object) -> float:
    """Parse `1s`, `500ms`, `2m`, `1h` or a bare number of seconds."""

    if isinstance(value, bool):
        raise ValueError("Duration must be a number or a string like '1s'")
    if isinstance(value, (int, float)):
        seconds = float(value)
    elif isinstance(value, str):
        match = _DURATION_RE.match(value)
        if match is None:
            raise ValueError(f"Invalid duration: {value!r}")
        amount, unit = match.groups()
        seconds = float(amount) * _UNIT_SECONDS[unit or "s"]
    else:
        raise ValueError(f"Invalid duration: {value!r}")
    if seconds < 0:
        raise ValueError("Duration must not be negative")
    return seconds


class ActionConfig(BaseModel):
    """One step of a trigger's action chain.

    Keys other than `name` and `class` are passed to the action's `init` as
    string arguments.
    """

    name: str = Field(min_length=1)
    implementation: str = Field(default=DEFAULT_ACTION_CLASS, alias="class", min_length=1)
    args: dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    @model_validator(mode="before")
    @classmethod
    def _collect_extra_args(cls, data: object) -> object:
        if not isinstance(data, dict):
            return data
        known = {"name", "class", "implementation", "args"}
        extra = {k: v for k, v in data.items() if k not in known}
        if not extra:
            return data
        args = dict(data.get("args") or {})
        args.update({k: str(v) for k, v in extra.items()})
        return {k: v for k, v in data.items() if k in known} | {"args": args}

    def init_args(self) -> dict[str, str]:
        """Arguments handed to `init`, including the action's own name."""

        return {"name": self.name, "class": self.implementation, **self.args}


def _default_actions() -> list[ActionConfig]:
    return [ActionConfig(name="log", implementation=DEFAULT_ACTION_CLASS)]


class TriggerConfig(BaseModel):
    name: str = Field(min_length=1)
    event_type: TriggerEventType = Field(alias="event")
    wait_for: float = Field(default=1.0, alias="waitFor")
    enabled: bool = True
    actions: list[ActionConfig] = Field(default_factory=_default_actions)

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("Trigger name must not be blank")
        return stripped

    @field_validator("wait_for", mode="before")
    @classmethod
    def _parse_wait_for(cls, value: object) -> float:
        return parse_duration(value)

    @model_validator(mode="after")
    def _unique_action_names(self) -> TriggerConfig:
        seen: set[str] = set()
        for action in self.actions:
            if action.name in seen:
                raise ValueError(f"Duplicate action name in trigger {self.name!r}: {action.name}")
            seen.add(action.name)
        return self

    def to_json(self) -> dict[str, object]:
        return {
            "name": self.name,
            "event": self.event_type.value,
            "waitFor": self.wait_for,
            "enabled": self.enabled,
            "actions": [
                {"name": a.name, "class": a.implementation, **a.args} for a in self.actions
            ],
        }
