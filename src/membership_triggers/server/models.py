"""Pydantic models for the status API."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from membership_triggers.markers.store import NodeMarker


class Health(BaseModel):
    status: str = "ok"
    leader: bool
    version: str


class ApiTrigger(BaseModel):
    name: str
    event: str
    wait_for: float = Field(alias="waitFor")
    enabled: bool
    suspended: bool
    state: str
    pending_nodes: list[str] = Field(default_factory=list)
    firings: int = 0
    actions: list[dict[str, str]] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


class ApiMarkers(BaseModel):
    event_type: str
    markers: list[NodeMarker] = Field(default_factory=list)
