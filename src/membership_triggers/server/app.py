"""FastAPI app factory.

Endpoints are thin, read-only views over a running overseer.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException

from membership_triggers import __version__
from membership_triggers.errors import MarkerStoreError
from membership_triggers.overseer import OverseerTriggerThread
from membership_triggers.server.models import ApiMarkers, ApiTrigger, Health
from membership_triggers.triggers.events import TriggerEventType

logger = logging.getLogger(__name__)


def create_app(overseer: OverseerTriggerThread) -> FastAPI:
    app = FastAPI(
        title="Membership Triggers",
        version=__version__,
        description="Read-only status of membership triggers and pending node markers.",
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url=None,
    )
    app.state.overseer = overseer

    @app.get("/api/health", response_model=Health)
    def health() -> Health:
        return Health(leader=overseer.is_leader, version=__version__)

    @app.get("/api/triggers", response_model=list[ApiTrigger], response_model_by_alias=True)
    def list_triggers() -> list[ApiTrigger]:
        return [ApiTrigger.model_validate(t) for t in overseer.describe_triggers()]

    @app.get("/api/markers/{event_type}", response_model=ApiMarkers)
    def list_markers(event_type: str) -> ApiMarkers:
        try:
            parsed = TriggerEventType(event_type)
        except ValueError:
            raise HTTPException(status_code=404, detail=f"Unknown event type: {event_type}")
        try:
            markers = overseer.marker_store.read_markers(parsed)
        except MarkerStoreError as e:
            logger.exception("Marker listing failed", extra={"event_type": event_type})
            raise HTTPException(status_code=503, detail=str(e)) from e
        return ApiMarkers(event_type=parsed.value, markers=markers)

    return app
