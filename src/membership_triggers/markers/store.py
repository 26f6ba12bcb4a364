"""Durable node markers kept in the coordination service.

A marker records a detected-but-unprocessed node event so that a newly
elected leader can finish the work of one that died. Markers live at::

    <marker_root>/<event type wire name>/<percent-encoded node id>

Every operation is idempotent and retried on transient coordination errors,
since a crashing caller may be replaced by a leader repeating the same call.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from typing import TypeVar
from urllib.parse import quote, unquote

from pydantic import BaseModel
from tenacity import (
    RetryCallState,
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from membership_triggers.config import OverseerSettings
from membership_triggers.coordination.client import (
    CoordinationClient,
    NodeExistsError,
    NoNodeError,
    TransientCoordinationError,
)
from membership_triggers.errors import MarkerStoreError
from membership_triggers.triggers.events import TriggerEventType

logger = logging.getLogger(__name__)

T = TypeVar("T")


class NodeMarker(BaseModel):
    node_id: str
    event_type: TriggerEventType
    timestamp: float | None = None


class NodeMarkerStore:
    def __init__(
        self,
        client: CoordinationClient,
        *,
        root: str = "/autoscaling",
        retry_attempts: int = 3,
        retry_backoff_seconds: float = 0.1,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if retry_attempts < 1:
            raise ValueError("retry_attempts must be at least 1")
        self._client = client
        self._root = "/" + root.strip("/")
        self._retry_attempts = retry_attempts
        self._retry_backoff_seconds = retry_backoff_seconds
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls, client: CoordinationClient, settings: OverseerSettings
    ) -> NodeMarkerStore:
        return cls(
            client,
            root=settings.marker_root,
            retry_attempts=settings.marker_retry_attempts,
            retry_backoff_seconds=settings.marker_retry_backoff_seconds,
        )

    @property
    def root(self) -> str:
        return self._root

    def event_path(self, event_type: TriggerEventType) -> str:
        return f"{self._root}/{event_type.value}"

    def marker_path(self, event_type: TriggerEventType, node_id: str) -> str:
        if not node_id:
            raise ValueError("node_id must not be empty")
        return f"{self.event_path(event_type)}/{quote(node_id, safe='')}"

    def write_marker(
        self, event_type: TriggerEventType, node_id: str, *, timestamp: float | None = None
    ) -> bool:
        """Create the marker unless it already exists.

        Returns True when this call created it. An existing marker keeps its
        original payload, so the first detection time wins.
        """

        path = self.marker_path(event_type, node_id)
        payload = json.dumps({"timestamp": timestamp if timestamp is not None else time.time()})

        def _create() -> bool:
            try:
                self._client.create(path, payload.encode("utf-8"))
            except NodeExistsError:
                return False
            return True

        created = self._retrying("write", path, _create)
        logger.debug(
            "Marker written" if created else "Marker already present",
            extra={"event_type": event_type.value, "node_id": node_id, "path": path},
        )
        return created

    def marker_exists(self, event_type: TriggerEventType, node_id: str) -> bool:
        path = self.marker_path(event_type, node_id)
        return self._retrying("exists", path, lambda: self._client.exists(path))

    def read_marker(self, event_type: TriggerEventType, node_id: str) -> NodeMarker | None:
        path = self.marker_path(event_type, node_id)

        def _read() -> bytes | None:
            try:
                return self._client.get_data(path)
            except NoNodeError:
                return None

        raw = self._retrying("read", path, _read)
        if raw is None:
            return None
        return NodeMarker(node_id=node_id, event_type=event_type, timestamp=_parse_timestamp(raw))

    def delete_marker(self, event_type: TriggerEventType, node_id: str) -> bool:
        """Remove the marker. Returns False if it was already gone."""

        path = self.marker_path(event_type, node_id)

        def _delete() -> bool:
            try:
                self._client.delete(path)
            except NoNodeError:
                return False
            return True

        deleted = self._retrying("delete", path, _delete)
        if deleted:
            logger.debug(
                "Marker deleted",
                extra={"event_type": event_type.value, "node_id": node_id, "path": path},
            )
        return deleted

    def list_markers(self, event_type: TriggerEventType) -> set[str]:
        path = self.event_path(event_type)

        def _list() -> list[str]:
            try:
                return self._client.get_children(path)
            except NoNodeError:
                return []

        return {unquote(child) for child in self._retrying("list", path, _list)}

    def read_markers(self, event_type: TriggerEventType) -> list[NodeMarker]:
        markers: list[NodeMarker] = []
        for node_id in sorted(self.list_markers(event_type)):
            marker = self.read_marker(event_type, node_id)
            # Deleted between list and read.
            if marker is not None:
                markers.append(marker)
        return markers

    def _retrying(self, operation: str, path: str, fn: Callable[[], T]) -> T:
        def _log_retry(retry_state: RetryCallState) -> None:
            error = retry_state.outcome.exception() if retry_state.outcome else None
            logger.warning(
                "Transient coordination error; retrying marker %s",
                operation,
                extra={"path": path, "attempt": retry_state.attempt_number, "error": str(error)},
            )

        retrying = Retrying(
            stop=stop_after_attempt(self._retry_attempts),
            wait=wait_incrementing(
                start=self._retry_backoff_seconds, increment=self._retry_backoff_seconds
            ),
            retry=retry_if_exception_type(TransientCoordinationError),
            before_sleep=_log_retry,
            sleep=self._sleep,
            reraise=False,
        )
        try:
            return retrying(fn)
        except RetryError as e:
            raise MarkerStoreError(operation, path, e.last_attempt.exception()) from e


def _parse_timestamp(raw: bytes) -> float | None:
    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None
    if not isinstance(data, dict):
        return None
    ts = data.get("timestamp")
    if isinstance(ts, (int, float)) and not isinstance(ts, bool):
        return float(ts)
    return None
