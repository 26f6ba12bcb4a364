"""Unit tests for durable node markers."""

from __future__ import annotations

import pytest

from membership_triggers.config import OverseerSettings
from membership_triggers.coordination.client import (
    InMemoryCoordinationClient,
    TransientCoordinationError,
)
from membership_triggers.errors import MarkerStoreError
from membership_triggers.markers.store import NodeMarkerStore
from membership_triggers.triggers.events import TriggerEventType

ADDED = TriggerEventType.ADDED
LOST = TriggerEventType.LOST


class FlakyClient(InMemoryCoordinationClient):
    """Fails the first `failures` persistent-node calls with a transient error."""

    def __init__(self, failures: int) -> None:
        super().__init__()
        self.failures = failures
        self.calls = 0

    def _maybe_fail(self) -> None:
        self.calls += 1
        if self.failures > 0:
            self.failures -= 1
            raise TransientCoordinationError("connection loss")

    def create(self, path: str, data: bytes = b"") -> None:
        self._maybe_fail()
        super().create(path, data)

    def delete(self, path: str) -> None:
        self._maybe_fail()
        super().delete(path)


def test_marker_path_is_derived_from_event_type_and_node(marker_store: NodeMarkerStore) -> None:
    assert marker_store.marker_path(ADDED, "n1:8983_solr") == "/autoscaling/nodeAdded/n1%3A8983_solr"
    assert marker_store.marker_path(LOST, "a/b") == "/autoscaling/nodeLost/a%2Fb"


def test_write_is_idempotent_and_first_timestamp_wins(marker_store: NodeMarkerStore) -> None:
    assert marker_store.write_marker(LOST, "n1", timestamp=100.0) is True
    assert marker_store.write_marker(LOST, "n1", timestamp=200.0) is False

    marker = marker_store.read_marker(LOST, "n1")
    assert marker is not None
    assert marker.timestamp == 100.0
    assert marker_store.marker_exists(LOST, "n1")
    assert not marker_store.marker_exists(ADDED, "n1")


def test_delete_is_a_noop_when_absent(marker_store: NodeMarkerStore) -> None:
    marker_store.write_marker(ADDED, "n1")
    assert marker_store.delete_marker(ADDED, "n1") is True
    assert marker_store.delete_marker(ADDED, "n1") is False
    assert not marker_store.marker_exists(ADDED, "n1")


def test_list_markers_decodes_node_ids(marker_store: NodeMarkerStore) -> None:
    assert marker_store.list_markers(ADDED) == set()

    marker_store.write_marker(ADDED, "host:1/solr")
    marker_store.write_marker(ADDED, "host:2/solr")
    marker_store.write_marker(LOST, "host:3/solr")

    assert marker_store.list_markers(ADDED) == {"host:1/solr", "host:2/solr"}
    assert [m.node_id for m in marker_store.read_markers(ADDED)] == ["host:1/solr", "host:2/solr"]


def test_unreadable_payload_yields_marker_without_timestamp(
    client: InMemoryCoordinationClient, marker_store: NodeMarkerStore
) -> None:
    client.create(marker_store.marker_path(LOST, "n1"), b"not json")

    marker = marker_store.read_marker(LOST, "n1")
    assert marker is not None
    assert marker.timestamp is None
    assert marker_store.read_marker(LOST, "missing") is None


def test_transient_errors_are_retried() -> None:
    client = FlakyClient(failures=2)
    sleeps: list[float] = []
    store = NodeMarkerStore(client, retry_attempts=3, retry_backoff_seconds=0.5, sleep=sleeps.append)

    assert store.write_marker(ADDED, "n1") is True
    assert client.calls == 3
    assert sleeps == [0.5, 1.0]


def test_retries_are_logged_and_non_transient_errors_propagate(
    caplog: pytest.LogCaptureFixture,
) -> None:
    client = FlakyClient(failures=1)
    store = NodeMarkerStore(client, retry_attempts=3, sleep=lambda _s: None)

    with caplog.at_level("WARNING", logger="membership_triggers.markers.store"):
        assert store.write_marker(LOST, "n1") is True
    assert [r.attempt for r in caplog.records] == [1]

    class BrokenClient(InMemoryCoordinationClient):
        def create(self, path: str, data: bytes = b"") -> None:
            raise PermissionError("read-only")

    broken = NodeMarkerStore(BrokenClient(), retry_attempts=3, sleep=lambda _s: None)
    with pytest.raises(PermissionError):
        broken.write_marker(LOST, "n1")


def test_exhausted_retries_raise_marker_store_error() -> None:
    client = FlakyClient(failures=5)
    store = NodeMarkerStore(client, retry_attempts=2, sleep=lambda _s: None)

    with pytest.raises(MarkerStoreError) as excinfo:
        store.delete_marker(LOST, "n1")

    assert excinfo.value.operation == "delete"
    assert excinfo.value.path == "/autoscaling/nodeLost/n1"
    assert isinstance(excinfo.value.cause, TransientCoordinationError)


def test_from_settings_uses_marker_root() -> None:
    settings = OverseerSettings(marker_root="cluster/markers/", marker_retry_attempts=1)
    store = NodeMarkerStore.from_settings(InMemoryCoordinationClient(), settings)

    assert store.root == "/cluster/markers"
    assert store.marker_path(ADDED, "n") == "/cluster/markers/nodeAdded/n"
