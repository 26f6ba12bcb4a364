"""Unit tests for the local coordination clients."""

from __future__ import annotations

from pathlib import Path

import pytest

from membership_triggers.coordination.client import (
    CoordinationError,
    FileCoordinationClient,
    InMemoryCoordinationClient,
    NodeExistsError,
    NoNodeError,
)


@pytest.fixture(params=["memory", "file"])
def any_client(request: pytest.FixtureRequest, tmp_path: Path) -> InMemoryCoordinationClient:
    if request.param == "file":
        return FileCoordinationClient(tmp_path / "coord")
    return InMemoryCoordinationClient()


def test_create_makes_parents_and_lists_children(any_client: InMemoryCoordinationClient) -> None:
    any_client.create("/autoscaling/nodeLost/a", b"1")
    any_client.create("/autoscaling/nodeLost/b", b"2")

    assert any_client.exists("/autoscaling")
    assert any_client.get_children("/autoscaling") == ["nodeLost"]
    assert any_client.get_children("/autoscaling/nodeLost") == ["a", "b"]
    assert any_client.get_data("/autoscaling/nodeLost/b") == b"2"


def test_create_existing_and_delete_missing_fail(any_client: InMemoryCoordinationClient) -> None:
    any_client.create("/x/y")
    with pytest.raises(NodeExistsError):
        any_client.create("/x/y")

    any_client.delete("/x/y")
    assert not any_client.exists("/x/y")
    with pytest.raises(NoNodeError):
        any_client.delete("/x/y")
    with pytest.raises(NoNodeError):
        any_client.get_children("/missing")


def test_delete_refuses_nodes_with_children(any_client: InMemoryCoordinationClient) -> None:
    any_client.create("/p/c")
    with pytest.raises(CoordinationError):
        any_client.delete("/p")


def test_relative_paths_are_rejected(any_client: InMemoryCoordinationClient) -> None:
    with pytest.raises(ValueError):
        any_client.create("relative/path")
    with pytest.raises(ValueError):
        any_client.exists("/a/../b")


def test_live_node_watchers_get_new_set_only_on_change() -> None:
    client = InMemoryCoordinationClient(live_nodes={"a"})
    seen: list[frozenset[str]] = []
    client.watch_live_nodes(seen.append)

    client.add_live_node("b")
    client.add_live_node("b")
    client.remove_live_node("a")

    assert seen == [frozenset({"a", "b"}), frozenset({"b"})]
    assert client.get_live_nodes() == frozenset({"b"})


def test_file_client_persists_across_instances(tmp_path: Path) -> None:
    root = tmp_path / "coord"
    FileCoordinationClient(root).create("/autoscaling/nodeAdded/n1", b"payload")

    reopened = FileCoordinationClient(root)
    assert reopened.exists("/autoscaling/nodeAdded/n1")
    assert reopened.get_data("/autoscaling/nodeAdded/n1") == b"payload"
