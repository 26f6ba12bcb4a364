"""Coordination-service client surface."""

from membership_triggers.coordination.client import (
    CoordinationClient,
    CoordinationError,
    FileCoordinationClient,
    InMemoryCoordinationClient,
    NodeExistsError,
    NoNodeError,
    TransientCoordinationError,
)

__all__ = [
    "CoordinationClient",
    "CoordinationError",
    "FileCoordinationClient",
    "InMemoryCoordinationClient",
    "NoNodeError",
    "NodeExistsError",
    "TransientCoordinationError",
]
