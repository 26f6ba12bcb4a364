"""Exception types shared across the package."""

from __future__ import annotations


class MembershipTriggersError(Exception):
    """Base class for errors raised by this package."""


class MarkerStoreError(MembershipTriggersError):
    """A marker operation kept failing after all retries."""

    def __init__(self, operation: str, path: str, cause: BaseException | None = None) -> None:
        self.operation = operation
        self.path = path
        self.cause = cause
        message = f"Marker {operation} failed for {path}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class TriggerConflictError(MembershipTriggersError):
    """Another enabled trigger already owns the event type."""


class UnknownTriggerError(MembershipTriggersError, KeyError):
    """No trigger with the given name is configured."""


class ActionLoadError(MembershipTriggersError):
    """An action implementation could not be imported or initialised."""


class IllegalTransitionError(MembershipTriggersError, ValueError):
    """A trigger runtime was asked to make a transition it does not allow."""
