"""Operator CLI for inspecting and clearing node markers.

Works against a file-backed coordination root, the same directory a
single-host overseer writes its markers to.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from membership_triggers import __version__
from membership_triggers.config import OverseerSettings
from membership_triggers.coordination.client import FileCoordinationClient
from membership_triggers.errors import MarkerStoreError
from membership_triggers.logging import configure_logging
from membership_triggers.markers.store import NodeMarkerStore
from membership_triggers.triggers.events import TriggerEventType

logger = logging.getLogger(__name__)

_EVENT_CHOICES = [t.value for t in TriggerEventType]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="membership-triggers",
        description="Inspect and clean up durable node markers",
    )
    parser.add_argument(
        "--version", action="version", version=f"membership-triggers {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    list_markers = subparsers.add_parser("list-markers", help="Print pending markers as JSON")
    list_markers.add_argument(
        "--root",
        type=Path,
        default=None,
        help="Coordination root directory (defaults to MEMBERSHIP_TRIGGERS_COORDINATION_ROOT)",
    )
    list_markers.add_argument(
        "--event",
        choices=_EVENT_CHOICES,
        default=None,
        help="Only list markers of this event type",
    )

    delete_marker = subparsers.add_parser("delete-marker", help="Delete one marker")
    delete_marker.add_argument("--root", type=Path, default=None, help="Coordination root directory")
    delete_marker.add_argument("--event", choices=_EVENT_CHOICES, required=True)
    delete_marker.add_argument("--node", required=True, help="Node identifier")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = OverseerSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    configure_logging(settings.log_level)

    root = args.root or settings.coordination_root
    if root is None:
        print(
            "No coordination root: pass --root or set MEMBERSHIP_TRIGGERS_COORDINATION_ROOT",
            file=sys.stderr,
        )
        return 2

    store = NodeMarkerStore.from_settings(FileCoordinationClient(root), settings)

    try:
        if args.command == "list-markers":
            event_types = (
                [TriggerEventType(args.event)] if args.event else list(TriggerEventType)
            )
            records = [
                marker.model_dump(mode="json")
                for event_type in event_types
                for marker in store.read_markers(event_type)
            ]
            print(json.dumps(records, indent=2, ensure_ascii=False))
            return 0

        if args.command == "delete-marker":
            deleted = store.delete_marker(TriggerEventType(args.event), args.node)
            if deleted:
                print(f"Deleted {args.event} marker for {args.node}")
            else:
                print(f"No {args.event} marker for {args.node}")
            return 0

        logger.error("Unknown command", extra={"command": args.command})
        return 2

    except MarkerStoreError as e:
        logger.error(str(e), extra={"operation": e.operation, "path": e.path})
        print(str(e), file=sys.stderr)
        return 3

    except Exception:
        logger.exception("Command failed")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
