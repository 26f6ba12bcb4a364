#!/usr/bin/env python3
"""Leader failover walkthrough.

Two overseers share a file-backed coordination root. The first one detects a
lost node and dies before its debounce window closes; the second one takes
over, recovers the marker and fires the trigger.
"""

from __future__ import annotations

import argparse
import tempfile
import threading
from pathlib import Path
from typing import Sequence

from membership_triggers.actions.base import ActionContext, TriggerAction
from membership_triggers.config import OverseerSettings
from membership_triggers.coordination.client import FileCoordinationClient
from membership_triggers.logging import configure_logging
from membership_triggers.overseer import OverseerTriggerThread
from membership_triggers.triggers.config import TriggerConfig
from membership_triggers.triggers.events import TriggerEvent

FIRED = threading.Event()


class PrintEventAction(TriggerAction):
    def process(self, event: TriggerEvent, context: ActionContext) -> None:
        print(f"{event.trigger_name} fired for {sorted(event.node_names)}")
        FIRED.set()


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Simulate a leader failover.")
    parser.add_argument("--root", type=Path, default=None, help="Coordination root directory")
    parser.add_argument("--wait-for", default="1s", help="Debounce window, e.g. 1s or 500ms")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = OverseerSettings()
    configure_logging(settings.log_level, json_output=False)

    root = args.root or Path(tempfile.mkdtemp(prefix="membership-triggers-"))
    client = FileCoordinationClient(root, live_nodes={"n1:8983_solr", "n2:8983_solr"})
    trigger = TriggerConfig.model_validate(
        {
            "name": "node_lost_trigger",
            "event": "nodeLost",
            "waitFor": args.wait_for,
            "actions": [{"name": "print", "class": f"{__name__}:PrintEventAction"}],
        }
    )

    first = OverseerTriggerThread(client, settings=settings)
    second = OverseerTriggerThread(client, settings=settings)
    for overseer in (first, second):
        overseer.set_trigger(trigger)
        overseer.start()

    first.on_leadership_acquired()
    client.remove_live_node("n2:8983_solr")
    first.flush()
    print(f"Pending markers: {sorted(first.marker_store.list_markers(trigger.event_type))}")

    # The leader dies mid-debounce; only the marker survives.
    first.close()
    second.on_leadership_acquired()

    ok = FIRED.wait(trigger.wait_for + 5.0)
    second.close()
    return 0 if ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
