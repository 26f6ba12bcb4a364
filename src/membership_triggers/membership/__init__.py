from membership_triggers.membership.watcher import (
    LiveNodesListener,
    MembershipDelta,
    MembershipWatcher,
    compute_delta,
)

__all__ = ["LiveNodesListener", "MembershipDelta", "MembershipWatcher", "compute_delta"]
