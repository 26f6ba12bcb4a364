from membership_triggers.markers.store import NodeMarker, NodeMarkerStore

__all__ = ["NodeMarker", "NodeMarkerStore"]
