"""Read-only HTTP status surface.

Trigger administration stays with the external admin API; this app only
reports what the overseer and marker store currently hold.
"""

from membership_triggers.server.app import create_app

__all__ = ["create_app"]
