"""Mini README: Mission management package.

Groups the mission records, the lifecycle rules, the in-memory store and
the service that applies operations on behalf of callers and the
simulation engine.
"""

from .models import Mission, MissionProgress, MissionRequest, MissionStatus, Waypoint
from .service import MissionService
from .state_machine import (
    TERMINAL_STATUSES,
    MissionControl,
    MissionOperation,
    allowed_operations,
    next_status,
)
from .store import MissionStore

__all__ = [
    "Mission",
    "MissionControl",
    "MissionOperation",
    "MissionProgress",
    "MissionRequest",
    "MissionService",
    "MissionStatus",
    "MissionStore",
    "TERMINAL_STATUSES",
    "Waypoint",
    "allowed_operations",
    "next_status",
]
