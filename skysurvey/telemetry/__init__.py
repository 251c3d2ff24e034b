"""Mini README: Telemetry subsystem.

Re-exports the hub, the sink protocol and the topic names used by the fleet
registry, the mission service and the simulation engine.
"""

from .hub import (
    DRONE_POSITION,
    FLEET_STATS,
    MISSION_PROGRESS,
    MISSION_STATUS,
    TelemetryEvent,
    TelemetryHub,
    TelemetrySink,
)

__all__ = [
    "DRONE_POSITION",
    "FLEET_STATS",
    "MISSION_PROGRESS",
    "MISSION_STATUS",
    "TelemetryEvent",
    "TelemetryHub",
    "TelemetrySink",
]
