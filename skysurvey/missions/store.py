"""Mini README: In-memory mission persistence.

Structure:
    * MissionStore - mission records and their waypoint batches.

The store stands in for the external persistence collaborator. A mission and
its waypoints are inserted by one ``create`` call so neither is visible
without the other. ``update_fields`` performs partial updates, which the
simulation engine uses every tick for progress bookkeeping.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from ..errors import MissionNotFound
from ..logging_utils import get_logger
from .models import Mission, MissionStatus, Waypoint

LOGGER = get_logger(__name__)

_UPDATABLE_FIELDS = frozenset(
    {
        "status",
        "status_reason",
        "current_waypoint",
        "progress",
        "distance_covered",
        "actual_time",
        "start_time",
        "end_time",
        "battery_at_start",
        "battery_at_end",
    }
)


class MissionStore:
    """Keep missions and waypoints keyed by mission identifier."""

    def __init__(self) -> None:
        self._missions: Dict[str, Mission] = {}
        self._waypoints: Dict[str, List[Waypoint]] = {}

    def create(self, mission: Mission, waypoints: Iterable[Waypoint]) -> Mission:
        """Insert a mission together with its waypoint batch."""

        batch = [replace(waypoint) for waypoint in waypoints]
        if mission.mission_id in self._missions:
            raise ValueError(f"Mission {mission.mission_id} already exists")
        sequences = [waypoint.sequence for waypoint in batch]
        if any(later <= earlier for earlier, later in zip(sequences, sequences[1:])):
            raise ValueError("Waypoint sequences must be unique and increasing")
        self._missions[mission.mission_id] = mission
        self._waypoints[mission.mission_id] = batch
        LOGGER.debug("Stored mission %s with %s waypoints", mission.mission_id, len(batch))
        return mission

    def get(self, mission_id: str) -> Mission:
        if mission_id not in self._missions:
            raise MissionNotFound(mission_id)
        return self._missions[mission_id]

    def list(
        self, *, status: Optional[MissionStatus] = None, drone_id: Optional[str] = None
    ) -> List[Mission]:
        """Return missions newest first, optionally filtered."""

        missions = [
            mission
            for mission in self._missions.values()
            if (status is None or mission.status is status)
            and (drone_id is None or mission.drone_id == drone_id)
        ]
        return sorted(missions, key=lambda mission: mission.created_at, reverse=True)

    def update_fields(self, mission_id: str, **fields: object) -> Mission:
        """Apply a partial update without touching the other fields."""

        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
        mission = self.get(mission_id)
        for name, value in fields.items():
            setattr(mission, name, value)
        return mission

    def waypoints(self, mission_id: str) -> List[Waypoint]:
        self.get(mission_id)
        return list(self._waypoints[mission_id])

    def mark_waypoint_reached(self, mission_id: str, sequence: int, reached_at: datetime) -> bool:
        """Flag a waypoint as reached; returns False when it already was."""

        for waypoint in self.waypoints(mission_id):
            if waypoint.sequence == sequence:
                if waypoint.reached:
                    return False
                waypoint.reached = True
                waypoint.reached_at = reached_at
                return True
        raise KeyError(f"Waypoint {sequence} not present in mission {mission_id}")
