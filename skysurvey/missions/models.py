"""Mini README: Mission and waypoint records.

Structure:
    * MissionStatus - lifecycle states of a mission.
    * Waypoint - one stop on a mission's flight path.
    * Mission - mission record; the store owns instances.
    * MissionProgress - snapshot returned by ``report_progress``.
    * MissionRequest - validated input for creating a mission.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

from ..route_planning import PathPattern


class MissionStatus(str, Enum):
    PLANNED = "PLANNED"
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"
    ABORTED = "ABORTED"
    FAILED = "FAILED"


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass(slots=True)
class Waypoint:
    """Waypoint on a mission path; only ``reached``/``reached_at`` change after creation."""

    sequence: int
    longitude: float
    latitude: float
    altitude: float
    reached: bool = False
    reached_at: Optional[datetime] = None

    def as_tuple(self) -> Tuple[float, float, float]:
        return (self.longitude, self.latitude, self.altitude)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "sequence": self.sequence,
            "longitude": self.longitude,
            "latitude": self.latitude,
            "altitude": self.altitude,
            "reached": self.reached,
            "reached_at": _isoformat(self.reached_at),
        }


@dataclass(slots=True)
class Mission:
    mission_id: str
    name: str
    drone_id: str
    survey_area: List[Tuple[float, float]]
    path_pattern: PathPattern
    altitude: float
    speed: float
    overlap_percent: float
    created_at: datetime
    status: MissionStatus = MissionStatus.PLANNED
    total_waypoints: int = 0
    current_waypoint: int = 0
    progress: float = 0.0
    distance_covered: float = 0.0
    estimated_time: float = 0.0
    actual_time: Optional[float] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    area_m2: float = 0.0
    battery_at_start: Optional[float] = None
    battery_at_end: Optional[float] = None
    status_reason: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "mission_id": self.mission_id,
            "name": self.name,
            "drone_id": self.drone_id,
            "survey_area": [list(point) for point in self.survey_area],
            "path_pattern": self.path_pattern.value,
            "altitude": self.altitude,
            "speed": self.speed,
            "overlap_percent": self.overlap_percent,
            "status": self.status.value,
            "status_reason": self.status_reason,
            "total_waypoints": self.total_waypoints,
            "current_waypoint": self.current_waypoint,
            "progress": self.progress,
            "distance_covered": self.distance_covered,
            "estimated_time": self.estimated_time,
            "actual_time": self.actual_time,
            "area_m2": self.area_m2,
            "battery_at_start": self.battery_at_start,
            "battery_at_end": self.battery_at_end,
            "created_at": _isoformat(self.created_at),
            "start_time": _isoformat(self.start_time),
            "end_time": _isoformat(self.end_time),
        }


@dataclass(slots=True, frozen=True)
class MissionProgress:
    progress: float
    current_waypoint: int
    distance_covered: float

    def as_dict(self) -> Dict[str, Any]:
        return {
            "progress": self.progress,
            "current_waypoint": self.current_waypoint,
            "distance_covered": self.distance_covered,
        }


class MissionRequest(BaseModel):
    """Input accepted by ``MissionService.create_mission``."""

    name: str = Field("Survey mission", min_length=1)
    drone_id: str
    survey_area: List[Tuple[float, float]] = Field(..., min_length=3)
    path_pattern: PathPattern = PathPattern.GRID
    altitude: float = Field(..., gt=0)
    speed: Optional[float] = Field(None, gt=0)
    overlap_percent: Optional[float] = Field(None, ge=0, lt=100)

    @field_validator("path_pattern", mode="before")
    @classmethod
    def _coerce_pattern(cls, value: Any) -> Any:
        if isinstance(value, str):
            return PathPattern.from_str(value)
        return value

    @field_validator("survey_area")
    @classmethod
    def _check_coordinates(cls, value: List[Tuple[float, float]]) -> List[Tuple[float, float]]:
        for longitude, latitude in value:
            if not -180 <= longitude <= 180:
                raise ValueError(f"invalid longitude {longitude}")
            if not -90 <= latitude <= 90:
                raise ValueError(f"invalid latitude {latitude}")
        return value
