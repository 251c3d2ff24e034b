"""Mini README: Exception hierarchy shared by the SkySurvey subsystems.

Caller-facing errors (``NotFound``, ``InvalidTransition``,
``DroneUnavailable``, ``EmptyPath``, ``SurveyTooLarge``,
``ReportUnavailable``) are raised synchronously before any state changes.
``BatteryExhausted`` is raised by simulation workers after the mission has
already been aborted and is only seen by the job queue. ``WorkerFailure``
reaches the job queue the same way, and reaches the caller of start or
resume when no worker could be launched.
"""

from __future__ import annotations

from typing import Optional


class MissionError(Exception):
    """Base class for every error raised by the mission engine."""


class NotFound(MissionError):
    """A mission or drone identifier is unknown."""


class MissionNotFound(NotFound):
    def __init__(self, mission_id: str) -> None:
        super().__init__(f"Mission {mission_id} not found")
        self.mission_id = mission_id


class DroneNotFound(NotFound):
    def __init__(self, drone_id: str) -> None:
        super().__init__(f"Drone {drone_id} not found")
        self.drone_id = drone_id


class InvalidTransition(MissionError):
    """An operation is not allowed from the mission's current status."""

    def __init__(self, mission_id: str, operation: str, status: str) -> None:
        super().__init__(f"Cannot {operation} mission {mission_id} while it is {status}")
        self.mission_id = mission_id
        self.operation = operation
        self.status = status


class DroneUnavailable(MissionError):
    def __init__(self, drone_id: str, status: str) -> None:
        super().__init__(f"Drone {drone_id} is not available (status {status})")
        self.drone_id = drone_id
        self.status = status


class EmptyPath(MissionError):
    """The planner produced no waypoints for the requested survey area."""


class ReportUnavailable(MissionError):
    """A survey report was requested for a mission that has not completed."""


class BatteryExhausted(MissionError):
    def __init__(self, mission_id: str, drone_id: str, battery: float) -> None:
        super().__init__(
            f"Mission {mission_id} aborted: drone {drone_id} battery at {battery:.1f}%"
        )
        self.mission_id = mission_id
        self.drone_id = drone_id
        self.battery = battery


class WorkerFailure(MissionError):
    def __init__(self, mission_id: str, cause: Optional[BaseException] = None) -> None:
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Simulation worker for mission {mission_id} failed{detail}")
        self.mission_id = mission_id
        self.cause = cause


class SurveyTooLarge(MissionError):
    """The survey would need more waypoints than the planner accepts."""

    def __init__(self, estimated: int, limit: int) -> None:
        super().__init__(f"Survey needs about {estimated} waypoints; the limit is {limit}")
        self.estimated = estimated
        self.limit = limit
