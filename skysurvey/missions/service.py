"""Mini README: Mission lifecycle service.

Structure:
    * MissionService - planning, creation and every status-changing operation.

Usage:
    The service validates each operation against the lifecycle table in
    ``state_machine`` and applies the mission and drone changes while holding
    the mission's ``MissionControl`` lock. Starting or resuming a mission
    hands it to the launcher (normally ``MissionQueue.enqueue``) before the
    status changes; a worker cannot observe the mission until the lock is
    released. A PLANNED mission whose worker cannot be launched is marked
    FAILED.

    Planning is CPU bound. Requests whose estimated waypoint count exceeds
    ``max_waypoints`` are refused with ``SurveyTooLarge`` before any path is
    generated, and the HTTP layer plans in a worker thread and hands the
    result to ``create_mission(request, path=...)``.

    ``finish_completed``, ``finish_aborted`` and ``finish_failed`` are the
    engine-facing halves of the terminal transitions; their callers must
    already hold the mission's lock. Reaching a terminal status retires the
    mission's ``MissionControl``.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from ..errors import DroneNotFound, DroneUnavailable, EmptyPath, SurveyTooLarge, WorkerFailure
from ..fleet import Drone, DroneStatus, FleetRegistry
from ..geometry import area, estimate_duration
from ..logging_utils import get_logger
from ..route_planning import FlightPath, PathPattern, RoutePlanner
from ..telemetry import MISSION_PROGRESS, MISSION_STATUS, TelemetrySink
from .models import Mission, MissionProgress, MissionRequest, MissionStatus, Waypoint
from .state_machine import MissionControl, MissionOperation, next_status
from .store import MissionStore

LOGGER = get_logger(__name__)

Launcher = Callable[[str], bool]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class MissionService:
    """Create missions and drive them through their lifecycle."""

    def __init__(
        self,
        store: MissionStore,
        fleet: FleetRegistry,
        planner: RoutePlanner,
        *,
        telemetry: Optional[TelemetrySink] = None,
        default_overlap_percent: float = 70.0,
        default_speed: float = 10.0,
        max_waypoints: Optional[int] = None,
        launcher: Optional[Launcher] = None,
    ) -> None:
        self.store = store
        self.fleet = fleet
        self.planner = planner
        self.telemetry = telemetry
        self.default_overlap_percent = default_overlap_percent
        self.default_speed = default_speed
        self.max_waypoints = max_waypoints
        self._launcher = launcher
        self._controls: Dict[str, MissionControl] = {}

    def attach_launcher(self, launcher: Launcher) -> None:
        self._launcher = launcher

    def control(self, mission_id: str) -> MissionControl:
        """Return the coordination primitives for ``mission_id``."""

        if mission_id not in self._controls:
            self._controls[mission_id] = MissionControl()
        return self._controls[mission_id]

    def tracked_missions(self) -> List[str]:
        """Missions that currently hold coordination primitives."""

        return list(self._controls)

    # Planning and creation -------------------------------------------------

    def plan_path(
        self,
        polygon: Iterable[Sequence[float]],
        pattern: PathPattern,
        altitude: float,
        overlap_percent: Optional[float] = None,
    ) -> FlightPath:
        """Generate waypoints without creating a mission; may return an empty path.

        Raises ``SurveyTooLarge`` before planning when the survey would need
        more than ``max_waypoints`` waypoints.
        """

        if overlap_percent is None:
            overlap_percent = self.default_overlap_percent
        polygon = list(polygon)
        if self.max_waypoints is not None:
            estimated = self.planner.estimate_waypoints(polygon, pattern, altitude, overlap_percent)
            if estimated > self.max_waypoints:
                LOGGER.warning(
                    "Refusing %s survey: about %s waypoints (limit %s)",
                    PathPattern(pattern).value,
                    estimated,
                    self.max_waypoints,
                )
                raise SurveyTooLarge(estimated, self.max_waypoints)
        return self.planner.generate_path(polygon, pattern, altitude, overlap_percent)

    def plan_for(self, request: MissionRequest) -> FlightPath:
        return self.plan_path(
            request.survey_area, request.path_pattern, request.altitude, request.overlap_percent
        )

    def available_drone(self, drone_id: str) -> Drone:
        """Return the drone, raising unless it can take a new mission."""

        drone = self.fleet.get_drone(drone_id)
        if drone.status is not DroneStatus.AVAILABLE:
            raise DroneUnavailable(drone.drone_id, drone.status.value)
        return drone

    def create_mission(self, request: MissionRequest, path: Optional[FlightPath] = None) -> Mission:
        """Store the mission with its waypoints, planning them unless ``path`` is given."""

        drone = self.available_drone(request.drone_id)
        overlap = (
            request.overlap_percent
            if request.overlap_percent is not None
            else self.default_overlap_percent
        )
        speed = request.speed or drone.speed or self.default_speed
        if path is None:
            path = self.plan_for(request)
        if path.is_empty:
            raise EmptyPath(
                f"No waypoints generated for {request.path_pattern.value} survey;"
                " the area is degenerate or too small for the line spacing"
            )

        positions = [waypoint.as_tuple() for waypoint in path.waypoints]
        mission = Mission(
            mission_id=uuid.uuid4().hex,
            name=request.name,
            drone_id=drone.drone_id,
            survey_area=[tuple(point) for point in request.survey_area],
            path_pattern=request.path_pattern,
            altitude=request.altitude,
            speed=speed,
            overlap_percent=overlap,
            created_at=_now(),
            total_waypoints=len(positions),
            estimated_time=estimate_duration(positions, speed),
            area_m2=area(request.survey_area),
        )
        waypoints = [
            Waypoint(sequence=index, longitude=lon, latitude=lat, altitude=alt)
            for index, (lon, lat, alt) in enumerate(positions)
        ]
        self.store.create(mission, waypoints)
        LOGGER.info(
            "Created mission %s for drone %s: %s waypoints, estimated %.0fs",
            mission.mission_id,
            drone.drone_id,
            mission.total_waypoints,
            mission.estimated_time,
        )
        self._publish_status(mission)
        return mission

    # Queries ---------------------------------------------------------------

    def get_mission(self, mission_id: str) -> Mission:
        return self.store.get(mission_id)

    def list_missions(
        self, *, status: Optional[MissionStatus] = None, drone_id: Optional[str] = None
    ) -> List[Mission]:
        return self.store.list(status=status, drone_id=drone_id)

    def active_missions(self) -> List[Mission]:
        return [
            mission
            for mission in self.store.list()
            if mission.status in (MissionStatus.ACTIVE, MissionStatus.PAUSED)
        ]

    def waypoints(self, mission_id: str) -> List[Waypoint]:
        return self.store.waypoints(mission_id)

    def report_progress(self, mission_id: str) -> MissionProgress:
        mission = self.store.get(mission_id)
        return MissionProgress(
            progress=mission.progress,
            current_waypoint=mission.current_waypoint,
            distance_covered=mission.distance_covered,
        )

    # External operations ---------------------------------------------------

    async def start_mission(self, mission_id: str) -> Mission:
        """Activate a PLANNED or PAUSED mission and launch its worker."""

        control = self.control(mission_id)
        async with control.lock:
            mission = self.store.get(mission_id)
            target = next_status(mission_id, mission.status, MissionOperation.START)
            drone = self.fleet.get_drone(mission.drone_id)
            if mission.status is MissionStatus.PLANNED and drone.status is not DroneStatus.AVAILABLE:
                raise DroneUnavailable(drone.drone_id, drone.status.value)

            self._launch_or_fail(mission)
            fields: Dict[str, object] = {"status": target, "status_reason": None}
            if mission.start_time is None:
                fields["start_time"] = _now()
                fields["battery_at_start"] = drone.battery
            self.fleet.set_drone_status(drone.drone_id, DroneStatus.IN_MISSION)
            mission = self.store.update_fields(mission_id, **fields)
            control.signal()
            LOGGER.info("Mission %s started on drone %s", mission_id, drone.drone_id)
            self._publish_status(mission)
        return mission

    async def pause_mission(self, mission_id: str) -> Mission:
        control = self.control(mission_id)
        async with control.lock:
            mission = self.store.get(mission_id)
            target = next_status(mission_id, mission.status, MissionOperation.PAUSE)
            mission = self.store.update_fields(mission_id, status=target)
            control.signal()
            LOGGER.info("Mission %s paused at waypoint %s", mission_id, mission.current_waypoint)
            self._publish_status(mission)
        return mission

    async def resume_mission(self, mission_id: str) -> Mission:
        control = self.control(mission_id)
        async with control.lock:
            mission = self.store.get(mission_id)
            target = next_status(mission_id, mission.status, MissionOperation.RESUME)
            self.fleet.get_drone(mission.drone_id)
            self._launch_or_fail(mission)
            mission = self.store.update_fields(mission_id, status=target)
            control.signal()
            LOGGER.info("Mission %s resumed from waypoint %s", mission_id, mission.current_waypoint)
            self._publish_status(mission)
        return mission

    async def abort_mission(self, mission_id: str, reason: str = "aborted by operator") -> Mission:
        control = self.control(mission_id)
        async with control.lock:
            mission = self.store.get(mission_id)
            return self.finish_aborted(mission, reason)

    # Engine-facing transitions (caller holds the mission lock) -------------

    def finish_aborted(self, mission: Mission, reason: str) -> Mission:
        target = next_status(mission.mission_id, mission.status, MissionOperation.ABORT)
        mission = self.store.update_fields(
            mission.mission_id,
            status=target,
            status_reason=reason,
            end_time=_now(),
            battery_at_end=self._drone_battery(mission),
        )
        self._retire_control(mission.mission_id)
        self._release_drone(mission)
        LOGGER.warning("Mission %s aborted: %s", mission.mission_id, reason)
        self._publish_status(mission)
        return mission

    def finish_completed(self, mission: Mission) -> Mission:
        target = next_status(mission.mission_id, mission.status, MissionOperation.COMPLETE)
        finished_at = _now()
        started_at = mission.start_time or finished_at
        mission = self.store.update_fields(
            mission.mission_id,
            status=target,
            end_time=finished_at,
            actual_time=(finished_at - started_at).total_seconds(),
            progress=100.0,
            current_waypoint=max(0, mission.total_waypoints - 1),
            battery_at_end=self._drone_battery(mission),
        )
        self._retire_control(mission.mission_id)
        self._release_drone(mission)
        LOGGER.info(
            "Mission %s completed: %.1fm in %.1fs",
            mission.mission_id,
            mission.distance_covered,
            mission.actual_time,
        )
        self._publish(
            MISSION_PROGRESS,
            {
                "mission_id": mission.mission_id,
                "progress": mission.progress,
                "current_waypoint": mission.current_waypoint,
                "total_waypoints": mission.total_waypoints,
                "distance_covered": mission.distance_covered,
                "estimated_time_remaining": 0.0,
            },
        )
        self._publish_status(mission)
        return mission

    def finish_failed(self, mission: Mission, reason: str) -> Mission:
        """Mark a mission that never became ACTIVE as FAILED."""

        target = next_status(mission.mission_id, mission.status, MissionOperation.FAIL)
        mission = self.store.update_fields(
            mission.mission_id, status=target, status_reason=reason, end_time=_now()
        )
        self._retire_control(mission.mission_id)
        LOGGER.error("Mission %s failed: %s", mission.mission_id, reason)
        self._publish_status(mission)
        return mission

    def record_progress(
        self, mission_id: str, *, progress: float, current_waypoint: int, distance_covered: float
    ) -> Mission:
        return self.store.update_fields(
            mission_id,
            progress=progress,
            current_waypoint=current_waypoint,
            distance_covered=distance_covered,
        )

    # Helpers ---------------------------------------------------------------

    def _launch_or_fail(self, mission: Mission) -> None:
        try:
            self._launch(mission.mission_id)
        except RuntimeError as error:
            if mission.status is MissionStatus.PLANNED:
                self.finish_failed(mission, f"simulation worker could not be launched: {error}")
            raise WorkerFailure(mission.mission_id, error) from error

    def _retire_control(self, mission_id: str) -> None:
        control = self._controls.pop(mission_id, None)
        if control is not None:
            control.signal()

    def _drone_battery(self, mission: Mission) -> Optional[float]:
        try:
            return self.fleet.get_drone(mission.drone_id).battery
        except DroneNotFound:
            return None

    def _release_drone(self, mission: Mission) -> None:
        try:
            self.fleet.set_drone_status(mission.drone_id, DroneStatus.AVAILABLE)
        except DroneNotFound:
            LOGGER.warning(
                "Drone %s vanished before mission %s released it",
                mission.drone_id,
                mission.mission_id,
            )

    def _launch(self, mission_id: str) -> None:
        if self._launcher is None:
            LOGGER.warning("No simulation launcher attached; mission %s will not fly", mission_id)
            return
        if not self._launcher(mission_id):
            LOGGER.debug("Mission %s worker still running; it will run again", mission_id)

    def _publish_status(self, mission: Mission) -> None:
        self._publish(
            MISSION_STATUS,
            {
                "mission_id": mission.mission_id,
                "status": mission.status.value,
                "reason": mission.status_reason,
                "mission": mission.as_dict(),
            },
        )

    def _publish(self, topic: str, payload: Dict[str, object]) -> None:
        if self.telemetry is not None:
            self.telemetry.publish(topic, payload)
