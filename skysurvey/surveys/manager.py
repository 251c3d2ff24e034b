"""Mini README: Survey reports for completed missions.

Structure:
    * SurveyReport - immutable summary of a COMPLETED mission.
    * DroneSurveyTotals - per-drone aggregate built from reports.
    * SurveyOverview / OrganisationStatistics - fleet-wide aggregates.
    * SurveyManager - creates reports (once per mission) and folds them into
      the aggregates above.

Reports are derived on demand from the mission record and its waypoints;
battery use comes from the levels recorded at start and completion. Asking
twice for the same mission returns the report created the first time.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List

from ..errors import DroneNotFound, ReportUnavailable
from ..fleet import FleetRegistry
from ..logging_utils import get_logger
from ..missions import MissionStatus, MissionStore

LOGGER = get_logger(__name__)


@dataclass(slots=True, frozen=True)
class SurveyReport:
    """Summary of a completed survey mission."""

    mission_id: str
    drone_id: str
    duration: float
    distance: float
    coverage: float
    waypoints_total: int
    waypoints_reached: int
    avg_speed: float
    max_speed: float
    avg_altitude: float
    battery_used: float
    path_pattern: str
    overlap_percent: float
    created_at: datetime

    @property
    def completion_rate(self) -> float:
        """Percentage of waypoints the drone reached."""

        if not self.waypoints_total:
            return 0.0
        return self.waypoints_reached / self.waypoints_total * 100

    def as_dict(self) -> Dict[str, object]:
        data = asdict(self)
        data["created_at"] = self.created_at.isoformat()
        data["completion_rate"] = self.completion_rate
        return data


@dataclass(slots=True)
class DroneSurveyTotals:
    drone_id: str
    drone_name: str = ""
    missions_completed: int = 0
    total_distance: float = 0.0
    total_coverage: float = 0.0
    total_duration: float = 0.0
    avg_speed: float = 0.0

    @property
    def avg_mission_duration(self) -> float:
        if not self.missions_completed:
            return 0.0
        return self.total_duration / self.missions_completed

    def add(self, report: SurveyReport) -> None:
        self.missions_completed += 1
        self.total_distance += report.distance
        self.total_coverage += report.coverage
        self.total_duration += report.duration
        self.avg_speed += (report.avg_speed - self.avg_speed) / self.missions_completed

    def as_dict(self) -> Dict[str, object]:
        data = asdict(self)
        data["avg_mission_duration"] = self.avg_mission_duration
        return data


@dataclass(slots=True, frozen=True)
class SurveyOverview:
    total_missions: int
    completed_missions: int
    active_missions: int
    total_distance: float
    total_coverage: float
    total_duration: float
    avg_mission_duration: float


@dataclass(slots=True, frozen=True)
class OrganisationStatistics:
    overview: SurveyOverview
    drone_stats: List[DroneSurveyTotals] = field(default_factory=list)

    def as_dict(self) -> Dict[str, object]:
        return {
            "overview": asdict(self.overview),
            "drone_stats": [totals.as_dict() for totals in self.drone_stats],
        }


class SurveyManager:
    """Create survey reports and aggregate them for dashboards."""

    def __init__(self, store: MissionStore, fleet: FleetRegistry) -> None:
        self._store = store
        self._fleet = fleet
        self._reports: Dict[str, SurveyReport] = {}

    def generate_report(self, mission_id: str) -> SurveyReport:
        """Return the mission's report, creating it on first request."""

        if mission_id in self._reports:
            return self._reports[mission_id]
        mission = self._store.get(mission_id)
        if mission.status is not MissionStatus.COMPLETED:
            raise ReportUnavailable(
                f"Mission {mission_id} is {mission.status.value}; reports require COMPLETED"
            )
        waypoints = self._store.waypoints(mission_id)
        reached = sum(1 for waypoint in waypoints if waypoint.reached)
        completion = reached / len(waypoints) if waypoints else 0.0
        battery_at_start = (
            mission.battery_at_start if mission.battery_at_start is not None else 100.0
        )
        battery_at_end = (
            mission.battery_at_end if mission.battery_at_end is not None else battery_at_start
        )
        try:
            max_speed = self._fleet.get_drone(mission.drone_id).max_speed
        except DroneNotFound:
            max_speed = mission.speed
        report = SurveyReport(
            mission_id=mission_id,
            drone_id=mission.drone_id,
            duration=mission.actual_time or 0.0,
            distance=mission.distance_covered,
            coverage=mission.area_m2 * completion,
            waypoints_total=len(waypoints),
            waypoints_reached=reached,
            avg_speed=mission.speed,
            max_speed=max_speed,
            avg_altitude=mission.altitude,
            battery_used=max(0.0, battery_at_start - battery_at_end),
            path_pattern=mission.path_pattern.value,
            overlap_percent=mission.overlap_percent,
            created_at=datetime.now(timezone.utc),
        )
        self._reports[mission_id] = report
        LOGGER.info(
            "Survey report for mission %s: %.0fm, %s/%s waypoints",
            mission_id,
            report.distance,
            reached,
            len(waypoints),
        )
        return report

    def get_report(self, mission_id: str) -> SurveyReport:
        if mission_id not in self._reports:
            raise ReportUnavailable(f"No survey report for mission {mission_id}")
        return self._reports[mission_id]

    def list_reports(self) -> List[SurveyReport]:
        """Return reports newest first."""

        return sorted(self._reports.values(), key=lambda report: report.created_at, reverse=True)

    def drone_statistics(self, drone_id: str) -> DroneSurveyTotals:
        totals = _fold_by_drone(
            report for report in self._reports.values() if report.drone_id == drone_id
        )
        return totals.get(drone_id, DroneSurveyTotals(drone_id=drone_id))

    def organisation_statistics(self) -> OrganisationStatistics:
        missions = self._store.list()
        completed = sum(1 for mission in missions if mission.status is MissionStatus.COMPLETED)
        reports = list(self._reports.values())
        total_duration = sum(report.duration for report in reports)
        overview = SurveyOverview(
            total_missions=len(missions),
            completed_missions=completed,
            active_missions=sum(
                1
                for mission in missions
                if mission.status in (MissionStatus.ACTIVE, MissionStatus.PAUSED)
            ),
            total_distance=sum(report.distance for report in reports),
            total_coverage=sum(report.coverage for report in reports),
            total_duration=total_duration,
            avg_mission_duration=total_duration / completed if completed else 0.0,
        )
        drone_stats = list(_fold_by_drone(reports).values())
        for totals in drone_stats:
            try:
                totals.drone_name = self._fleet.get_drone(totals.drone_id).name
            except DroneNotFound:
                LOGGER.debug("Drone %s no longer registered", totals.drone_id)
        return OrganisationStatistics(overview=overview, drone_stats=drone_stats)


def _fold_by_drone(reports: Iterable[SurveyReport]) -> Dict[str, DroneSurveyTotals]:
    totals: Dict[str, DroneSurveyTotals] = {}
    for report in reports:
        if report.drone_id not in totals:
            totals[report.drone_id] = DroneSurveyTotals(drone_id=report.drone_id)
        totals[report.drone_id].add(report)
    return totals
