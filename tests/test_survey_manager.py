"""Mini README: Tests for survey reports and their aggregates.

Missions are flown to completion with zero-length ticks, then reported on.
These tests confirm reports are only produced for completed missions, are
created once, and fold correctly into per-drone and organisation totals.
"""

from __future__ import annotations

import asyncio

import pytest

from skysurvey.configuration import SkySurveySettings
from skysurvey.control_centre import MissionControlCentre
from skysurvey.errors import ReportUnavailable
from skysurvey.missions import MissionRequest

FIELD = [(0.0, 0.0), (0.001, 0.0), (0.001, 0.001), (0.0, 0.001)]


def _fly(centre: MissionControlCentre, drone_id: str, pattern: str = "GRID") -> str:
    mission = centre.service.create_mission(
        MissionRequest(
            drone_id=drone_id, survey_area=FIELD, path_pattern=pattern, altitude=50.0
        )
    )

    async def scenario() -> None:
        await centre.service.start_mission(mission.mission_id)
        await centre.queue.join(mission.mission_id)

    asyncio.run(scenario())
    return mission.mission_id


def _centre() -> MissionControlCentre:
    return MissionControlCentre.build(SkySurveySettings(tick_seconds=0.0))


def test_report_summarises_completed_mission() -> None:
    centre = _centre()
    drone = centre.fleet.register_drone("Surveyor", "SIM-1", speed=10.0, max_speed=18.0)
    mission_id = _fly(centre, drone.drone_id)
    mission = centre.store.get(mission_id)

    report = centre.surveys.generate_report(mission_id)
    assert report.drone_id == drone.drone_id
    assert report.distance == pytest.approx(mission.distance_covered)
    assert report.waypoints_total == report.waypoints_reached == mission.total_waypoints
    assert report.completion_rate == pytest.approx(100.0)
    assert report.coverage == pytest.approx(mission.area_m2)
    assert report.max_speed == 18.0
    assert report.avg_altitude == 50.0
    assert report.battery_used == pytest.approx(100.0 - centre.fleet.get_drone(drone.drone_id).battery)
    assert report.path_pattern == "GRID"
    assert report.as_dict()["completion_rate"] == pytest.approx(100.0)


def test_report_is_created_once() -> None:
    centre = _centre()
    drone = centre.fleet.register_drone("Surveyor", "SIM-1")
    mission_id = _fly(centre, drone.drone_id)

    first = centre.surveys.generate_report(mission_id)
    assert centre.surveys.generate_report(mission_id) is first
    assert centre.surveys.get_report(mission_id) is first
    assert centre.surveys.list_reports() == [first]


def test_report_requires_completed_mission() -> None:
    centre = _centre()
    drone = centre.fleet.register_drone("Surveyor", "SIM-1")
    mission = centre.service.create_mission(
        MissionRequest(drone_id=drone.drone_id, survey_area=FIELD, altitude=50.0)
    )
    with pytest.raises(ReportUnavailable):
        centre.surveys.generate_report(mission.mission_id)
    asyncio.run(centre.service.abort_mission(mission.mission_id))
    with pytest.raises(ReportUnavailable):
        centre.surveys.generate_report(mission.mission_id)
    with pytest.raises(ReportUnavailable):
        centre.surveys.get_report(mission.mission_id)


def test_statistics_fold_reports_per_drone() -> None:
    centre = _centre()
    first = centre.fleet.register_drone("Alpha", "SIM-1")
    second = centre.fleet.register_drone("Bravo", "SIM-2")
    reports = [
        centre.surveys.generate_report(_fly(centre, first.drone_id)),
        centre.surveys.generate_report(_fly(centre, first.drone_id, pattern="PERIMETER")),
        centre.surveys.generate_report(_fly(centre, second.drone_id)),
    ]
    centre.service.create_mission(
        MissionRequest(drone_id=second.drone_id, survey_area=FIELD, altitude=50.0)
    )

    alpha = centre.surveys.drone_statistics(first.drone_id)
    assert alpha.missions_completed == 2
    assert alpha.total_distance == pytest.approx(reports[0].distance + reports[1].distance)
    assert alpha.avg_mission_duration == pytest.approx(
        (reports[0].duration + reports[1].duration) / 2
    )
    assert centre.surveys.drone_statistics("drone_9999").missions_completed == 0

    statistics = centre.surveys.organisation_statistics()
    assert statistics.overview.total_missions == 4
    assert statistics.overview.completed_missions == 3
    assert statistics.overview.active_missions == 0
    assert statistics.overview.total_distance == pytest.approx(sum(r.distance for r in reports))
    names = {totals.drone_name for totals in statistics.drone_stats}
    assert names == {"Alpha", "Bravo"}
    assert statistics.as_dict()["overview"]["completed_missions"] == 3


def test_battery_used_is_fixed_when_the_mission_completes() -> None:
    """Flying the drone again before reporting does not change the earlier report."""

    centre = _centre()
    drone = centre.fleet.register_drone("Surveyor", "SIM-1")
    mission_id = _fly(centre, drone.drone_id)
    landed = centre.fleet.get_drone(drone.drone_id).battery
    assert centre.store.get(mission_id).battery_at_end == pytest.approx(landed)

    _fly(centre, drone.drone_id)
    centre.fleet.set_drone_battery(drone.drone_id, 42.0)

    report = centre.surveys.generate_report(mission_id)
    assert report.battery_used == pytest.approx(100.0 - landed)
