"""Mini README: Tests for the in-memory mission store."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from skysurvey.errors import MissionNotFound
from skysurvey.missions import Mission, MissionStatus, MissionStore, Waypoint
from skysurvey.route_planning import PathPattern

CREATED = datetime(2024, 6, 1, 8, 0, tzinfo=timezone.utc)


def _mission(mission_id: str, drone_id: str = "drone_0001", offset_minutes: int = 0) -> Mission:
    return Mission(
        mission_id=mission_id,
        name=f"Survey {mission_id}",
        drone_id=drone_id,
        survey_area=[(0.0, 0.0), (0.001, 0.0), (0.001, 0.001)],
        path_pattern=PathPattern.GRID,
        altitude=50.0,
        speed=10.0,
        overlap_percent=70.0,
        created_at=CREATED + timedelta(minutes=offset_minutes),
        total_waypoints=3,
    )


def _waypoints(count: int = 3):
    return [Waypoint(sequence=index, longitude=0.0, latitude=index * 0.001, altitude=50.0)
            for index in range(count)]


def test_create_stores_mission_and_waypoints_together() -> None:
    store = MissionStore()
    store.create(_mission("a"), _waypoints())
    assert store.get("a").name == "Survey a"
    assert [waypoint.sequence for waypoint in store.waypoints("a")] == [0, 1, 2]


def test_create_rejects_unordered_waypoints_without_side_effects() -> None:
    store = MissionStore()
    batch = _waypoints()
    batch[2].sequence = 1
    with pytest.raises(ValueError):
        store.create(_mission("a"), batch)
    with pytest.raises(MissionNotFound):
        store.get("a")


def test_list_is_newest_first_and_filterable() -> None:
    store = MissionStore()
    store.create(_mission("old", offset_minutes=0), _waypoints())
    store.create(_mission("new", offset_minutes=5), _waypoints())
    store.create(_mission("other", drone_id="drone_0002", offset_minutes=10), _waypoints())
    store.update_fields("old", status=MissionStatus.ACTIVE)

    assert [mission.mission_id for mission in store.list()] == ["other", "new", "old"]
    assert [m.mission_id for m in store.list(status=MissionStatus.ACTIVE)] == ["old"]
    assert [m.mission_id for m in store.list(drone_id="drone_0002")] == ["other"]


def test_update_fields_is_partial_and_whitelisted() -> None:
    store = MissionStore()
    store.create(_mission("a"), _waypoints())
    store.update_fields("a", progress=40.0, current_waypoint=1)
    mission = store.get("a")
    assert mission.progress == 40.0
    assert mission.current_waypoint == 1
    assert mission.distance_covered == 0.0
    with pytest.raises(ValueError):
        store.update_fields("a", drone_id="drone_0009")


def test_mark_waypoint_reached_is_idempotent() -> None:
    store = MissionStore()
    store.create(_mission("a"), _waypoints())
    assert store.mark_waypoint_reached("a", 1, CREATED) is True
    assert store.mark_waypoint_reached("a", 1, CREATED + timedelta(seconds=5)) is False
    reached = store.waypoints("a")[1]
    assert reached.reached
    assert reached.reached_at == CREATED


def test_unknown_mission_raises_not_found() -> None:
    with pytest.raises(MissionNotFound):
        MissionStore().waypoints("missing")
