"""Mini README: Tests for the real-time simulation engine.

Missions run through a full ``MissionControlCentre``, mostly with
``tick_seconds=0``
so each tick only yields to the event loop. Telemetry history is used to
check what the worker emitted and in which order.
"""

from __future__ import annotations

import asyncio
import math
import time

import pytest

from skysurvey.configuration import SkySurveySettings
from skysurvey.control_centre import MissionControlCentre
from skysurvey.errors import BatteryExhausted
from skysurvey.fleet import DroneStatus
from skysurvey.geometry import distance, path_length
from skysurvey.missions import MissionRequest, MissionService, MissionStatus
from skysurvey.simulation import MissionQueue, MissionSimulator, RetryPolicy, SimulationOutcome
from skysurvey.telemetry import DRONE_POSITION, MISSION_PROGRESS, MISSION_STATUS

TRIANGLE = [(0.0, 0.0), (0.001, 0.0), (0.0, 0.001)]
FIELD = [(0.0, 0.0), (0.001, 0.0), (0.001, 0.001), (0.0, 0.001)]


def _centre(**overrides) -> MissionControlCentre:
    values = {"tick_seconds": 0.0, "queue_backoff_seconds": 0.0, "perimeter_offset_m": 0.0}
    values.update(overrides)
    return MissionControlCentre.build(SkySurveySettings(**values))


def _create(centre: MissionControlCentre, polygon, pattern: str = "GRID"):
    drone = centre.fleet.register_drone("Surveyor", "SIM-1", speed=10.0)
    mission = centre.service.create_mission(
        MissionRequest(
            name="Test survey",
            drone_id=drone.drone_id,
            survey_area=polygon,
            path_pattern=pattern,
            altitude=40.0,
            speed=10.0,
        )
    )
    return drone, mission


def _expected_ticks(centre: MissionControlCentre, mission_id: str, speed: float) -> int:
    points = [waypoint.as_tuple() for waypoint in centre.store.waypoints(mission_id)]
    return sum(
        max(1, math.ceil(distance(start, end) / speed)) for start, end in zip(points, points[1:])
    )


async def _wait_until(predicate, limit: int = 10_000) -> None:
    for _ in range(limit):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


def _events(centre: MissionControlCentre, topic: str, mission_id: str):
    return [
        event
        for event in centre.telemetry.history(topic)
        if event.payload.get("mission_id") == mission_id
    ]


def test_four_waypoint_mission_completes_once() -> None:
    """A closed triangle perimeter has four waypoints and ends at index 3."""

    centre = _centre()
    drone, mission = _create(centre, TRIANGLE, pattern="PERIMETER")
    assert mission.total_waypoints == 4

    async def scenario() -> None:
        await centre.service.start_mission(mission.mission_id)
        await centre.queue.join(mission.mission_id)
        await centre.shutdown()

    asyncio.run(scenario())

    finished = centre.store.get(mission.mission_id)
    assert finished.status is MissionStatus.COMPLETED
    assert finished.current_waypoint == 3
    assert finished.progress == 100.0
    assert finished.actual_time is not None
    assert centre.queue.result(mission.mission_id) is SimulationOutcome.COMPLETED

    progress_events = _events(centre, MISSION_PROGRESS, mission.mission_id)
    values = [event.payload["progress"] for event in progress_events]
    assert values == sorted(values)
    assert values.count(100.0) == 1
    assert values[-1] == 100.0
    assert progress_events[-1].payload["current_waypoint"] == 3

    completed = [
        event
        for event in _events(centre, MISSION_STATUS, mission.mission_id)
        if event.payload["status"] == "COMPLETED"
    ]
    assert len(completed) == 1
    assert completed[0].sequence > progress_events[-1].sequence
    assert all(waypoint.reached for waypoint in centre.store.waypoints(mission.mission_id))
    assert centre.fleet.get_drone(drone.drone_id).status is DroneStatus.AVAILABLE


def test_tick_count_and_distance_match_path() -> None:
    centre = _centre()
    drone, mission = _create(centre, FIELD)

    async def scenario() -> None:
        await centre.service.start_mission(mission.mission_id)
        await centre.queue.join(mission.mission_id)

    asyncio.run(scenario())

    positions = _events(centre, DRONE_POSITION, mission.mission_id)
    ticks = _expected_ticks(centre, mission.mission_id, 10.0)
    assert len(positions) == ticks
    assert [event.payload["tick"] for event in positions] == list(range(1, ticks + 1))

    finished = centre.store.get(mission.mission_id)
    points = [waypoint.as_tuple() for waypoint in centre.store.waypoints(mission.mission_id)]
    assert finished.distance_covered == pytest.approx(path_length(points))

    battery = centre.fleet.get_drone(drone.drone_id).battery
    assert battery == pytest.approx(100.0 - 0.1 * ticks)
    assert positions[-1].payload["longitude"] == points[-1][0]
    assert positions[-1].payload["latitude"] == points[-1][1]


def test_pause_resume_keeps_progress_without_double_counting() -> None:
    centre = _centre()
    _, mission = _create(centre, FIELD)
    mission_id = mission.mission_id

    async def scenario() -> None:
        await centre.service.start_mission(mission_id)
        await _wait_until(lambda: centre.store.get(mission_id).progress > 10.0)
        await centre.service.pause_mission(mission_id)

        paused = centre.service.report_progress(mission_id)
        emitted = len(_events(centre, DRONE_POSITION, mission_id))
        await _wait_until(lambda: not centre.queue.is_running(mission_id))
        for _ in range(200):
            await asyncio.sleep(0)
        assert centre.service.report_progress(mission_id) == paused
        assert len(_events(centre, DRONE_POSITION, mission_id)) == emitted
        assert centre.queue.result(mission_id) is SimulationOutcome.STOPPED

        await centre.service.resume_mission(mission_id)
        assert centre.queue.is_running(mission_id)
        await centre.queue.join(mission_id)

    asyncio.run(scenario())

    assert centre.store.get(mission_id).status is MissionStatus.COMPLETED
    values = [event.payload["progress"] for event in _events(centre, MISSION_PROGRESS, mission_id)]
    assert values == sorted(values)
    positions = _events(centre, DRONE_POSITION, mission_id)
    assert len(positions) == _expected_ticks(centre, mission_id, 10.0)


def test_paused_mission_frees_its_slot_for_other_missions() -> None:
    """With room for one worker, a paused mission must not starve a new one."""

    centre = _centre(max_concurrent_missions=1)
    _, first = _create(centre, FIELD)
    _, second = _create(centre, TRIANGLE, pattern="PERIMETER")

    async def scenario() -> None:
        await centre.service.start_mission(first.mission_id)
        await _wait_until(lambda: centre.store.get(first.mission_id).progress > 5.0)
        await centre.service.pause_mission(first.mission_id)

        await centre.service.start_mission(second.mission_id)
        await centre.queue.join(second.mission_id)
        assert centre.store.get(second.mission_id).status is MissionStatus.COMPLETED
        assert centre.store.get(first.mission_id).status is MissionStatus.PAUSED

        await centre.service.resume_mission(first.mission_id)
        await centre.queue.join(first.mission_id)

    asyncio.run(scenario())

    assert centre.store.get(first.mission_id).status is MissionStatus.COMPLETED
    assert len(_events(centre, DRONE_POSITION, second.mission_id)) == _expected_ticks(
        centre, second.mission_id, 10.0
    )
    assert len(_events(centre, DRONE_POSITION, first.mission_id)) == _expected_ticks(
        centre, first.mission_id, 10.0
    )


def test_resume_racing_a_stopping_worker_still_flies() -> None:
    """Pause and resume back to back, before the worker has seen the pause."""

    centre = _centre()
    _, mission = _create(centre, FIELD)
    mission_id = mission.mission_id

    async def scenario() -> None:
        await centre.service.start_mission(mission_id)
        await _wait_until(lambda: centre.store.get(mission_id).progress > 5.0)
        await centre.service.pause_mission(mission_id)
        await centre.service.resume_mission(mission_id)
        await centre.queue.join(mission_id)

    asyncio.run(scenario())
    assert centre.store.get(mission_id).status is MissionStatus.COMPLETED
    assert len(_events(centre, DRONE_POSITION, mission_id)) == _expected_ticks(
        centre, mission_id, 10.0
    )


def test_worker_restarted_from_persisted_progress_continues_segment() -> None:
    """A fresh worker recovers its segment position from the stored distance."""

    centre = _centre()
    _, mission = _create(centre, FIELD)
    mission_id = mission.mission_id

    async def scenario() -> None:
        await centre.service.start_mission(mission_id)
        await _wait_until(lambda: centre.store.get(mission_id).current_waypoint >= 3)
        await centre.service.pause_mission(mission_id)
        await centre.queue.shutdown()

    asyncio.run(scenario())
    emitted = len(_events(centre, DRONE_POSITION, mission_id))
    progress_before = centre.store.get(mission_id).progress

    service = MissionService(
        centre.store, centre.fleet, centre.planner, telemetry=centre.telemetry
    )
    simulator = MissionSimulator(service, tick_seconds=0.0)

    async def restart() -> SimulationOutcome:
        queue = MissionQueue(simulator.run, retry_policy=RetryPolicy(backoff_seconds=0.0))
        service.attach_launcher(queue.enqueue)
        await service.resume_mission(mission_id)
        await queue.join(mission_id)
        return queue.result(mission_id)

    assert asyncio.run(restart()) is SimulationOutcome.COMPLETED

    finished = centre.store.get(mission_id)
    assert finished.status is MissionStatus.COMPLETED
    assert finished.progress >= progress_before
    positions = _events(centre, DRONE_POSITION, mission_id)
    assert emitted < len(positions) == _expected_ticks(centre, mission_id, 10.0)
    points = [waypoint.as_tuple() for waypoint in centre.store.waypoints(mission_id)]
    assert finished.distance_covered == pytest.approx(path_length(points))


def test_abort_stops_ticks_and_frees_drone() -> None:
    centre = _centre()
    drone, mission = _create(centre, FIELD)
    mission_id = mission.mission_id

    async def scenario() -> None:
        await centre.service.start_mission(mission_id)
        await _wait_until(lambda: len(_events(centre, DRONE_POSITION, mission_id)) >= 5)
        await centre.service.abort_mission(mission_id, "operator request")
        await centre.queue.join(mission_id)

    asyncio.run(scenario())

    aborted = centre.store.get(mission_id)
    assert aborted.status is MissionStatus.ABORTED
    assert aborted.status_reason == "operator request"
    assert centre.fleet.get_drone(drone.drone_id).status is DroneStatus.AVAILABLE
    assert centre.queue.result(mission_id) is SimulationOutcome.STOPPED

    abort_event = _events(centre, MISSION_STATUS, mission_id)[-1]
    assert abort_event.payload["status"] == "ABORTED"
    for event in _events(centre, DRONE_POSITION, mission_id):
        assert event.sequence < abort_event.sequence


def test_abort_while_paused_leaves_no_worker() -> None:
    centre = _centre()
    drone, mission = _create(centre, FIELD)
    mission_id = mission.mission_id

    async def scenario() -> None:
        await centre.service.start_mission(mission_id)
        await _wait_until(lambda: centre.store.get(mission_id).progress > 0)
        await centre.service.pause_mission(mission_id)
        await asyncio.sleep(0)
        await centre.service.abort_mission(mission_id)
        await centre.queue.join(mission_id)

    asyncio.run(scenario())
    assert centre.store.get(mission_id).status is MissionStatus.ABORTED
    assert not centre.queue.is_running(mission_id)
    assert centre.fleet.get_drone(drone.drone_id).status is DroneStatus.AVAILABLE


def test_abort_during_tick_wait_takes_effect_immediately() -> None:
    """With two-second ticks an abort wakes the worker instead of waiting out the tick."""

    centre = _centre(tick_seconds=2.0)
    drone, mission = _create(centre, FIELD)
    mission_id = mission.mission_id

    async def scenario() -> float:
        await centre.service.start_mission(mission_id)
        await _wait_until(lambda: len(_events(centre, DRONE_POSITION, mission_id)) >= 1)
        await asyncio.sleep(0.05)
        aborted_at = time.perf_counter()
        await centre.service.abort_mission(mission_id, "operator request")
        await centre.queue.join(mission_id)
        return time.perf_counter() - aborted_at

    elapsed = asyncio.run(scenario())
    assert elapsed < 0.5
    assert centre.queue.result(mission_id) is SimulationOutcome.STOPPED
    assert centre.fleet.get_drone(drone.drone_id).status is DroneStatus.AVAILABLE

    positions = _events(centre, DRONE_POSITION, mission_id)
    assert len(positions) == 1
    abort_event = _events(centre, MISSION_STATUS, mission_id)[-1]
    assert abort_event.payload["status"] == "ABORTED"
    assert positions[-1].sequence < abort_event.sequence


def test_finished_missions_release_their_bookkeeping() -> None:
    centre = _centre()
    _, completed = _create(centre, TRIANGLE, pattern="PERIMETER")
    _, aborted = _create(centre, FIELD)
    both = sorted([completed.mission_id, aborted.mission_id])

    async def scenario() -> None:
        await centre.service.start_mission(completed.mission_id)
        await centre.service.start_mission(aborted.mission_id)
        assert sorted(centre.service.tracked_missions()) == both
        assert sorted(centre.queue.running()) == both
        await centre.service.abort_mission(aborted.mission_id)
        await centre.queue.join()

    asyncio.run(scenario())
    assert centre.store.get(completed.mission_id).status is MissionStatus.COMPLETED
    assert centre.service.tracked_missions() == []
    assert centre.queue.running() == []
    assert centre.queue.result(completed.mission_id) is SimulationOutcome.COMPLETED


def test_low_battery_aborts_within_one_tick() -> None:
    centre = _centre()
    drone, mission = _create(centre, FIELD)
    centre.fleet.set_drone_battery(drone.drone_id, 10.35)
    mission_id = mission.mission_id

    async def scenario() -> None:
        await centre.service.start_mission(mission_id)
        await centre.queue.join(mission_id)

    asyncio.run(scenario())

    aborted = centre.store.get(mission_id)
    assert aborted.status is MissionStatus.ABORTED
    assert "battery" in aborted.status_reason
    assert isinstance(centre.queue.last_error(mission_id), BatteryExhausted)

    current = centre.fleet.get_drone(drone.drone_id)
    assert current.status is DroneStatus.AVAILABLE
    assert 0.0 <= current.battery < 10.0

    positions = _events(centre, DRONE_POSITION, mission_id)
    assert len(positions) == 4
    assert positions[-1].payload["battery"] < 10.0
    assert all(event.payload["battery"] >= 10.0 for event in positions[:-1])
    abort_event = _events(centre, MISSION_STATUS, mission_id)[-1]
    assert abort_event.payload["status"] == "ABORTED"
    assert positions[-1].sequence < abort_event.sequence


def test_simulator_ignores_terminal_mission() -> None:
    centre = _centre()
    _, mission = _create(centre, FIELD)
    asyncio.run(centre.service.abort_mission(mission.mission_id))
    outcome = asyncio.run(centre.simulator.run(mission.mission_id))
    assert outcome is SimulationOutcome.STOPPED
    assert _events(centre, DRONE_POSITION, mission.mission_id) == []
