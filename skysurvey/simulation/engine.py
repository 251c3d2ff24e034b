"""Mini README: Real-time mission flight simulation.

Structure:
    * SimulationOutcome - how a worker run ended.
    * MissionSimulator - flies one mission per ``run`` call.

Each ``run`` owns the state of its flight (segment cursor, distance flown,
tick counter); nothing is shared between missions. One tick equals one
simulated second and is paced by ``tick_seconds`` of wall-clock time. Per
tick, while holding the mission lock, the worker:

    1. re-reads the mission status and ends the run unless it is ACTIVE;
    2. interpolates the drone position along the current segment and pushes
       position and battery to the fleet registry;
    3. publishes ``drone:position`` and aborts the mission when the battery
       fell below the low-battery threshold;
    4. persists progress, current waypoint and distance flown, then publishes
       ``mission:progress`` with an ETA;
    5. on the last step of a segment, marks the next waypoint reached (the
       departure waypoint is marked on the first tick).

Pausing ends the run and frees the worker's queue slot; resuming launches a
new worker. A worker started for a mission that already has progress
(after a pause or a restart) recovers its position from the persisted
waypoint index and distance flown. Unexpected errors abort the mission
before a ``WorkerFailure`` is raised to the job queue.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from ..errors import BatteryExhausted, WorkerFailure
from ..fleet import FleetRegistry
from ..geometry import distance, interpolate, path_length
from ..geometry.kernel import Position
from ..logging_utils import get_logger
from ..missions import (
    TERMINAL_STATUSES,
    MissionControl,
    MissionService,
    MissionStatus,
    MissionStore,
)
from ..telemetry import DRONE_POSITION, MISSION_PROGRESS, TelemetrySink

LOGGER = get_logger(__name__)


class SimulationOutcome(str, Enum):
    COMPLETED = "completed"
    STOPPED = "stopped"


@dataclass(slots=True)
class _FlightState:
    mission_id: str
    drone_id: str
    speed: float
    estimated_time: float
    positions: List[Position]
    index: int
    flown_to_index: float
    tick: int = 0

    @property
    def total(self) -> int:
        return len(self.positions)


class MissionSimulator:
    """Advance drones along their mission waypoints in real time."""

    def __init__(
        self,
        service: MissionService,
        *,
        store: Optional[MissionStore] = None,
        fleet: Optional[FleetRegistry] = None,
        telemetry: Optional[TelemetrySink] = None,
        tick_seconds: float = 1.0,
        battery_drain_per_tick: float = 0.1,
        low_battery_threshold: float = 10.0,
    ) -> None:
        self._service = service
        self._store = store or service.store
        self._fleet = fleet or service.fleet
        self._telemetry = telemetry or service.telemetry
        self.tick_seconds = tick_seconds
        self.battery_drain_per_tick = battery_drain_per_tick
        self.low_battery_threshold = low_battery_threshold

    async def run(self, mission_id: str) -> SimulationOutcome:
        """Fly ``mission_id`` until it completes or is no longer ACTIVE."""

        mission = self._store.get(mission_id)
        waypoints = self._store.waypoints(mission_id)
        self._fleet.get_drone(mission.drone_id)
        if mission.status in TERMINAL_STATUSES:
            LOGGER.info("Mission %s is %s; nothing to simulate", mission_id, mission.status.value)
            return SimulationOutcome.STOPPED

        positions = [waypoint.as_tuple() for waypoint in waypoints]
        index = min(mission.current_waypoint, max(0, len(positions) - 1))
        state = _FlightState(
            mission_id=mission_id,
            drone_id=mission.drone_id,
            speed=mission.speed,
            estimated_time=mission.estimated_time,
            positions=positions,
            index=index,
            flown_to_index=path_length(positions[: index + 1]),
        )
        LOGGER.info(
            "Simulating mission %s from waypoint %s/%s", mission_id, index, state.total
        )
        try:
            return await self._fly(state, resume_offset=mission.distance_covered - state.flown_to_index)
        except BatteryExhausted:
            raise
        except Exception as error:
            LOGGER.exception("Simulation of mission %s failed", mission_id)
            await self._recover(mission_id, f"worker failure: {error}")
            raise WorkerFailure(mission_id, error) from error

    async def abandon(self, mission_id: str, error: BaseException) -> None:
        """Abort a mission whose worker could not be started."""

        LOGGER.error("Giving up on mission %s: %s", mission_id, error)
        await self._recover(mission_id, f"worker could not start: {error}")

    async def _fly(self, state: _FlightState, *, resume_offset: float) -> SimulationOutcome:
        control = self._service.control(state.mission_id)
        while state.index < state.total - 1:
            start = state.positions[state.index]
            end = state.positions[state.index + 1]
            segment = distance(start, end)
            steps = max(1, math.ceil(segment / state.speed))
            first_step = 1
            if resume_offset > 0 and segment > 0:
                first_step = min(steps, round(resume_offset / segment * steps)) + 1
            resume_offset = 0.0

            for step in range(first_step, steps + 1):
                if not await self._hold_active(control, state.mission_id):
                    return SimulationOutcome.STOPPED
                try:
                    battery = self._step(state, start, end, segment, step / steps, step == steps)
                finally:
                    control.lock.release()
                if battery is not None:
                    raise BatteryExhausted(state.mission_id, state.drone_id, battery)
                await control.wait_tick(self.tick_seconds)

            if first_step > steps:
                # Restarted exactly at the end of a segment.
                self._reach_next_waypoint(state, segment)

        if not await self._hold_active(control, state.mission_id):
            return SimulationOutcome.STOPPED
        try:
            self._service.finish_completed(self._store.get(state.mission_id))
        finally:
            control.lock.release()
        return SimulationOutcome.COMPLETED

    async def _hold_active(self, control: MissionControl, mission_id: str) -> bool:
        """Acquire the mission lock with the mission ACTIVE.

        Returns True with the lock held, or False (lock released) when the
        mission is paused or finished and the worker must stop.
        """

        await control.lock.acquire()
        try:
            status = self._store.get(mission_id).status
        except BaseException:
            control.lock.release()
            raise
        if status is MissionStatus.ACTIVE:
            control.wake.clear()
            return True
        control.lock.release()
        if status is MissionStatus.PAUSED:
            LOGGER.info("Mission %s paused; worker released until resume", mission_id)
        else:
            LOGGER.info("Mission %s is %s; stopping worker", mission_id, status.value)
        return False

    def _step(
        self,
        state: _FlightState,
        start: Position,
        end: Position,
        segment: float,
        fraction: float,
        final: bool,
    ) -> Optional[float]:
        """Emit one tick; returns the battery level when it forced an abort."""

        state.tick += 1
        if state.tick == 1 and state.index == 0:
            # Leaving the first waypoint counts as having reached it.
            self._store.mark_waypoint_reached(state.mission_id, 0, datetime.now(timezone.utc))
        longitude, latitude, altitude = interpolate(start, end, fraction)
        self._fleet.set_drone_position(
            state.drone_id, longitude=longitude, latitude=latitude, altitude=altitude
        )
        drone = self._fleet.get_drone(state.drone_id)
        drone = self._fleet.set_drone_battery(
            state.drone_id, drone.battery - self.battery_drain_per_tick
        )
        self._publish(
            DRONE_POSITION,
            {
                "drone_id": state.drone_id,
                "mission_id": state.mission_id,
                "tick": state.tick,
                "longitude": longitude,
                "latitude": latitude,
                "altitude": altitude,
                "battery": drone.battery,
                "speed": state.speed,
            },
        )
        if drone.battery < self.low_battery_threshold:
            LOGGER.warning(
                "Drone %s battery at %.1f%%; aborting mission %s",
                state.drone_id,
                drone.battery,
                state.mission_id,
            )
            self._service.finish_aborted(
                self._store.get(state.mission_id),
                f"battery exhausted ({drone.battery:.1f}%)",
            )
            return drone.battery

        completed = state.index + fraction
        flown = state.flown_to_index + segment * fraction
        progress = completed / state.total * 100
        self._service.record_progress(
            state.mission_id,
            progress=progress,
            current_waypoint=state.index,
            distance_covered=flown,
        )
        self._publish(
            MISSION_PROGRESS,
            {
                "mission_id": state.mission_id,
                "tick": state.tick,
                "progress": progress,
                "current_waypoint": state.index,
                "total_waypoints": state.total,
                "distance_covered": flown,
                "estimated_time_remaining": (state.total - completed)
                / state.total
                * state.estimated_time,
            },
        )
        LOGGER.debug(
            "Mission %s tick %s: segment %s %.0f%% battery %.1f%%",
            state.mission_id,
            state.tick,
            state.index,
            fraction * 100,
            drone.battery,
        )
        if final:
            self._reach_next_waypoint(state, segment)
        return None

    def _reach_next_waypoint(self, state: _FlightState, segment: float) -> None:
        state.index += 1
        state.flown_to_index += segment
        self._store.mark_waypoint_reached(
            state.mission_id, state.index, datetime.now(timezone.utc)
        )
        self._store.update_fields(state.mission_id, current_waypoint=state.index)

    async def _recover(self, mission_id: str, reason: str) -> None:
        control = self._service.control(mission_id)
        async with control.lock:
            mission = self._store.get(mission_id)
            if mission.status not in TERMINAL_STATUSES:
                self._service.finish_aborted(mission, reason)

    def _publish(self, topic: str, payload: dict) -> None:
        if self._telemetry is not None:
            self._telemetry.publish(topic, payload)
