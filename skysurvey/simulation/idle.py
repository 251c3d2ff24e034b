"""Mini README: Background drift of drones that are not flying a mission.

Structure:
    * IdleFleetSimulator - periodic task moving AVAILABLE drones and draining
      their batteries so dashboards show a live fleet.

Every ``interval_seconds`` each AVAILABLE drone moves ``step_degrees`` along
its current heading, changing heading at random one time in five. Its
battery drains by ``drain_per_update`` but never below ``battery_floor``;
once it falls under ``recharge_below`` the drone is treated as swapped to a
full pack. Drones without a position start from ``home``. Headings are
owned by the simulator task and forgotten when a drone leaves AVAILABLE.
Each update is published as ``drone:position`` without a mission id.
"""

from __future__ import annotations

import asyncio
import math
from typing import Dict, Optional, Tuple

import numpy as np

from ..fleet import DroneStatus, FleetRegistry
from ..logging_utils import get_logger
from ..telemetry import DRONE_POSITION, TelemetrySink

LOGGER = get_logger(__name__)

DEFAULT_HOME: Tuple[float, float] = (77.5946, 12.9716)


class IdleFleetSimulator:
    """Drift AVAILABLE drones around their last known position."""

    def __init__(
        self,
        fleet: FleetRegistry,
        *,
        telemetry: Optional[TelemetrySink] = None,
        interval_seconds: float = 2.0,
        step_degrees: float = 0.0001,
        drain_per_update: float = 0.05,
        battery_floor: float = 20.0,
        recharge_below: float = 25.0,
        home: Tuple[float, float] = DEFAULT_HOME,
        seed: Optional[int] = None,
    ) -> None:
        self._fleet = fleet
        self._telemetry = telemetry
        self.interval_seconds = interval_seconds
        self.step_degrees = step_degrees
        self.drain_per_update = drain_per_update
        self.battery_floor = battery_floor
        self.recharge_below = recharge_below
        self.home = home
        self._rng = np.random.default_rng(seed)
        self._headings: Dict[str, float] = {}
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            LOGGER.warning("Idle fleet simulator already running")
            return
        self._task = asyncio.get_running_loop().create_task(self._loop(), name="idle-fleet")
        LOGGER.info("Idle fleet simulator started (every %ss)", self.interval_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self._headings.clear()
        LOGGER.info("Idle fleet simulator stopped")

    def step(self) -> int:
        """Move every AVAILABLE drone once; returns how many moved."""

        available = self._fleet.list_drones(DroneStatus.AVAILABLE)
        idle_ids = {drone.drone_id for drone in available}
        for drone_id in list(self._headings):
            if drone_id not in idle_ids:
                del self._headings[drone_id]

        for drone in available:
            heading = self._headings.get(drone.drone_id)
            if heading is None or self._rng.random() < 0.2:
                heading = float(self._rng.uniform(0.0, 2 * math.pi))
                self._headings[drone.drone_id] = heading
            longitude = (drone.longitude if drone.longitude is not None else self.home[0]) + (
                math.cos(heading) * self.step_degrees
            )
            latitude = (drone.latitude if drone.latitude is not None else self.home[1]) + (
                math.sin(heading) * self.step_degrees
            )
            altitude = drone.altitude if drone.altitude is not None else 0.0
            self._fleet.set_drone_position(
                drone.drone_id, longitude=longitude, latitude=latitude, altitude=altitude
            )
            battery = max(self.battery_floor, drone.battery - self.drain_per_update)
            if battery < self.recharge_below:
                battery = 100.0
            drone = self._fleet.set_drone_battery(drone.drone_id, battery)
            if self._telemetry is not None:
                self._telemetry.publish(
                    DRONE_POSITION,
                    {
                        "drone_id": drone.drone_id,
                        "mission_id": None,
                        "longitude": longitude,
                        "latitude": latitude,
                        "altitude": altitude,
                        "battery": drone.battery,
                        "speed": drone.speed,
                    },
                )
        LOGGER.debug("Idle fleet update moved %s drones", len(available))
        return len(available)

    async def _loop(self) -> None:
        while True:
            try:
                self.step()
            except Exception:
                LOGGER.exception("Idle fleet update failed")
            await asyncio.sleep(self.interval_seconds)
