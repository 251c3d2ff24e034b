"""Mini README: In-memory fleet registry.

Structure:
    * DroneStatus - operational states a drone can be in.
    * Drone - mutable record of a drone's position, battery and status.
    * FleetStatistics - per-status drone counts.
    * FleetRegistry - registration, lookup, editing and removal, plus the
      per-tick update calls of the simulators.

The simulators never own drones. The mission engine calls
``set_drone_position`` and ``set_drone_battery`` every tick for drones in a
mission, the idle simulator does the same for AVAILABLE drones, and the
mission service flips the status on start, abort and completion. Status
changes publish refreshed fleet statistics when a telemetry sink is
attached.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from itertools import count
from typing import Dict, Iterable, List, Optional

from ..errors import DroneNotFound, DroneUnavailable
from ..logging_utils import get_logger
from ..telemetry import FLEET_STATS, TelemetrySink

LOGGER = get_logger(__name__)

_EDITABLE_FIELDS = frozenset(
    {
        "name",
        "model",
        "status",
        "battery",
        "latitude",
        "longitude",
        "altitude",
        "speed",
        "max_speed",
        "max_altitude",
    }
)


class DroneStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    IN_MISSION = "IN_MISSION"
    CHARGING = "CHARGING"
    MAINTENANCE = "MAINTENANCE"
    OFFLINE = "OFFLINE"


@dataclass(slots=True)
class Drone:
    """Drone record as seen by the mission engine."""

    drone_id: str
    name: str
    model: str
    status: DroneStatus = DroneStatus.AVAILABLE
    battery: float = 100.0
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    altitude: Optional[float] = None
    speed: float = 10.0
    max_speed: float = 15.0
    max_altitude: float = 120.0

    def as_dict(self) -> Dict[str, object]:
        data = asdict(self)
        data["status"] = self.status.value
        return data


@dataclass(slots=True, frozen=True)
class FleetStatistics:
    total: int
    available: int
    in_mission: int
    charging: int
    maintenance: int
    offline: int

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


class FleetRegistry:
    """Simple registry mapping drone identifiers to drone records."""

    def __init__(
        self,
        drones: Optional[Iterable[Drone]] = None,
        *,
        telemetry: Optional[TelemetrySink] = None,
    ) -> None:
        self._drones: Dict[str, Drone] = {}
        self._ids = count(1)
        self._telemetry = telemetry
        for drone in drones or ():
            self._drones[drone.drone_id] = drone
        LOGGER.debug("Fleet registry initialised with %s drones", len(self._drones))

    def register_drone(
        self,
        name: str,
        model: str,
        *,
        speed: float = 10.0,
        max_speed: float = 15.0,
        max_altitude: float = 120.0,
        drone_id: Optional[str] = None,
    ) -> Drone:
        """Add a new AVAILABLE drone with a full battery."""

        identifier = drone_id or self._next_id()
        if identifier in self._drones:
            raise ValueError(f"Drone {identifier} already registered")
        drone = Drone(
            drone_id=identifier,
            name=name,
            model=model,
            speed=speed,
            max_speed=max_speed,
            max_altitude=max_altitude,
        )
        self._drones[identifier] = drone
        LOGGER.info("Registered drone '%s' (%s) as %s", name, model, identifier)
        self._publish_statistics()
        return drone

    def _next_id(self) -> str:
        identifier = f"drone_{next(self._ids):04d}"
        while identifier in self._drones:
            identifier = f"drone_{next(self._ids):04d}"
        return identifier

    def get_drone(self, drone_id: str) -> Drone:
        if drone_id not in self._drones:
            raise DroneNotFound(drone_id)
        return self._drones[drone_id]

    def update_drone(self, drone_id: str, **fields: object) -> Drone:
        """Apply a partial update to a drone record.

        A drone flying a mission keeps IN_MISSION until the mission ends, and
        only the mission service may put a drone into IN_MISSION.
        """

        unknown = set(fields) - _EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Drone fields cannot be updated: {', '.join(sorted(unknown))}")
        drone = self.get_drone(drone_id)
        status = fields.pop("status", None)
        if status is not None:
            status = DroneStatus(status)
            if status is not drone.status and DroneStatus.IN_MISSION in (status, drone.status):
                raise DroneUnavailable(drone_id, drone.status.value)
        if fields.get("battery") is not None:
            fields["battery"] = min(100.0, max(0.0, float(fields["battery"])))
        for name, value in fields.items():
            setattr(drone, name, value)
        if status is not None:
            self.set_drone_status(drone_id, status)
        LOGGER.info("Updated drone %s: %s", drone_id, ", ".join(sorted(fields)) or "status")
        return drone

    def remove_drone(self, drone_id: str) -> Drone:
        """Deregister a drone that is not flying a mission."""

        drone = self.get_drone(drone_id)
        if drone.status is DroneStatus.IN_MISSION:
            raise DroneUnavailable(drone_id, drone.status.value)
        del self._drones[drone_id]
        LOGGER.info("Removed drone '%s' (%s)", drone.name, drone_id)
        self._publish_statistics()
        return drone

    def list_drones(self, status: Optional[DroneStatus] = None) -> List[Drone]:
        drones = sorted(self._drones.values(), key=lambda drone: drone.drone_id)
        if status is None:
            return drones
        return [drone for drone in drones if drone.status is status]

    def set_drone_status(self, drone_id: str, status: DroneStatus) -> Drone:
        drone = self.get_drone(drone_id)
        if drone.status is not status:
            LOGGER.info("Drone %s status %s -> %s", drone_id, drone.status.value, status.value)
            drone.status = status
            self._publish_statistics()
        return drone

    def set_drone_position(
        self, drone_id: str, *, longitude: float, latitude: float, altitude: float
    ) -> Drone:
        drone = self.get_drone(drone_id)
        drone.longitude = longitude
        drone.latitude = latitude
        drone.altitude = altitude
        return drone

    def set_drone_battery(self, drone_id: str, battery: float) -> Drone:
        drone = self.get_drone(drone_id)
        drone.battery = min(100.0, max(0.0, battery))
        return drone

    def fleet_statistics(self) -> FleetStatistics:
        counts = {status: 0 for status in DroneStatus}
        for drone in self._drones.values():
            counts[drone.status] += 1
        return FleetStatistics(
            total=len(self._drones),
            available=counts[DroneStatus.AVAILABLE],
            in_mission=counts[DroneStatus.IN_MISSION],
            charging=counts[DroneStatus.CHARGING],
            maintenance=counts[DroneStatus.MAINTENANCE],
            offline=counts[DroneStatus.OFFLINE],
        )

    def _publish_statistics(self) -> None:
        if self._telemetry is not None:
            self._telemetry.publish(FLEET_STATS, self.fleet_statistics().as_dict())
