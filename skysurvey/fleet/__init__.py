"""Mini README: Fleet subsystem package initialiser.

The registry stands in for the external fleet service: the mission engine
reads drones and pushes status, position and battery updates through it.
"""

from .registry import Drone, DroneStatus, FleetRegistry, FleetStatistics

__all__ = ["Drone", "DroneStatus", "FleetRegistry", "FleetStatistics"]
