"""Mini README: Simulation subsystem.

``MissionSimulator`` flies a mission tick by tick; ``MissionQueue`` makes sure
exactly one simulator run exists per started mission. ``IdleFleetSimulator``
keeps drones that are not on a mission drifting.
"""

from .engine import MissionSimulator, SimulationOutcome
from .idle import IdleFleetSimulator
from .queue import MissionQueue, RetryPolicy

__all__ = [
    "IdleFleetSimulator",
    "MissionQueue",
    "MissionSimulator",
    "RetryPolicy",
    "SimulationOutcome",
]
