"""Mini README: Route planning subsystem for survey mission design.

Exports the planner and the path containers consumed by the mission
service and the HTTP interface.
"""

from .planner import FlightPath, FlightWaypoint, PathPattern, RoutePlanner, line_spacing_m

__all__ = ["FlightPath", "FlightWaypoint", "PathPattern", "RoutePlanner", "line_spacing_m"]
