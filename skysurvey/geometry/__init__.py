"""Mini README: Geometry kernel package.

Exposes the great-circle, area, intersection and buffering helpers used by
the route planner and the simulation engine.
"""

from .kernel import (
    METERS_PER_DEGREE,
    area,
    bearing,
    bounding_box,
    buffer,
    close_ring,
    distance,
    estimate_duration,
    interpolate,
    is_degenerate,
    line_intersect,
    path_length,
)

__all__ = [
    "METERS_PER_DEGREE",
    "area",
    "bearing",
    "bounding_box",
    "buffer",
    "close_ring",
    "distance",
    "estimate_duration",
    "interpolate",
    "is_degenerate",
    "line_intersect",
    "path_length",
]
