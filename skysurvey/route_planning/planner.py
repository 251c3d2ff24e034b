"""Mini README: Survey flight route planning.

Structure:
    * PathPattern - supported survey patterns.
    * FlightWaypoint - dataclass capturing a 3-D waypoint.
    * FlightPath - container aggregating waypoints and metadata.
    * line_spacing_m - sweep spacing derived from altitude and overlap.
    * RoutePlanner - GRID, PERIMETER and CROSSHATCH generators.

GRID sweeps the polygon's bounding box in parallel lines and keeps the part
of each line that lies between the outermost boundary crossings, flying the
lines alternately west-to-east and east-to-west. PERIMETER flies an inset
copy of the boundary. CROSSHATCH appends a second pass to the grid; by
default the second pass repeats the latitude sweep, and
``crosshatch_rotated=True`` sweeps along longitude instead.

``estimate_waypoints`` sizes a request without planning it. An empty
``FlightPath`` is the planner's way of saying the area cannot be
surveyed; callers decide whether that is an error.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Iterator, List, Sequence, Tuple

from ..geometry import (
    METERS_PER_DEGREE,
    bounding_box,
    buffer,
    close_ring,
    is_degenerate,
    line_intersect,
    path_length,
)
from ..logging_utils import get_logger

LOGGER = get_logger(__name__)

DEFAULT_PERIMETER_OFFSET_M = -10.0


def _frange(start: float, stop: float, step: float) -> Iterator[float]:
    """Yield ``start + n * step`` up to and including ``stop``."""

    index = 0
    value = start
    while value <= stop:
        yield value
        index += 1
        value = start + index * step


class PathPattern(str, Enum):
    """Flight patterns the planner can generate."""

    GRID = "GRID"
    PERIMETER = "PERIMETER"
    CROSSHATCH = "CROSSHATCH"

    @classmethod
    def from_str(cls, value: str) -> "PathPattern":
        """Coerce arbitrary casing into a valid pattern."""

        try:
            return cls(value.strip().upper())
        except (ValueError, AttributeError) as error:
            raise ValueError(f"Unsupported path pattern: {value}") from error


@dataclass(slots=True, frozen=True)
class FlightWaypoint:
    """Single waypoint coordinate."""

    longitude: float
    latitude: float
    altitude: float

    def as_tuple(self) -> Tuple[float, float, float]:
        return (self.longitude, self.latitude, self.altitude)


@dataclass(slots=True)
class FlightPath:
    """Ordered collection of waypoints forming a mission path."""

    waypoints: List[FlightWaypoint] = field(default_factory=list)
    description: str = ""

    def __len__(self) -> int:
        return len(self.waypoints)

    @property
    def is_empty(self) -> bool:
        return not self.waypoints

    def length_m(self) -> float:
        """Total flown distance along the path."""

        return path_length([waypoint.as_tuple() for waypoint in self.waypoints])

    def as_commands(self, cruise_speed: float) -> List[dict]:
        """Convert waypoints to command dictionaries for UI previews."""

        commands: List[dict] = []
        for sequence, waypoint in enumerate(self.waypoints):
            commands.append(
                {
                    "action": "navigate_to",
                    "sequence": sequence,
                    "longitude": waypoint.longitude,
                    "latitude": waypoint.latitude,
                    "altitude": waypoint.altitude,
                    "cruise_speed": cruise_speed,
                }
            )
        return commands


def line_spacing_m(altitude: float, overlap_percent: float) -> float:
    """Distance between sweep lines for a camera flying at ``altitude``."""

    return altitude * 0.5 * (1 - overlap_percent / 100)


class RoutePlanner:
    """Generate survey routes over polygon areas."""

    def __init__(
        self,
        *,
        perimeter_offset_m: float = DEFAULT_PERIMETER_OFFSET_M,
        crosshatch_rotated: bool = False,
    ) -> None:
        self.perimeter_offset_m = perimeter_offset_m
        self.crosshatch_rotated = crosshatch_rotated
        LOGGER.debug(
            "Initialised RoutePlanner with perimeter_offset_m=%s crosshatch_rotated=%s",
            perimeter_offset_m,
            crosshatch_rotated,
        )

    def generate_path(
        self,
        polygon: Iterable[Sequence[float]],
        pattern: PathPattern,
        altitude: float,
        overlap_percent: float,
    ) -> FlightPath:
        """Dispatch to the generator for ``pattern``."""

        pattern = PathPattern(pattern)
        ring = close_ring(polygon)
        if is_degenerate(ring):
            LOGGER.info("Survey polygon is degenerate; no %s path generated", pattern.value)
            return FlightPath(description=f"{pattern.value} survey (empty)")

        spacing = line_spacing_m(altitude, overlap_percent)
        if pattern is PathPattern.PERIMETER:
            path = self.perimeter_survey(ring, altitude)
        elif pattern is PathPattern.CROSSHATCH:
            path = self.crosshatch_survey(ring, altitude, spacing)
        else:
            path = self.grid_survey(ring, altitude, spacing)
        LOGGER.info(
            "Generated %s path with %s waypoints (altitude=%s overlap=%s%%)",
            pattern.value,
            len(path),
            altitude,
            overlap_percent,
        )
        return path

    def estimate_waypoints(
        self,
        polygon: Iterable[Sequence[float]],
        pattern: PathPattern,
        altitude: float,
        overlap_percent: float,
    ) -> int:
        """Estimate how many waypoints ``generate_path`` returns, from the bounding box alone."""

        pattern = PathPattern(pattern)
        ring = close_ring(polygon)
        if is_degenerate(ring):
            return 0
        if pattern is PathPattern.PERIMETER:
            return len(ring)
        spacing = line_spacing_m(altitude, overlap_percent)
        if spacing <= 0:
            return 0
        spacing_degrees = spacing / METERS_PER_DEGREE
        min_lon, min_lat, max_lon, max_lat = bounding_box(ring)
        rows = 2 * (int((max_lat - min_lat) / spacing_degrees) + 1)
        if pattern is PathPattern.GRID:
            return rows
        if self.crosshatch_rotated:
            return rows + 2 * (int((max_lon - min_lon) / spacing_degrees) + 1)
        return 2 * rows

    def grid_survey(
        self,
        polygon: Iterable[Sequence[float]],
        altitude: float,
        spacing_m: float,
        *,
        along_longitude: bool = False,
    ) -> FlightPath:
        """Create a boustrophedon pattern clipped to the polygon.

        Sweep lines run west-east and advance northwards; with
        ``along_longitude`` they run south-north and advance eastwards.
        """

        ring = close_ring(polygon)
        description = "Grid survey pattern"
        if spacing_m <= 0 or is_degenerate(ring):
            LOGGER.warning("Grid survey skipped: spacing=%s degenerate=%s", spacing_m, is_degenerate(ring))
            return FlightPath(description=description)

        spacing_degrees = spacing_m / METERS_PER_DEGREE
        min_lon, min_lat, max_lon, max_lat = bounding_box(ring)
        waypoints: List[FlightWaypoint] = []
        forward = True
        if along_longitude:
            levels = _frange(min_lon, max_lon, spacing_degrees)
        else:
            levels = _frange(min_lat, max_lat, spacing_degrees)
        for level in levels:
            if along_longitude:
                line = [(level, min_lat), (level, max_lat)]
            else:
                line = [(min_lon, level), (max_lon, level)]
            crossings = line_intersect(line, ring)
            if len(crossings) >= 2:
                start, end = crossings[0], crossings[-1]
                if not forward:
                    start, end = end, start
                waypoints.append(FlightWaypoint(start[0], start[1], altitude))
                waypoints.append(FlightWaypoint(end[0], end[1], altitude))
            forward = not forward
        return FlightPath(waypoints=waypoints, description=description)

    def perimeter_survey(self, polygon: Iterable[Sequence[float]], altitude: float) -> FlightPath:
        """Fly the boundary inset by ``perimeter_offset_m``."""

        ring = close_ring(polygon)
        if is_degenerate(ring):
            return FlightPath(description="Perimeter survey pattern")
        boundary = ring
        if self.perimeter_offset_m != 0:
            inset = buffer(ring, self.perimeter_offset_m)
            if inset:
                boundary = inset
            else:
                LOGGER.info(
                    "Perimeter offset %sm collapses the area; flying the original boundary",
                    self.perimeter_offset_m,
                )
        waypoints = [FlightWaypoint(lon, lat, altitude) for lon, lat in boundary]
        return FlightPath(waypoints=waypoints, description="Perimeter survey pattern")

    def crosshatch_survey(
        self, polygon: Iterable[Sequence[float]], altitude: float, spacing_m: float
    ) -> FlightPath:
        """Grid pass followed by a second pass over the same area."""

        ring = close_ring(polygon)
        first = self.grid_survey(ring, altitude, spacing_m)
        second = self.grid_survey(ring, altitude, spacing_m, along_longitude=self.crosshatch_rotated)
        return FlightPath(
            waypoints=first.waypoints + second.waypoints,
            description="Crosshatch survey pattern",
        )

