"""Mini README: Geodesic and planar geometry primitives for survey planning.

Structure:
    * distance / bearing - great-circle measurements between (lon, lat) points.
    * area - spherical polygon area in square metres.
    * line_intersect - crossings of a line with a polygon boundary (shapely).
    * buffer - metric offset of a polygon, outward or inward (shapely, with a
      pyproj UTM projection).
    * interpolate / path_length / estimate_duration - helpers used by the
      simulation engine and mission statistics.

Conventions:
    Points are ``(longitude, latitude)`` pairs in degrees; 3-D points append an
    altitude in metres. Every polygon argument may be open or closed; rings are
    closed before use. Degenerate polygons (fewer than three distinct vertices
    or zero area) produce empty results instead of raising, so callers can
    treat "nothing to fly" uniformly.

    Sweep-line spacing converts metres to degrees with the flat 111 320
    m/degree equirectangular constant, which is accurate enough for
    field-sized survey areas and is not meant for continental extents or
    polar regions. Buffering projects to the UTM zone of the polygon instead.
"""

from __future__ import annotations

import math
from functools import partial
from typing import Iterable, List, Sequence, Tuple

import numpy as np
from pyproj import Transformer
from pyproj.enums import TransformDirection
from shapely.geometry import LineString, Point, Polygon
from shapely.geometry.polygon import orient
from shapely.ops import transform

Coordinate = Tuple[float, float]
Position = Tuple[float, float, float]

EARTH_RADIUS_M = 6_371_008.8
WGS84_RADIUS_M = 6_378_137.0
METERS_PER_DEGREE = 111_320.0


def close_ring(polygon: Iterable[Sequence[float]]) -> List[Coordinate]:
    """Return the polygon as a closed ring of float pairs."""

    ring = [(float(point[0]), float(point[1])) for point in polygon]
    if ring and ring[0] != ring[-1]:
        ring.append(ring[0])
    return ring


def _planar_area(ring: Sequence[Coordinate]) -> float:
    coords = np.asarray(ring[:-1], dtype=float)
    x, y = coords[:, 0], coords[:, 1]
    return float(abs(np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1))) / 2.0)


def is_degenerate(polygon: Iterable[Sequence[float]]) -> bool:
    """True when the polygon cannot enclose any area."""

    ring = close_ring(polygon)
    if len(set(ring)) < 3:
        return True
    return _planar_area(ring) == 0.0


def bounding_box(polygon: Iterable[Sequence[float]]) -> Tuple[float, float, float, float]:
    """Return ``(min_lon, min_lat, max_lon, max_lat)``."""

    coords = np.asarray(close_ring(polygon), dtype=float)
    if coords.size == 0:
        raise ValueError("Cannot compute the bounding box of an empty polygon")
    min_lon, min_lat = coords.min(axis=0)
    max_lon, max_lat = coords.max(axis=0)
    return float(min_lon), float(min_lat), float(max_lon), float(max_lat)


def _haversine(lon1, lat1, lon2, lat2):
    """Great-circle distance in metres; accepts scalars or numpy arrays."""

    lon1, lat1, lon2, lat2 = (np.radians(value) for value in (lon1, lat1, lon2, lat2))
    half_dlat = (lat2 - lat1) / 2.0
    half_dlon = (lon2 - lon1) / 2.0
    a = np.sin(half_dlat) ** 2 + np.cos(lat1) * np.cos(lat2) * np.sin(half_dlon) ** 2
    return 2.0 * EARTH_RADIUS_M * np.arctan2(np.sqrt(a), np.sqrt(1.0 - a))


def distance(start: Sequence[float], end: Sequence[float]) -> float:
    """Haversine distance in metres between two ``(lon, lat)`` points."""

    return float(_haversine(start[0], start[1], end[0], end[1]))


def bearing(start: Sequence[float], end: Sequence[float]) -> float:
    """Initial bearing from ``start`` to ``end`` in degrees, within ``[0, 360)``."""

    lon1, lat1, lon2, lat2 = map(math.radians, (start[0], start[1], end[0], end[1]))
    dlon = lon2 - lon1
    y = math.sin(dlon) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(dlon)
    return (math.degrees(math.atan2(y, x)) + 360.0) % 360.0


def area(polygon: Iterable[Sequence[float]]) -> float:
    """Area of the polygon on a spherical earth, in square metres."""

    ring = close_ring(polygon)
    if is_degenerate(ring):
        return 0.0
    coords = np.radians(np.asarray(ring[:-1], dtype=float))
    lon, lat = coords[:, 0], coords[:, 1]
    total = np.sum((np.roll(lon, -1) - np.roll(lon, 1)) * np.sin(lat))
    return float(abs(total) * WGS84_RADIUS_M**2 / 2.0)


def _collect_points(geometry) -> List[Coordinate]:
    if geometry.is_empty:
        return []
    if hasattr(geometry, "geoms"):
        points: List[Coordinate] = []
        for part in geometry.geoms:
            points.extend(_collect_points(part))
        return points
    if geometry.geom_type == "Point":
        return [(geometry.x, geometry.y)]
    # Overlap with a boundary edge: keep where the shared stretch starts and ends.
    coords = list(geometry.coords)
    return [coords[0], coords[-1]]


def line_intersect(
    line: Sequence[Sequence[float]], polygon: Iterable[Sequence[float]]
) -> List[Coordinate]:
    """Points where ``line`` crosses the polygon boundary, ordered along the line."""

    ring = close_ring(polygon)
    if is_degenerate(ring) or len(line) < 2:
        return []
    path = LineString([(float(point[0]), float(point[1])) for point in line])
    crossings = _collect_points(path.intersection(LineString(ring)))
    crossings.sort(key=lambda point: path.project(Point(point)))

    ordered: List[Coordinate] = []
    for point in crossings:
        if ordered and math.isclose(point[0], ordered[-1][0], abs_tol=1e-12) and math.isclose(
            point[1], ordered[-1][1], abs_tol=1e-12
        ):
            continue
        ordered.append(point)
    return ordered


def utm_transformer(longitude: float, latitude: float) -> Transformer:
    """WGS84 to UTM transformer for the zone containing the point."""

    zone = int(math.floor((longitude + 180.0) / 6.0)) % 60 + 1
    epsg = (32700 if latitude < 0 else 32600) + zone
    return Transformer.from_crs("EPSG:4326", f"EPSG:{epsg}", always_xy=True)


def buffer(polygon: Iterable[Sequence[float]], offset_m: float) -> List[Coordinate]:
    """Offset the polygon by ``offset_m`` metres and return the closed outer ring.

    Positive offsets grow the polygon, negative ones shrink it. The offset is
    applied in the UTM zone of the polygon's centroid. An inset that
    consumes the whole polygon returns an empty list; an inset that splits
    it keeps the largest remaining part.
    """

    ring = close_ring(polygon)
    if is_degenerate(ring):
        return []
    shape = Polygon(ring)
    if not shape.is_valid:
        shape = shape.buffer(0)
    transformer = utm_transformer(shape.centroid.x, shape.centroid.y)
    to_degrees = partial(transformer.transform, direction=TransformDirection.INVERSE)

    offset = transform(transformer.transform, shape).buffer(offset_m, join_style=2)
    if offset.is_empty:
        return []
    if offset.geom_type == "MultiPolygon":
        offset = max(offset.geoms, key=lambda part: part.area)
    result = transform(to_degrees, orient(offset, sign=1.0))
    return [(float(x), float(y)) for x, y in result.exterior.coords]


def interpolate(start: Sequence[float], end: Sequence[float], progress: float) -> Position:
    """Linear position between two 3-D points; exact at progress 0 and 1."""

    t = min(1.0, max(0.0, float(progress)))
    return tuple(a * (1.0 - t) + b * t for a, b in zip(start, end))  # type: ignore[return-value]


def path_length(points: Sequence[Sequence[float]]) -> float:
    """Sum of great-circle leg lengths along ``points`` in metres."""

    if len(points) < 2:
        return 0.0
    coords = np.asarray([(point[0], point[1]) for point in points], dtype=float)
    legs = _haversine(coords[:-1, 0], coords[:-1, 1], coords[1:, 0], coords[1:, 1])
    return float(np.sum(legs))


def estimate_duration(points: Sequence[Sequence[float]], speed: float) -> float:
    """Seconds needed to fly ``points`` at a constant ``speed`` in m/s."""

    if speed <= 0:
        raise ValueError("Speed must be positive to estimate flight time")
    return path_length(points) / speed
