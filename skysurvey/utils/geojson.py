"""Mini README: GeoJSON helpers for survey areas and flight paths.

``polygon_from_geojson`` accepts a Polygon geometry or a Feature wrapping
one and returns the outer ring as ``(longitude, latitude)`` pairs; holes are
ignored. ``path_to_geojson`` renders a planned path as a LineString Feature
so it can be dropped onto any web map.

Keeping the logic isolated avoids importing web framework dependencies when
the CLI or the tests only need the parsing.
"""

from __future__ import annotations

import json
from typing import Dict, List, Tuple

from ..route_planning import FlightPath


def polygon_from_geojson(area_geojson: str) -> List[Tuple[float, float]]:
    """Validate GeoJSON and return the polygon's outer ring."""

    try:
        geojson = json.loads(area_geojson)
    except json.JSONDecodeError as error:
        raise ValueError("GeoJSON payload is invalid JSON") from error

    if not isinstance(geojson, dict):
        raise ValueError("GeoJSON payload must be an object")
    if geojson.get("type") == "FeatureCollection":
        features = geojson.get("features") or []
        if not features:
            raise ValueError("FeatureCollection contains no features")
        geojson = features[0]
    if geojson.get("type") == "Feature":
        geometry = geojson.get("geometry") or {}
    else:
        geometry = geojson

    if geometry.get("type") != "Polygon":
        raise ValueError("Only polygon GeoJSON payloads are supported")

    coordinates = geometry.get("coordinates")
    if not coordinates or not coordinates[0]:
        raise ValueError("Polygon coordinates are required")

    try:
        ring = [(float(point[0]), float(point[1])) for point in coordinates[0]]
    except (TypeError, ValueError, IndexError) as error:
        raise ValueError("Polygon positions must be [longitude, latitude] pairs") from error
    if len(ring) < 3:
        raise ValueError("Polygon ring needs at least three positions")
    return ring


def path_to_geojson(path: FlightPath) -> Dict[str, object]:
    """Return ``path`` as a GeoJSON LineString Feature."""

    return {
        "type": "Feature",
        "geometry": {
            "type": "LineString",
            "coordinates": [list(waypoint.as_tuple()) for waypoint in path.waypoints],
        },
        "properties": {
            "description": path.description,
            "waypoints": len(path),
            "length_m": path.length_m(),
        },
    }
