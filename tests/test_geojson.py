"""Mini README: Tests for the GeoJSON helpers.

Confirms polygons are extracted from bare geometries, Features and
FeatureCollections, and that anything else is rejected before planning.
"""

from __future__ import annotations

import json

import pytest

from skysurvey.route_planning import FlightPath, FlightWaypoint
from skysurvey.utils.geojson import path_to_geojson, polygon_from_geojson

RING = [[0.0, 0.0], [0.001, 0.0], [0.001, 0.001], [0.0, 0.001], [0.0, 0.0]]


def test_polygon_from_geojson_accepts_wrappers() -> None:
    geometry = {"type": "Polygon", "coordinates": [RING]}
    feature = {"type": "Feature", "geometry": geometry, "properties": {}}
    collection = {"type": "FeatureCollection", "features": [feature]}
    for payload in (geometry, feature, collection):
        ring = polygon_from_geojson(json.dumps(payload))
        assert ring[1] == (0.001, 0.0)
        assert len(ring) == 5


def test_polygon_from_geojson_rejects_invalid_payloads() -> None:
    with pytest.raises(ValueError):
        polygon_from_geojson("not json")
    with pytest.raises(ValueError):
        polygon_from_geojson(json.dumps({"type": "Point", "coordinates": [0, 0]}))
    with pytest.raises(ValueError):
        polygon_from_geojson(json.dumps({"type": "Polygon", "coordinates": []}))
    with pytest.raises(ValueError):
        polygon_from_geojson(json.dumps({"type": "Polygon", "coordinates": [[[0, 0], [1, 1]]]}))


def test_path_to_geojson_renders_line_string() -> None:
    path = FlightPath(
        waypoints=[FlightWaypoint(0.0, 0.0, 30.0), FlightWaypoint(0.001, 0.0, 30.0)],
        description="Grid survey pattern",
    )
    feature = path_to_geojson(path)
    assert feature["geometry"]["type"] == "LineString"
    assert feature["geometry"]["coordinates"][1] == [0.001, 0.0, 30.0]
    assert feature["properties"]["waypoints"] == 2
    assert feature["properties"]["length_m"] == pytest.approx(path.length_m())
