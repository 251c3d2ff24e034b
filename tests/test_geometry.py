"""Mini README: Tests for the geometry kernel.

Checks great-circle measurements against known values, the spherical area
formula on a small equatorial square, and the shapely-backed intersection
and buffering helpers used by the route planner.
"""

from __future__ import annotations

import math

import pytest

from skysurvey.geometry import (
    area,
    bearing,
    buffer,
    close_ring,
    distance,
    estimate_duration,
    interpolate,
    is_degenerate,
    line_intersect,
    path_length,
)
from skysurvey.geometry.kernel import utm_transformer

SQUARE = [(0.0, 0.0), (0.001, 0.0), (0.001, 0.001), (0.0, 0.001)]


def test_distance_of_one_degree_on_equator() -> None:
    """One degree of longitude on the equator is a 360th of the circumference."""

    expected = 2 * math.pi * 6_371_008.8 / 360
    assert distance((0.0, 0.0), (1.0, 0.0)) == pytest.approx(expected, rel=1e-9)
    assert distance((12.5, 41.9), (12.5, 41.9)) == 0.0


def test_bearing_is_normalised() -> None:
    assert bearing((0.0, 0.0), (0.0, 1.0)) == pytest.approx(0.0, abs=1e-9)
    assert bearing((0.0, 0.0), (1.0, 0.0)) == pytest.approx(90.0)
    assert bearing((0.0, 0.0), (-1.0, 0.0)) == pytest.approx(270.0)
    assert 0.0 <= bearing((0.0, 0.0), (0.0, -1.0)) < 360.0


def test_area_of_small_square() -> None:
    side = math.radians(0.001) * 6_378_137.0
    assert area(SQUARE) == pytest.approx(side * side, rel=1e-3)
    assert area(list(reversed(SQUARE))) == pytest.approx(area(SQUARE))


def test_degenerate_polygons_have_no_area() -> None:
    collinear = [(0.0, 0.0), (0.001, 0.0), (0.002, 0.0)]
    assert is_degenerate(collinear)
    assert is_degenerate([(0.0, 0.0), (0.0, 0.0), (0.001, 0.001)])
    assert area(collinear) == 0.0
    assert line_intersect([(-1.0, 0.0), (1.0, 0.0)], collinear) == []
    assert buffer(collinear, 10.0) == []


def test_close_ring_is_idempotent() -> None:
    ring = close_ring(SQUARE)
    assert ring[0] == ring[-1]
    assert close_ring(ring) == ring


def test_line_intersect_orders_points_along_line() -> None:
    westward = [(0.002, 0.0005), (-0.001, 0.0005)]
    crossings = line_intersect(westward, SQUARE)
    assert crossings == [
        pytest.approx((0.001, 0.0005)),
        pytest.approx((0.0, 0.0005)),
    ]


def test_line_intersect_keeps_ends_of_shared_edge() -> None:
    crossings = line_intersect([(-0.001, 0.0), (0.002, 0.0)], SQUARE)
    assert crossings[0] == pytest.approx((0.0, 0.0))
    assert crossings[-1] == pytest.approx((0.001, 0.0))


def test_buffer_inset_stays_inside_and_outset_grows() -> None:
    inset = buffer(SQUARE, -10.0)
    outset = buffer(SQUARE, 10.0)
    assert inset[0] == inset[-1]
    assert area(inset) < area(SQUARE) < area(outset)
    for lon, lat in inset:
        assert 0.0 < lon < 0.001
        assert 0.0 < lat < 0.001


def test_buffer_collapse_returns_empty_ring() -> None:
    tiny = [(0.0, 0.0), (0.00005, 0.0), (0.00005, 0.00005), (0.0, 0.00005)]
    assert buffer(tiny, -10.0) == []


def test_buffer_offsets_by_ground_metres_at_high_latitude() -> None:
    """A square field near Oslo shrinks and grows by the requested metres."""

    field = [(10.75, 59.9), (10.752, 59.9), (10.752, 59.901), (10.75, 59.901)]
    width = distance(field[0], field[1])
    height = distance(field[1], field[2])
    assert width == pytest.approx(height, rel=0.05)

    inset = area(buffer(field, -10.0))
    outset = area(buffer(field, 25.0))
    assert inset == pytest.approx((width - 20.0) * (height - 20.0), rel=1e-2)
    assert outset == pytest.approx((width + 50.0) * (height + 50.0), rel=1e-2)


def test_utm_zone_follows_longitude_and_hemisphere() -> None:
    assert utm_transformer(10.75, 59.9).target_crs.to_epsg() == 32632
    assert utm_transformer(-47.9, -15.8).target_crs.to_epsg() == 32723
    assert utm_transformer(180.0, 0.0).target_crs.to_epsg() == 32601


def test_interpolate_is_exact_at_segment_ends() -> None:
    start = (0.1234567, 51.7654321, 45.0)
    end = (0.1299999, 51.7700001, 50.0)
    assert interpolate(start, end, 0.0) == start
    assert interpolate(start, end, 1.0) == end
    assert interpolate(start, end, 1.5) == end
    middle = interpolate(start, end, 0.5)
    assert middle[2] == pytest.approx(47.5)


def test_path_length_and_duration() -> None:
    points = [(0.0, 0.0, 50.0), (0.001, 0.0, 50.0), (0.001, 0.001, 50.0)]
    expected = distance(points[0], points[1]) + distance(points[1], points[2])
    assert path_length(points) == pytest.approx(expected)
    assert path_length(points[:1]) == 0.0
    assert estimate_duration(points, 10.0) == pytest.approx(expected / 10.0)
    with pytest.raises(ValueError):
        estimate_duration(points, 0.0)
