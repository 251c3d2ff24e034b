"""Mini README: Shared helpers that do not belong to a single subsystem."""

from .geojson import path_to_geojson, polygon_from_geojson

__all__ = ["path_to_geojson", "polygon_from_geojson"]
