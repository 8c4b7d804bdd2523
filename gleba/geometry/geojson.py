"""
GeoJSON conversion helpers.

The map client exchanges geometries as GeoJSON objects in WGS84 lon/lat.
These helpers turn them into shapely geometries for the engine and back,
rejecting coordinates outside the valid lon/lat range.

Author: Gleba Project
License: AGPL-3.0
"""

import math
from typing import Any, Dict, Optional

from shapely.geometry import mapping, shape
from shapely.geometry.base import BaseGeometry

from gleba.core.exceptions import GeometryEngineError


def is_valid_coordinate(longitude, latitude) -> bool:
    """
    Check a lon/lat pair.

    Returns:
        bool: True when both are finite numbers inside [-180, 180] / [-90, 90]
    """
    try:
        lon = float(longitude)
        lat = float(latitude)
    except (TypeError, ValueError):
        return False
    if math.isnan(lon) or math.isnan(lat):
        return False
    return -180 <= lon <= 180 and -90 <= lat <= 90


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _iter_positions(coordinates):
    if coordinates is None:
        return
    if not isinstance(coordinates, (list, tuple)):
        raise GeometryEngineError("from_geojson", f"invalid coordinates {coordinates!r}")
    if coordinates and not isinstance(coordinates[0], (list, tuple)):
        # innermost level: a position
        yield coordinates
        return
    for item in coordinates:
        yield from _iter_positions(item)


def from_geojson(geojson: Optional[Dict[str, Any]], check_coordinates: bool = True) -> Optional[BaseGeometry]:
    """
    Build a shapely geometry from a GeoJSON geometry (or Feature) object.

    Args:
        geojson (dict): GeoJSON geometry or Feature; None passes through
        check_coordinates (bool): Reject positions outside lon/lat bounds

    Returns:
        BaseGeometry or None

    Raises:
        GeometryEngineError: Malformed GeoJSON or out-of-range coordinates
    """
    if geojson is None:
        return None
    if geojson.get("type") == "Feature":
        geojson = geojson.get("geometry")
        if geojson is None:
            return None

    if check_coordinates:
        for position in _iter_positions(geojson.get("coordinates")):
            if len(position) < 2 or not all(_is_number(value) for value in position) \
                    or not is_valid_coordinate(position[0], position[1]):
                raise GeometryEngineError("from_geojson", f"invalid coordinate {position}")

    try:
        return shape(geojson)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise GeometryEngineError("from_geojson", f"malformed GeoJSON: {e}") from e


def to_geojson(geometry: Optional[BaseGeometry]) -> Optional[Dict[str, Any]]:
    if geometry is None:
        return None
    return dict(mapping(geometry))
