"""
@file engine.py
@brief Geometry primitives consumed by the validation and accounting core

@details
Defines the GeometryEngine contract (measure + relation + overlay operations
with an optional positional tolerance) and two shapely-backed
implementations:

- **GeodesicGeometryEngine**: geometries in WGS84 lon/lat (EPSG:4326), which
  is what the map client draws and what PostGIS stores. Areas are geodesic
  (pyproj.Geod on the WGS84 ellipsoid); tolerances are given in metres and
  converted to degrees.
- **PlanarGeometryEngine**: geometries already in a projected metric CRS
  (e.g. SIRGAS 2000 / UTM). Areas and tolerances are planar metres.

**Tolerance semantics:**
- intersect/union/difference: overlay snapped to a precision grid of
  `tolerance` (suppresses sliver polygons)
- within: inner within outer buffered by `tolerance`
- intersects: distance(a, b) <= tolerance
- equals: Hausdorff distance <= tolerance

Empty overlay results are returned as None. Any failure of the backend is
raised as GeometryEngineError.

@author Gleba Project
@date 2026-10-18
@version 1.0
@license AGPL-3.0

@see services.validation for the rule-set built on these primitives
"""

import logging
from functools import wraps
from typing import Iterable, Optional, Protocol, runtime_checkable

import shapely
from pyproj import Geod
from shapely.errors import GEOSException
from shapely.geometry.base import BaseGeometry
from shapely.geometry.polygon import Polygon, orient

from gleba.core.exceptions import GeometryEngineError

logger = logging.getLogger(__name__)

## @brief Divisors converting square metres into each supported area unit
AREA_UNITS = {
    "square-meters": 1.0,
    "hectares": 10_000.0,
    "square-kilometers": 1_000_000.0,
}

## @brief Mean length of one degree of latitude on WGS84, in metres
METERS_PER_DEGREE = 111_320.0


@runtime_checkable
class GeometryEngine(Protocol):
    """
    @brief Capability contract of the geometry backend

    @details
    The core only ever calls these methods; it never inspects coordinates.
    Implementations may raise GeometryEngineError from any method.
    """

    def area(self, geometry, unit: str = "square-meters") -> float: ...

    def intersect(self, a, b, tolerance: Optional[float] = None): ...

    def union(self, geometries, tolerance: Optional[float] = None): ...

    def difference(self, a, b, tolerance: Optional[float] = None): ...

    def within(self, inner, outer, tolerance: Optional[float] = None) -> bool: ...

    def intersects(self, a, b, tolerance: Optional[float] = None) -> bool: ...

    def equals(self, a, b, tolerance: Optional[float] = None) -> bool: ...

    def contains(self, outer, inner) -> bool: ...

    def simplify(self, geometry, tolerance: float): ...


def engine_operation(func):
    """
    @brief Translate backend exceptions into GeometryEngineError

    @details The operation name recorded on the error is the method name.
    """
    @wraps(func)
    def wrapper(self, *args, **kwargs):
        try:
            return func(self, *args, **kwargs)
        except GeometryEngineError:
            raise
        except (GEOSException, ValueError, TypeError, AttributeError) as e:
            logger.debug(f"Geometry backend error in {func.__name__}: {e}")
            raise GeometryEngineError(func.__name__, str(e)) from e
    return wrapper


def _require(operation: str, *geometries) -> None:
    for geometry in geometries:
        if not isinstance(geometry, BaseGeometry):
            raise GeometryEngineError(
                operation, f"expected a shapely geometry, got {type(geometry).__name__}"
            )


def _non_empty(geometry):
    if geometry is None or geometry.is_empty:
        return None
    return geometry


def _polygons(geometry) -> Iterable[Polygon]:
    """Yield every polygon part of a (possibly nested) geometry."""
    if isinstance(geometry, Polygon):
        yield geometry
    elif hasattr(geometry, "geoms"):
        for part in geometry.geoms:
            yield from _polygons(part)


class ShapelyGeometryEngine:
    """
    @brief Shared shapely implementation of the GeometryEngine contract

    @details
    Subclasses decide how areas are measured (`_square_meters`) and how a
    metric tolerance maps onto coordinate units (`_to_coordinate_units`).
    """

    def _to_coordinate_units(self, tolerance: float) -> float:
        raise NotImplementedError

    def _square_meters(self, geometry: BaseGeometry) -> float:
        raise NotImplementedError

    def _grid(self, tolerance: Optional[float]) -> Optional[float]:
        if not tolerance or tolerance <= 0:
            return None
        return self._to_coordinate_units(tolerance)

    @engine_operation
    def area(self, geometry, unit: str = "square-meters") -> float:
        """
        @brief Area of a geometry in the requested unit

        @param geometry Shapely geometry (points and lines measure 0)
        @param unit One of AREA_UNITS
        @return Non-negative area
        """
        _require("area", geometry)
        if unit not in AREA_UNITS:
            raise GeometryEngineError("area", f"unsupported unit '{unit}'")
        if geometry.is_empty:
            return 0.0
        return self._square_meters(geometry) / AREA_UNITS[unit]

    @engine_operation
    def intersect(self, a, b, tolerance: Optional[float] = None):
        _require("intersect", a, b)
        return _non_empty(a.intersection(b, grid_size=self._grid(tolerance)))

    @engine_operation
    def union(self, geometries, tolerance: Optional[float] = None):
        parts = list(geometries)
        _require("union", *parts)
        if not parts:
            return None
        return _non_empty(shapely.union_all(parts, grid_size=self._grid(tolerance)))

    @engine_operation
    def difference(self, a, b, tolerance: Optional[float] = None):
        _require("difference", a, b)
        return _non_empty(a.difference(b, grid_size=self._grid(tolerance)))

    @engine_operation
    def within(self, inner, outer, tolerance: Optional[float] = None) -> bool:
        _require("within", inner, outer)
        grid = self._grid(tolerance)
        if grid is None:
            return bool(inner.within(outer))
        return bool(inner.within(outer.buffer(grid)))

    @engine_operation
    def intersects(self, a, b, tolerance: Optional[float] = None) -> bool:
        _require("intersects", a, b)
        grid = self._grid(tolerance)
        if grid is None:
            return bool(a.intersects(b))
        return bool(a.distance(b) <= grid)

    @engine_operation
    def equals(self, a, b, tolerance: Optional[float] = None) -> bool:
        _require("equals", a, b)
        grid = self._grid(tolerance)
        if grid is None:
            return bool(a.equals(b))
        return bool(a.hausdorff_distance(b) <= grid)

    @engine_operation
    def contains(self, outer, inner) -> bool:
        _require("contains", outer, inner)
        return bool(outer.contains(inner))

    @engine_operation
    def simplify(self, geometry, tolerance: float):
        """
        @brief Topology-preserving simplification (tolerance in metres)
        """
        _require("simplify", geometry)
        grid = self._grid(tolerance) or 0.0
        return geometry.simplify(grid, preserve_topology=True)


class GeodesicGeometryEngine(ShapelyGeometryEngine):
    """
    @brief Engine for WGS84 lon/lat geometries with geodesic areas
    """

    def __init__(self, ellps: str = "WGS84"):
        self.geod = Geod(ellps=ellps)

    def _to_coordinate_units(self, tolerance: float) -> float:
        return tolerance / METERS_PER_DEGREE

    def _square_meters(self, geometry: BaseGeometry) -> float:
        total = 0.0
        for polygon in _polygons(geometry):
            # counter-clockwise shell and clockwise holes: holes subtract
            area, _ = self.geod.geometry_area_perimeter(orient(polygon, sign=1.0))
            total += area
        return abs(total)


class PlanarGeometryEngine(ShapelyGeometryEngine):
    """
    @brief Engine for geometries in a projected metric CRS
    """

    def _to_coordinate_units(self, tolerance: float) -> float:
        return tolerance

    def _square_meters(self, geometry: BaseGeometry) -> float:
        return float(sum(polygon.area for polygon in _polygons(geometry)))
