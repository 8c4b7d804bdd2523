"""
@file calculation.py
@brief Area accounting service (areas, overlap, coverage)

@details
Derives the hectare figures shown on a property declaration from layer
geometries: single-geometry areas, net area, overlaps and coverage of a base
geometry by a set of layers. All overlay operations use the single
configured tolerance from Settings.

Geometry engine failures never escape this service: they are logged and
the affected figure falls back to zero.

@author Gleba Project
@date 2026-10-18
@version 1.0
@license AGPL-3.0

@see services.validation for the rule-set sharing the same union fold
@see services.registry for when these figures are recomputed
"""

import logging
from typing import Iterable, Optional, Sequence

from gleba.core.config import Settings
from gleba.core.exceptions import GeometryEngineError
from gleba.geometry.engine import GeometryEngine
from gleba.geometry.units import square_meters_to_hectares
from gleba.models.catalog import ADMINISTRATIVE_SERVICE_LAYERS
from gleba.models.layer import Layer
from gleba.models.results import CoverageBreakdown, OverlapResult, UnionFailure, UnionResult

logger = logging.getLogger(__name__)


def fold_union(
    engine: GeometryEngine,
    geometries: Sequence,
    tolerance: Optional[float] = None
) -> UnionResult:
    """
    @brief Union a list of geometries pairwise, surviving individual failures

    @details
    Null entries and geometries without area (points, lines) are skipped, so
    the result is always areal; a single survivor is returned untouched.
    Otherwise the geometries are merged into an accumulator one at a time;
    when a pairwise union raises GeometryEngineError the failure is recorded
    (with the index of the offending input) and the fold continues with the
    last good accumulator.

    @param engine Geometry engine
    @param geometries Geometries to merge (None entries allowed)
    @param tolerance Positional tolerance passed to every union
    @return UnionResult with the merged geometry (None if nothing to merge)
            and the list of failed steps
    """
    survivors = []
    failures = []
    for index, geometry in enumerate(geometries):
        if geometry is None:
            continue
        try:
            if engine.area(geometry, "square-meters") <= 0:
                logger.debug(f"Union input {index} has no area, skipped")
                continue
        except GeometryEngineError as e:
            logger.warning(f"Union input {index} could not be measured, skipped: {e}")
            failures.append(UnionFailure(step=index, error=str(e)))
            continue
        survivors.append((index, geometry))

    if not survivors:
        return UnionResult(geometry=None, failures=failures)
    if len(survivors) == 1:
        return UnionResult(geometry=survivors[0][1], failures=failures)

    accumulator = None
    for step, geometry in survivors:
        if accumulator is None:
            accumulator = geometry
            continue
        try:
            merged = engine.union([accumulator, geometry], tolerance)
        except GeometryEngineError as e:
            logger.warning(f"Union step {step} failed, keeping previous result: {e}")
            failures.append(UnionFailure(step=step, error=str(e)))
            continue
        if merged is not None:
            accumulator = merged

    return UnionResult(geometry=accumulator, failures=failures)


class CalculationService:
    """
    @brief Area accounting over layer geometries

    @details
    Stateless apart from its collaborators; every method is safe to call
    concurrently and returns the same figures for the same inputs.
    """

    def __init__(self, engine: GeometryEngine, settings: Settings):
        self.engine = engine
        self.settings = settings

    @property
    def tolerance(self) -> float:
        return self.settings.geometry_tolerance

    async def calculate_area(self, geometry) -> float:
        """
        @brief Area of a geometry in hectares

        @return Hectares; 0 for a missing or unmeasurable geometry
        """
        if geometry is None:
            logger.warning("Area requested for a missing geometry")
            return 0.0
        try:
            return square_meters_to_hectares(self.engine.area(geometry, "square-meters"))
        except GeometryEngineError as e:
            logger.error(f"Error calculating area: {e}")
            return 0.0

    def calculate_net_area(self, property_area: float, administrative_area: float) -> float:
        """
        @brief Property area minus administrative right-of-way area, floored at 0
        """
        if not property_area or property_area <= 0:
            return 0.0
        administrative_area = administrative_area or 0.0
        return max(0.0, property_area - administrative_area)

    def calculate_percentage(self, value: float, total: float) -> float:
        if not total or total <= 0:
            return 0.0
        if not value or value < 0:
            value = 0.0
        return (value / total) * 100

    def administrative_service_area(self, layers: Iterable[Layer]) -> float:
        """
        @brief Sum of roadway, railway and powerline layer areas (ha)
        """
        return sum((layer.area for layer in layers if layer.id in ADMINISTRATIVE_SERVICE_LAYERS), 0.0)

    def is_complete_coverage(self, coverage_percentage: float) -> bool:
        return coverage_percentage >= self.settings.coverage_complete_threshold

    @staticmethod
    def coverage_status(percentage: float) -> str:
        """
        @brief Display status for a coverage percentage

        @return 'exception' below 95%, 'warning' below 100%, else 'success'
        """
        if percentage < 95:
            return "exception"
        if percentage < 100:
            return "warning"
        return "success"

    async def calculate_overlap(self, geometry1, geometry2) -> OverlapResult:
        """
        @brief Intersection of two geometries and its area in hectares
        """
        empty = OverlapResult(geometry=None, area=0.0, has_overlap=False)
        if geometry1 is None or geometry2 is None:
            return empty

        try:
            intersection = self.engine.intersect(geometry1, geometry2, self.tolerance)
            if intersection is None:
                return empty
            area = square_meters_to_hectares(self.engine.area(intersection, "square-meters"))
        except GeometryEngineError as e:
            logger.error(f"Error calculating overlap: {e}")
            return empty

        return OverlapResult(geometry=intersection, area=area, has_overlap=area > 0)

    async def geometries_overlap(self, geometry1, geometry2) -> bool:
        """
        @brief True when the geometries share area or one contains the other
        """
        if geometry1 is None or geometry2 is None:
            return False
        try:
            if self.engine.contains(geometry1, geometry2) or self.engine.contains(geometry2, geometry1):
                return True
        except GeometryEngineError as e:
            logger.error(f"Error checking containment: {e}")
            return False
        overlap = await self.calculate_overlap(geometry1, geometry2)
        return overlap.has_overlap

    async def calculate_coverage(self, base_geometry, coverage_geometries) -> CoverageBreakdown:
        """
        @brief Split a base geometry into covered and uncovered hectares

        @details
        The coverage geometries are unioned, clipped to the base and measured.
        Without coverage geometries, or when the union cannot be built, the
        whole base counts as uncovered.

        @param base_geometry Geometry being covered (usually the property)
        @param coverage_geometries Layer geometries
        @return CoverageBreakdown
        """
        if base_geometry is None:
            return CoverageBreakdown(None, 0.0, 0.0, 0.0)

        try:
            base_m2 = self.engine.area(base_geometry, "square-meters")
        except GeometryEngineError as e:
            logger.error(f"Error measuring coverage base: {e}")
            return CoverageBreakdown(None, 0.0, 0.0, 0.0)

        base_area = square_meters_to_hectares(base_m2)
        uncovered = CoverageBreakdown(None, 0.0, base_area, 0.0)

        if not coverage_geometries:
            return uncovered

        union = fold_union(self.engine, list(coverage_geometries), self.tolerance)
        if union.geometry is None or not union.ok:
            return uncovered

        try:
            intersection = self.engine.intersect(union.geometry, base_geometry, self.tolerance)
            if intersection is None:
                return uncovered
            covered_m2 = self.engine.area(intersection, "square-meters")
        except GeometryEngineError as e:
            logger.error(f"Error calculating coverage: {e}")
            return uncovered

        covered_area = square_meters_to_hectares(covered_m2)
        return CoverageBreakdown(
            coverage_geometry=intersection,
            covered_area=covered_area,
            uncovered_area=max(0.0, base_area - covered_area),
            coverage_percentage=self.calculate_percentage(covered_m2, base_m2),
        )
