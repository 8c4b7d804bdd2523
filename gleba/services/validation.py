"""
@file validation.py
@brief Geometry validation rule-set for property declarations

@details
Decides whether a drawn geometry is acceptable for its layer:

- **Property location**: municipality must belong to the configured state
  and allow-list; when the municipality boundary is known the property must
  lie within it, or overlap it by at least the configured percentage.
- **Headquarters**: point inside the property and off any hydrography.
- **Bounded layers** (soil coverage, rights-of-way, restricted use, legal
  reserve): must intersect the property; overflowing geometries are accepted
  and clipped to the property.
- **Complete coverage**: union of the layers must cover the property up to
  the configured completeness threshold.
- **Anthropized area**: the part of the property no layer accounts for.

Rule violations and missing inputs are returned as result objects. Geometry
engine failures are logged and reported as invalid results.

@author Gleba Project
@date 2026-10-18
@version 1.0
@license AGPL-3.0

@see services.calculation for fold_union and area conversion
"""

import logging
from typing import Iterable, Mapping, Optional, Sequence

from gleba.core.config import Settings
from gleba.core.exceptions import GeometryEngineError
from gleba.geometry.engine import GeometryEngine
from gleba.geometry.units import square_meters_to_hectares
from gleba.models.catalog import LayerId
from gleba.models.results import AnthropizedAreaResult, CoverageResult, UnionResult, ValidationResult
from gleba.services.calculation import fold_union

logger = logging.getLogger(__name__)

## @brief User-facing messages shared with the layer registry
MESSAGES = {
    "PROPERTY_REQUIRED": "The property area must be drawn first.",
    "INVALID_LOCATION": "The property area must lie within the selected municipality.",
    "MUNICIPALITY_REQUIRED": "No municipality selected.",
    "HEADQUARTERS_INSIDE": "The property headquarters must be inside the property area.",
    "HEADQUARTERS_HYDROGRAPHY": "The property headquarters cannot be placed on hydrography.",
    "LAYER_INSIDE": "The layer must be within the property boundaries.",
    "LAYER_CLIPPED": "Layer clipped to the property boundaries.",
    "COVERAGE_COMPLETE": "Property coverage is complete.",
    "COVERAGE_INCOMPLETE": "Property coverage is incomplete.",
    "GEOMETRIES_MISSING": "Geometries not provided for validation.",
}


class ValidationService:
    """
    @brief Rule-set deciding acceptability of layer geometries

    @param engine GeometryEngine used for every measurement and relation
    @param settings Policy thresholds and the shared tolerance
    """

    def __init__(self, engine: GeometryEngine, settings: Settings):
        self.engine = engine
        self.settings = settings

    @property
    def tolerance(self) -> float:
        return self.settings.geometry_tolerance

    def fold_union(self, geometries: Sequence) -> UnionResult:
        return fold_union(self.engine, geometries, self.tolerance)

    async def validate_property_location(
        self,
        property_geometry,
        municipality_id: Optional[str],
        municipality_geometry=None
    ) -> ValidationResult:
        """
        @brief Check that a property lies in an accepted municipality

        @details
        **Checks, in order:**
        1. Geometry and municipality id present
        2. Municipality id has the state prefix and is allow-listed
           (no geometric test is attempted when this fails)
        3. With a boundary: within (tolerance) or overlap ratio >=
           municipality_overlap_threshold
        4. Without a boundary: accepted only in the opt-in degraded mode
           (allow_unverified_boundary)

        @param property_geometry Candidate property polygon
        @param municipality_id IBGE municipality code
        @param municipality_geometry Municipality boundary, if available
        @return ValidationResult
        """
        if property_geometry is None:
            return ValidationResult(False, "Property geometry not provided.")

        if not municipality_id:
            return ValidationResult(False, MESSAGES["MUNICIPALITY_REQUIRED"])

        if not self.settings.is_accepted_municipality(municipality_id):
            return ValidationResult(
                False,
                f"The municipality must be an accepted municipality of state {self.settings.state_code}."
            )

        if municipality_geometry is None:
            if self.settings.allow_unverified_boundary:
                logger.warning(
                    f"Accepting property for municipality {municipality_id} without boundary check"
                )
                return ValidationResult(
                    True, "Property accepted for the selected municipality (boundary not verified)."
                )
            return ValidationResult(
                False, "Municipality boundary unavailable; the property location cannot be verified."
            )

        try:
            if self.engine.within(property_geometry, municipality_geometry, self.tolerance):
                return ValidationResult(True, "Property is valid for the selected municipality.")

            intersection = self.engine.intersect(property_geometry, municipality_geometry, self.tolerance)
            if intersection is None:
                return ValidationResult(False, MESSAGES["INVALID_LOCATION"])

            intersection_area = self.engine.area(intersection, "square-meters")
            property_area = self.engine.area(property_geometry, "square-meters")
        except GeometryEngineError as e:
            logger.error(f"Error validating property location: {e}")
            return ValidationResult(False, f"Error validating location: {e}")

        if property_area <= 0:
            return ValidationResult(False, "Property geometry has no area.")

        overlap_percentage = (intersection_area / property_area) * 100
        if overlap_percentage < self.settings.municipality_overlap_threshold:
            return ValidationResult(
                False,
                "The property must lie mostly within the municipality "
                f"(current overlap: {overlap_percentage:.2f}%)."
            )

        return ValidationResult(True, "Property is valid for the selected municipality.")

    async def validate_headquarters(
        self,
        headquarters_geometry,
        property_geometry,
        hydrography_geometries: Iterable = ()
    ) -> ValidationResult:
        """
        @brief Headquarters must be inside the property and off hydrography

        @param headquarters_geometry Headquarters point
        @param property_geometry Property polygon
        @param hydrography_geometries Water bodies; None entries are skipped
        @return ValidationResult
        """
        if headquarters_geometry is None or property_geometry is None:
            return ValidationResult(False, MESSAGES["GEOMETRIES_MISSING"])

        try:
            if not self.engine.within(headquarters_geometry, property_geometry, self.tolerance):
                return ValidationResult(False, MESSAGES["HEADQUARTERS_INSIDE"])

            for hydrography in hydrography_geometries or ():
                if hydrography is None:
                    continue
                if self.engine.intersects(headquarters_geometry, hydrography, self.tolerance):
                    return ValidationResult(False, MESSAGES["HEADQUARTERS_HYDROGRAPHY"])
        except GeometryEngineError as e:
            logger.error(f"Error validating headquarters: {e}")
            return ValidationResult(False, "Error validating the property headquarters.")

        return ValidationResult(True, "Headquarters validated successfully.")

    async def validate_soil_coverage(self, layer_geometry, property_geometry, layer_type) -> ValidationResult:
        """
        @brief A bounded layer must intersect the property; overflow is clipped

        @details
        When the layer is not equal (within tolerance) to its intersection
        with the property, the result is valid and carries the intersection
        in `clip_result`; the caller stores that instead of the original.
        An areal layer whose intersection has no area (touching edges only)
        is rejected.

        @param layer_geometry Candidate layer geometry
        @param property_geometry Property polygon
        @param layer_type Layer id, used for logging
        @return ValidationResult
        """
        if layer_geometry is None or property_geometry is None:
            return ValidationResult(False, MESSAGES["GEOMETRIES_MISSING"])

        try:
            intersection = self.engine.intersect(layer_geometry, property_geometry, self.tolerance)
            if intersection is None:
                return ValidationResult(False, MESSAGES["LAYER_INSIDE"])

            if (self.engine.area(layer_geometry) > 0
                    and self.engine.area(intersection) <= 0):
                return ValidationResult(False, MESSAGES["LAYER_INSIDE"])

            if not self.engine.equals(layer_geometry, intersection, self.tolerance):
                logger.info(f"Clipping layer '{layer_type}' to the property boundary")
                return ValidationResult(True, MESSAGES["LAYER_CLIPPED"], clip_result=intersection)
        except GeometryEngineError as e:
            logger.error(f"Error validating {layer_type}: {e}")
            return ValidationResult(False, "Error validating the layer.")

        return ValidationResult(True, "Layer validated successfully.")

    async def validate_complete_coverage(self, property_geometry, layer_geometries) -> CoverageResult:
        """
        @brief Check that the layers cover the whole property

        @details
        coverage = 100 × area(union(layers) ∩ property) / area(property), both
        measured in square metres. Complete when coverage reaches
        coverage_complete_threshold (99.9 by default, absorbing tessellation
        noise). Pairwise union failures are tolerated (see fold_union).

        @param property_geometry Property polygon
        @param layer_geometries Non-property layer geometries
        @return CoverageResult
        """
        if property_geometry is None:
            return CoverageResult(False, 0.0, "Property geometry not provided.")

        if not layer_geometries:
            return CoverageResult(False, 0.0, "No layers found.")

        geometries = [geometry for geometry in layer_geometries if geometry is not None]
        if not geometries:
            return CoverageResult(False, 0.0, "No valid layers found.")

        union = self.fold_union(geometries)
        if union.geometry is None:
            if union.ok:
                return CoverageResult(False, 0.0, "No areal layers found.")
            return CoverageResult(False, 0.0, "Error merging layer geometries.")

        try:
            property_area = self.engine.area(property_geometry, "square-meters")
            intersection = self.engine.intersect(union.geometry, property_geometry, self.tolerance)
            if intersection is None:
                return CoverageResult(False, 0.0, "Layers do not intersect the property area.")
            covered_area = self.engine.area(intersection, "square-meters")
        except GeometryEngineError as e:
            logger.error(f"Error validating complete coverage: {e}")
            return CoverageResult(False, 0.0, "Error validating complete coverage.")

        if property_area <= 0:
            return CoverageResult(False, 0.0, "Property geometry has no area.")

        coverage_percentage = (covered_area / property_area) * 100
        is_complete = coverage_percentage >= self.settings.coverage_complete_threshold

        if is_complete:
            message = MESSAGES["COVERAGE_COMPLETE"]
        else:
            message = f"{100 - coverage_percentage:.2f}% of the property area is still uncovered."

        return CoverageResult(is_complete, coverage_percentage, message)

    async def calculate_anthropized_area(
        self,
        property_geometry,
        layer_geometries: Mapping
    ) -> AnthropizedAreaResult:
        """
        @brief Property area not accounted for by any declared layer

        @details
        Without other areal layers (the headquarters point does not count) the
        whole property counts as anthropized.
        Otherwise: property − union(other layers), measured in hectares.

        @param property_geometry Property polygon
        @param layer_geometries Mapping of layer id to geometry (the
               'property' entry is ignored)
        @return AnthropizedAreaResult with hectares and the remaining geometry
        """
        if property_geometry is None:
            return AnthropizedAreaResult(area=0.0, geometry=None)

        others = [
            geometry for key, geometry in (layer_geometries or {}).items()
            if key != LayerId.PROPERTY and geometry is not None
        ]

        try:
            union = self.fold_union(others)
            if union.geometry is None and union.ok:
                area_m2 = self.engine.area(property_geometry, "square-meters")
                return AnthropizedAreaResult(square_meters_to_hectares(area_m2), property_geometry)
            if union.geometry is None:
                return AnthropizedAreaResult(area=0.0, geometry=None)

            anthropized = self.engine.difference(property_geometry, union.geometry, self.tolerance)
            if anthropized is None:
                return AnthropizedAreaResult(area=0.0, geometry=None)

            area_m2 = self.engine.area(anthropized, "square-meters")
        except GeometryEngineError as e:
            logger.error(f"Error calculating anthropized area: {e}")
            return AnthropizedAreaResult(area=0.0, geometry=None)

        return AnthropizedAreaResult(square_meters_to_hectares(area_m2), anthropized)
