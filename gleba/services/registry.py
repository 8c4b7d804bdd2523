"""
@file registry.py
@brief Layer registry: the single owner of layer state for one property

@details
Holds the declared layers, their geometries, visibility and symbology, and
the derived PropertyRecord. Every mutation goes through this class, which
sequences validation before committing and area accounting after.

**Layer lifecycle (per id):**
- absent → valid: add_layer accepted by the rule-set of its category
- valid → valid: add_layer again (replace) or update_layer
- valid → absent: delete_layer; deleting the property removes every layer

**Mutation sequence (add_layer):**
1. Reject incomplete input, unknown ids and category mismatches
2. Validate (property: municipality; headquarters: inside property, off
   hydrography; bounded categories: intersect property, clip overflow)
3. Store the accepted (possibly clipped) geometry and its layer record
4. Recompute administrative, net and anthropized areas
5. Recompute coverage of the property by the other layers

Mutations are serialized with an asyncio.Lock; getters read the last
committed state. Failures are returned as OperationResult, never raised.

@author Gleba Project
@date 2026-10-18
@version 1.0
@license AGPL-3.0

@see services.validation for the rule-set
@see services.calculation for area accounting
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional, Protocol

from gleba.core.config import Settings
from gleba.core.exceptions import GeometryEngineError
from gleba.geometry.engine import GeometryEngine
from gleba.models.catalog import (
    BOUNDED_CATEGORIES,
    LAYER_CATALOG,
    MUNICIPALITIES,
    LayerCategory,
    LayerId,
    default_symbology,
    resolve_layer_id,
)
from gleba.models.layer import Layer, OperationResult, PropertyRecord
from gleba.models.results import CoverageResult, ValidationResult
from gleba.services.calculation import CalculationService
from gleba.services.validation import MESSAGES, ValidationService

logger = logging.getLogger(__name__)


class BoundaryProvider(Protocol):
    """Supplies municipality boundaries (None when unknown)."""

    async def get_boundary(self, municipality_id: str) -> Optional[Any]: ...


class HydrographyProvider(Protocol):
    """Supplies water-body geometries touching an area."""

    async def get_hydrography(self, area_geometry) -> List[Any]: ...


class LayerRegistry:
    """
    @brief Canonical layer state of one property declaration

    @param engine GeometryEngine shared by validation and accounting
    @param settings Policy configuration [default: Settings()]
    @param boundary_provider Optional municipality boundary source
    @param hydrography_provider Optional hydrography source
    """

    def __init__(
        self,
        engine: GeometryEngine,
        settings: Optional[Settings] = None,
        boundary_provider: Optional[BoundaryProvider] = None,
        hydrography_provider: Optional[HydrographyProvider] = None,
    ):
        self.settings = settings or Settings()
        self.engine = engine
        self.validation = ValidationService(engine, self.settings)
        self.calculation = CalculationService(engine, self.settings)
        self.boundary_provider = boundary_provider
        self.hydrography_provider = hydrography_provider

        self.record = PropertyRecord()
        self.loading = False
        self.error: Optional[str] = None

        self._layers: Dict[LayerId, Layer] = {}
        self._geometries: Dict[LayerId, Any] = {}
        self._visibility: Dict[LayerId, bool] = {}
        self._symbology: Dict[LayerId, dict] = {layer_id: default_symbology(layer_id) for layer_id in LayerId}
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Getters
    # ------------------------------------------------------------------

    @property
    def layers(self) -> List[Layer]:
        return list(self._layers.values())

    @property
    def geometries(self) -> Dict[LayerId, Any]:
        return dict(self._geometries)

    def get_layer(self, layer_id) -> Optional[Layer]:
        return self._layers.get(resolve_layer_id(layer_id))

    def get_layer_geometry(self, layer_id):
        return self._geometries.get(resolve_layer_id(layer_id))

    def get_layers_by_category(self, category) -> List[Layer]:
        try:
            category = LayerCategory(category)
        except ValueError:
            return []
        return [layer for layer in self._layers.values() if layer.category == category]

    def get_layer_symbology(self, layer_id) -> dict:
        resolved = resolve_layer_id(layer_id)
        if resolved is None:
            return default_symbology(None)
        return dict(self._symbology[resolved])

    def is_layer_visible(self, layer_id) -> bool:
        # layers are visible unless explicitly hidden
        return self._visibility.get(resolve_layer_id(layer_id)) is not False

    @property
    def is_property_defined(self) -> bool:
        return LayerId.PROPERTY in self._geometries

    @property
    def is_complete(self) -> bool:
        return self.calculation.is_complete_coverage(self.record.coverage_percentage)

    @property
    def total_coverage(self) -> float:
        """
        @brief Sum of non-property layer areas over the property area (%), capped at 100

        @details Quick estimate that ignores overlaps between layers; the
        geometric figure is record.coverage_percentage.
        """
        if not self.record.property_area:
            return 0.0
        layer_area = sum(layer.area for layer in self._layers.values() if layer.id != LayerId.PROPERTY)
        return min((layer_area / self.record.property_area) * 100, 100.0)

    def snapshot(self) -> dict:
        """Serializable view of the registry for the API."""
        return {
            "record": self.record.to_dict(),
            "layers": [
                {**layer.to_dict(), "visible": self.is_layer_visible(layer.id)}
                for layer in self._layers.values()
            ],
            "is_property_defined": self.is_property_defined,
            "is_complete": self.is_complete,
            "total_coverage": self.total_coverage,
            "coverage_status": self.calculation.coverage_status(self.record.coverage_percentage),
            "loading": self.loading,
            "error": self.error,
        }

    # ------------------------------------------------------------------
    # Metadata mutations
    # ------------------------------------------------------------------

    def set_municipality(self, municipality_id: Optional[str], name: Optional[str] = None) -> None:
        self.record.municipality_id = municipality_id
        self.record.municipality_name = name or MUNICIPALITIES.get(municipality_id or "")

    def toggle_layer_visibility(self, layer_id, visible: bool) -> OperationResult:
        resolved = resolve_layer_id(layer_id)
        if resolved is None:
            return self._fail(f"Unknown layer type '{layer_id}'.")
        self._visibility[resolved] = bool(visible)
        return OperationResult(True, "Layer visibility updated.")

    def update_layer_symbology(self, layer_id, symbology: dict) -> OperationResult:
        resolved = resolve_layer_id(layer_id)
        if resolved is None:
            return self._fail(f"Unknown layer type '{layer_id}'.")
        self._symbology[resolved] = {**self._symbology[resolved], **(symbology or {})}
        return OperationResult(True, "Layer symbology updated.")

    # ------------------------------------------------------------------
    # Geometry mutations
    # ------------------------------------------------------------------

    async def validate_property_location(self, geometry) -> ValidationResult:
        """
        @brief Validate a property geometry against the selected municipality
        """
        municipality_id = self.record.municipality_id
        boundary = await self._boundary_for(municipality_id)
        return await self.validation.validate_property_location(geometry, municipality_id, boundary)

    async def add_layer(
        self,
        id,
        name: Optional[str],
        geometry,
        category=None,
        symbol_type: Optional[str] = None,
    ) -> OperationResult:
        """
        @brief Validate and add (or replace) a layer

        @param id Layer identifier (LayerId or its value)
        @param name Display label
        @param geometry Layer geometry
        @param category Optional category; must match the catalog when given
        @param symbol_type Rendering hint [default: "default"]
        @return OperationResult with the validation message
        """
        async with self._mutation():
            try:
                return await self._add_layer(id, name, geometry, category, symbol_type)
            except GeometryEngineError as e:
                logger.error(f"Geometry error adding layer {id}: {e}")
                return self._fail(f"Error adding layer: {e}")
            except Exception as e:
                logger.exception(f"Unexpected error adding layer {id}: {e}")
                return self._fail(f"Error adding layer: {e}")

    async def update_layer(self, id, geometry) -> OperationResult:
        """
        @brief Replace the geometry of an existing layer

        @details
        Boundary rules are re-run only when settings.revalidate_on_update is
        set; by default an update only recomputes areas and coverage.
        """
        async with self._mutation():
            try:
                return await self._update_layer(id, geometry)
            except GeometryEngineError as e:
                logger.error(f"Geometry error updating layer {id}: {e}")
                return self._fail(f"Error updating layer: {e}")
            except Exception as e:
                logger.exception(f"Unexpected error updating layer {id}: {e}")
                return self._fail(f"Error updating layer: {e}")

    async def delete_layer(self, id) -> OperationResult:
        """
        @brief Remove a layer; removing the property removes every layer
        """
        async with self._mutation():
            try:
                return await self._delete_layer(id)
            except Exception as e:
                logger.exception(f"Unexpected error deleting layer {id}: {e}")
                return self._fail(f"Error deleting layer: {e}")

    async def validate_complete_coverage(self) -> CoverageResult:
        """
        @brief Recompute and store coverage of the property by the other layers
        """
        async with self._mutation():
            if not self.is_property_defined:
                return CoverageResult(False, 0.0, MESSAGES["PROPERTY_REQUIRED"])
            return await self._refresh_coverage()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _mutation(self):
        async with self._lock:
            self.loading = True
            try:
                yield
            finally:
                self.loading = False

    def _fail(self, message: str) -> OperationResult:
        self.error = message
        logger.info(f"Layer operation rejected: {message}")
        return OperationResult(False, message)

    def _succeed(self, message: str) -> OperationResult:
        self.error = None
        return OperationResult(True, message)

    async def _add_layer(self, id, name, geometry, category, symbol_type) -> OperationResult:
        if not id or not name or geometry is None:
            return self._fail("Incomplete layer data.")

        layer_id = resolve_layer_id(id)
        if layer_id is None:
            return self._fail(f"Unknown layer type '{id}'.")

        expected_category = LAYER_CATALOG[layer_id].category
        if category is not None and category != expected_category:
            return self._fail(
                f"Layer '{layer_id.value}' belongs to category '{expected_category.value}', not '{category}'."
            )

        verdict = await self._validate_for(layer_id, expected_category, geometry)
        if not verdict.is_valid:
            return self._fail(verdict.message)

        final_geometry = verdict.clip_result if verdict.clip_result is not None else geometry
        area = await self.calculation.calculate_area(final_geometry)

        self._layers[layer_id] = Layer(
            id=layer_id,
            name=name,
            category=expected_category,
            area=area,
            symbol_type=symbol_type or "default",
        )
        self._geometries[layer_id] = final_geometry
        self._visibility[layer_id] = True

        if layer_id == LayerId.PROPERTY:
            self.record.property_area = area

        await self._recalculate_areas()

        if layer_id != LayerId.PROPERTY or self._has_other_layers():
            await self._refresh_coverage()

        logger.info(f"Layer '{layer_id.value}' stored ({area:.4f} ha)")
        return self._succeed(verdict.message or "Layer added successfully.")

    async def _update_layer(self, id, geometry) -> OperationResult:
        layer_id = resolve_layer_id(id)
        layer = self._layers.get(layer_id) if layer_id is not None else None
        if layer is None:
            return self._fail("Layer not found.")
        if geometry is None:
            return self._fail("Geometry not provided.")

        final_geometry = geometry
        if self.settings.revalidate_on_update:
            verdict = await self._validate_for(layer_id, layer.category, geometry)
            if not verdict.is_valid:
                return self._fail(verdict.message)
            if verdict.clip_result is not None:
                final_geometry = verdict.clip_result

        area = await self.calculation.calculate_area(final_geometry)
        layer.area = area
        self._geometries[layer_id] = final_geometry

        if layer_id == LayerId.PROPERTY:
            self.record.property_area = area

        await self._recalculate_areas()
        await self._refresh_coverage()

        return self._succeed("Layer updated successfully.")

    async def _delete_layer(self, id) -> OperationResult:
        layer_id = resolve_layer_id(id)
        if layer_id is None or layer_id not in self._layers:
            return self._fail("Layer not found.")

        if layer_id == LayerId.PROPERTY:
            for other in [key for key in self._layers if key != LayerId.PROPERTY]:
                self._remove(other)
            self._remove(LayerId.PROPERTY)
            self.record.reset_areas()
            logger.info("Property removed together with all dependent layers")
            return self._succeed("Layer removed successfully.")

        self._remove(layer_id)
        await self._recalculate_areas()
        await self._refresh_coverage()
        return self._succeed("Layer removed successfully.")

    def _remove(self, layer_id: LayerId) -> None:
        self._layers.pop(layer_id, None)
        self._geometries.pop(layer_id, None)
        self._visibility.pop(layer_id, None)

    def _has_other_layers(self) -> bool:
        return any(key != LayerId.PROPERTY for key in self._layers)

    async def _validate_for(self, layer_id: LayerId, category: LayerCategory, geometry) -> ValidationResult:
        if layer_id == LayerId.PROPERTY:
            if not self.record.municipality_id:
                return ValidationResult(False, MESSAGES["MUNICIPALITY_REQUIRED"])
            return await self.validate_property_location(geometry)

        property_geometry = self._geometries.get(LayerId.PROPERTY)
        if property_geometry is None:
            return ValidationResult(False, MESSAGES["PROPERTY_REQUIRED"])

        if layer_id == LayerId.HEADQUARTERS:
            hydrography = await self._hydrography_for(property_geometry)
            return await self.validation.validate_headquarters(geometry, property_geometry, hydrography)

        if category in BOUNDED_CATEGORIES:
            return await self.validation.validate_soil_coverage(geometry, property_geometry, layer_id.value)

        return ValidationResult(True, "Layer added successfully.")

    async def _boundary_for(self, municipality_id: Optional[str]):
        if self.boundary_provider is None or not self.settings.is_accepted_municipality(municipality_id):
            return None
        return await self.boundary_provider.get_boundary(municipality_id)

    async def _hydrography_for(self, property_geometry) -> List[Any]:
        if self.hydrography_provider is None:
            return []
        return await self.hydrography_provider.get_hydrography(property_geometry)

    async def _recalculate_areas(self) -> None:
        """
        @brief Refresh administrative, net and anthropized areas of the record
        """
        property_geometry = self._geometries.get(LayerId.PROPERTY)
        if property_geometry is None:
            self.record.reset_areas()
            return

        administrative = self.calculation.administrative_service_area(self._layers.values())
        anthropized = await self.validation.calculate_anthropized_area(property_geometry, self._geometries)

        self.record.administrative_service_area = administrative
        self.record.net_area = self.calculation.calculate_net_area(self.record.property_area, administrative)
        self.record.anthropized_area = anthropized.area

    async def _refresh_coverage(self) -> CoverageResult:
        property_geometry = self._geometries.get(LayerId.PROPERTY)
        if property_geometry is None:
            self.record.coverage_percentage = 0.0
            return CoverageResult(False, 0.0, MESSAGES["PROPERTY_REQUIRED"])

        others = [geometry for key, geometry in self._geometries.items() if key != LayerId.PROPERTY]
        result = await self.validation.validate_complete_coverage(property_geometry, others)
        self.record.coverage_percentage = result.coverage_percentage
        return result
