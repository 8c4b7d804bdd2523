"""
@file routes.py
@brief FastAPI endpoints for property declarations

@details
Provides RESTful endpoints for:
- Classification catalog, accepted municipalities and their boundaries
  (reference data)
- Property sessions, each backed by its own LayerRegistry (opened and closed
  by the client)
- Layer add / update / delete with validation and area accounting
- Layer visibility and symbology
- Property location and complete-coverage checks

Registries live in an in-memory RegistryStore keyed by property id; they are
not persisted. Geometries are exchanged as GeoJSON in WGS84 and measured by
the geodesic engine.

**Error mapping:**
- Rejected registry operation → 422 `{success: false, message}`
- Unknown property session or layer → 404
- Malformed GeoJSON → 422 (geometry exception handler)

@author Gleba Project
@date 2026-10-18
@version 1.0
@license AGPL-3.0

@see services.registry for the layer state machine
@see services.municipalities for reference data lookups
"""

import logging
import uuid
from typing import Callable, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from geoalchemy2.shape import to_shape
from sqlalchemy.orm import Session

from gleba.api.schemas import (
    GeometryPayload,
    LayerCreate,
    MunicipalitySelect,
    PropertyCreate,
    SymbologyUpdate,
    VisibilityUpdate,
)
from gleba.core.cache import cache_response
from gleba.core.config import Settings, settings
from gleba.db.database import SessionLocal, get_db
from gleba.geometry.engine import GeodesicGeometryEngine
from gleba.geometry.geojson import from_geojson, to_geojson
from gleba.models.catalog import LAYER_CATALOG, default_symbology
from gleba.models.layer import OperationResult
from gleba.models.municipality import Municipality
from gleba.services.municipalities import (
    DatabaseBoundaryProvider,
    DatabaseHydrographyProvider,
    list_municipalities,
)
from gleba.services.registry import LayerRegistry

router = APIRouter()

logger = logging.getLogger(__name__)


def build_registry(settings: Settings = settings) -> LayerRegistry:
    """
    @brief Registry wired to the geodesic engine and the PostGIS providers
    """
    return LayerRegistry(
        GeodesicGeometryEngine(),
        settings,
        boundary_provider=DatabaseBoundaryProvider(settings=settings),
        hydrography_provider=DatabaseHydrographyProvider(),
    )


class RegistryStore:
    """
    @brief In-memory property sessions (property id → LayerRegistry)
    """

    def __init__(self, factory: Callable[[], LayerRegistry] = build_registry):
        self.factory = factory
        self._registries: Dict[str, LayerRegistry] = {}

    def create(self) -> tuple:
        property_id = uuid.uuid4().hex
        registry = self.factory()
        self._registries[property_id] = registry
        logger.info(f"Property session {property_id} opened")
        return property_id, registry

    def get(self, property_id: str) -> Optional[LayerRegistry]:
        return self._registries.get(property_id)

    def remove(self, property_id: str) -> Optional[LayerRegistry]:
        registry = self._registries.pop(property_id, None)
        if registry is not None:
            logger.info(f"Property session {property_id} closed")
        return registry

    def clear(self) -> None:
        self._registries.clear()

    def __len__(self) -> int:
        return len(self._registries)


## @brief Process-wide session store
store = RegistryStore()


def get_store() -> RegistryStore:
    return store


def get_registry(property_id: str, registry_store: RegistryStore = Depends(get_store)) -> LayerRegistry:
    """
    @brief Resolve the registry of a property session

    @throws HTTPException(404) for an unknown property id
    """
    registry = registry_store.get(property_id)
    if registry is None:
        raise HTTPException(status_code=404, detail=f"Property session {property_id} not found")
    return registry


def drawn_geometry(registry: LayerRegistry, geojson: Optional[dict]):
    """
    @brief GeoJSON from the map client as an engine geometry, simplified

    @details
    Duplicate and collinear vertices within the configured tolerance are
    dropped before any rule runs.
    """
    geometry = from_geojson(geojson)
    if geometry is None:
        return None
    return registry.engine.simplify(geometry, registry.settings.geometry_tolerance)


def ensure_success(result: OperationResult) -> None:
    if not result.success:
        raise HTTPException(status_code=422, detail=result.to_dict())


def layer_detail(registry: LayerRegistry, layer_id: str) -> dict:
    layer = registry.get_layer(layer_id)
    if layer is None:
        raise HTTPException(status_code=404, detail=f"Layer {layer_id} not found")
    return {
        **layer.to_dict(),
        "geometry": to_geojson(registry.get_layer_geometry(layer_id)),
        "symbology": registry.get_layer_symbology(layer_id),
        "visible": registry.is_layer_visible(layer_id),
    }


# ----------------------------------------------------------------------
# Reference data
# ----------------------------------------------------------------------

@router.get("/catalog")
def get_catalog():
    """
    @brief Classification catalog: every layer id with its category and symbology
    """
    return [
        {
            "id": entry.layer_id.value,
            "name": entry.name,
            "category": entry.category.value,
            "geometry_type": entry.geometry_type.value,
            "symbology": default_symbology(entry.layer_id),
        }
        for entry in LAYER_CATALOG.values()
    ]


@cache_response(ttl=86400, key_prefix="api")
async def municipality_listing(state_code: str):
    db = SessionLocal()
    try:
        return list_municipalities(db, settings)
    finally:
        db.close()


@router.get("/municipalities")
async def get_municipalities():
    """
    @brief Municipalities accepted for property declarations

    @details
    Cached in Redis for 24 hours. Works without the database (names then
    come from the built-in catalog and `has_boundary` is false).
    """
    return await municipality_listing(settings.state_code)


@router.get("/municipalities/{code}")
def get_municipality(code: str, db: Session = Depends(get_db)):
    """
    @brief Municipality details with its boundary as GeoJSON (map overlay)

    @throws HTTPException(404) when the municipality is not accepted or has
            no stored boundary
    @throws HTTPException(503) when the database is unreachable
    """
    if not settings.is_accepted_municipality(code):
        raise HTTPException(status_code=404, detail=f"Municipality {code} is not accepted")

    municipality = db.query(Municipality).filter(Municipality.code == code).first()
    if municipality is None or municipality.geom is None:
        raise HTTPException(status_code=404, detail=f"No boundary stored for municipality {code}")

    return {**municipality.to_dict(), "geometry": to_geojson(to_shape(municipality.geom))}


# ----------------------------------------------------------------------
# Property sessions
# ----------------------------------------------------------------------

@router.post("/properties", status_code=201)
def create_property(payload: PropertyCreate, registry_store: RegistryStore = Depends(get_store)):
    """
    @brief Open a property session
    """
    property_id, registry = registry_store.create()
    if payload.municipality_id:
        registry.set_municipality(payload.municipality_id, payload.municipality_name)
    return {"property_id": property_id, **registry.snapshot()}


@router.get("/properties/{property_id}")
def get_property(property_id: str, registry: LayerRegistry = Depends(get_registry)):
    return {"property_id": property_id, **registry.snapshot()}


@router.delete("/properties/{property_id}")
def close_property(property_id: str, registry_store: RegistryStore = Depends(get_store)):
    """
    @brief Close a property session and release its layers

    @throws HTTPException(404) for an unknown property id
    """
    if registry_store.remove(property_id) is None:
        raise HTTPException(status_code=404, detail=f"Property session {property_id} not found")
    return {"property_id": property_id, "closed": True}


@router.put("/properties/{property_id}/municipality")
def select_municipality(
    property_id: str,
    payload: MunicipalitySelect,
    registry: LayerRegistry = Depends(get_registry),
):
    registry.set_municipality(payload.municipality_id, payload.name)
    return {"property_id": property_id, **registry.snapshot()}


@router.post("/properties/{property_id}/location")
async def validate_location(
    property_id: str,
    payload: GeometryPayload,
    registry: LayerRegistry = Depends(get_registry),
):
    """
    @brief Check a property geometry against the selected municipality
    @details Read-only: the geometry is not stored.
    """
    result = await registry.validate_property_location(drawn_geometry(registry, payload.geometry))
    return {"is_valid": result.is_valid, "message": result.message}


@router.get("/properties/{property_id}/coverage")
async def get_coverage(property_id: str, registry: LayerRegistry = Depends(get_registry)):
    """
    @brief Recompute coverage of the property by its layers
    """
    result = await registry.validate_complete_coverage()
    return {
        "is_valid": result.is_valid,
        "coverage_percentage": result.coverage_percentage,
        "message": result.message,
        "status": registry.calculation.coverage_status(result.coverage_percentage),
    }


# ----------------------------------------------------------------------
# Layers
# ----------------------------------------------------------------------

@router.post("/properties/{property_id}/layers", status_code=201)
async def add_layer(
    property_id: str,
    payload: LayerCreate,
    registry: LayerRegistry = Depends(get_registry),
):
    """
    @brief Validate and add a layer (replacing an existing one with the same id)

    @throws HTTPException(422) when the layer is rejected
    """
    geometry = drawn_geometry(registry, payload.geometry)
    result = await registry.add_layer(
        payload.id,
        payload.name,
        geometry,
        category=payload.category,
        symbol_type=payload.symbol_type,
    )
    ensure_success(result)
    return {**result.to_dict(), "layer": layer_detail(registry, payload.id), "record": registry.record.to_dict()}


@router.get("/properties/{property_id}/layers/{layer_id}")
def get_layer(property_id: str, layer_id: str, registry: LayerRegistry = Depends(get_registry)):
    return layer_detail(registry, layer_id)


@router.put("/properties/{property_id}/layers/{layer_id}")
async def update_layer(
    property_id: str,
    layer_id: str,
    payload: GeometryPayload,
    registry: LayerRegistry = Depends(get_registry),
):
    result = await registry.update_layer(layer_id, drawn_geometry(registry, payload.geometry))
    ensure_success(result)
    return {**result.to_dict(), "layer": layer_detail(registry, layer_id), "record": registry.record.to_dict()}


@router.delete("/properties/{property_id}/layers/{layer_id}")
async def delete_layer(property_id: str, layer_id: str, registry: LayerRegistry = Depends(get_registry)):
    """
    @brief Remove a layer; removing the property removes every layer
    """
    result = await registry.delete_layer(layer_id)
    ensure_success(result)
    return {**result.to_dict(), "record": registry.record.to_dict()}


@router.patch("/properties/{property_id}/layers/{layer_id}/visibility")
def set_visibility(
    property_id: str,
    layer_id: str,
    payload: VisibilityUpdate,
    registry: LayerRegistry = Depends(get_registry),
):
    result = registry.toggle_layer_visibility(layer_id, payload.visible)
    ensure_success(result)
    return {**result.to_dict(), "visible": registry.is_layer_visible(layer_id)}


@router.put("/properties/{property_id}/layers/{layer_id}/symbology")
def set_symbology(
    property_id: str,
    layer_id: str,
    payload: SymbologyUpdate,
    registry: LayerRegistry = Depends(get_registry),
):
    result = registry.update_layer_symbology(layer_id, payload.model_dump(exclude_none=True))
    ensure_success(result)
    return {**result.to_dict(), "symbology": registry.get_layer_symbology(layer_id)}
