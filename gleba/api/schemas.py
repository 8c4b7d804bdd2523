"""
API Request Schemas

Pydantic models for the JSON bodies of the property endpoints. Geometries
travel as GeoJSON geometry (or Feature) objects in WGS84 lon/lat and are
converted with geometry.geojson.from_geojson inside the routes.

Layer fields are optional on purpose: incomplete layer data is reported by
the layer registry as a rejected operation, like every other rule.

Author: Gleba Project
License: AGPL-3.0
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class PropertyCreate(BaseModel):
    """Open a new property session, optionally selecting its municipality."""
    municipality_id: Optional[str] = Field(None, max_length=7, description="IBGE municipality code")
    municipality_name: Optional[str] = Field(None, max_length=255)


class MunicipalitySelect(BaseModel):
    municipality_id: str = Field(..., max_length=7)
    name: Optional[str] = Field(None, max_length=255)


class GeometryPayload(BaseModel):
    geometry: Dict[str, Any] = Field(..., description="GeoJSON geometry or Feature")


class LayerCreate(BaseModel):
    """Request to add (or replace) a layer."""
    id: str = Field(..., max_length=64, description="Layer identifier from the catalog")
    name: Optional[str] = Field(None, max_length=255)
    geometry: Optional[Dict[str, Any]] = None
    category: Optional[str] = Field(None, max_length=64)
    symbol_type: Optional[str] = Field(None, max_length=64)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "id": "native",
                    "name": "Native vegetation remnant",
                    "geometry": {
                        "type": "Polygon",
                        "coordinates": [[
                            [-47.06, -22.90], [-47.05, -22.90],
                            [-47.05, -22.89], [-47.06, -22.89], [-47.06, -22.90]
                        ]]
                    }
                }
            ]
        }
    }


class VisibilityUpdate(BaseModel):
    visible: bool


class SymbologyUpdate(BaseModel):
    """RGBA fill and outline colours; omitted fields keep their value."""
    color: Optional[List[float]] = Field(None, min_length=3, max_length=4)
    outline: Optional[List[float]] = Field(None, min_length=3, max_length=4)
