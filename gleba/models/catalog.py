"""
Layer Classification Catalog

Static reference data for the layers a rural property declaration can carry.
Each layer identifier maps to exactly one category, a display name, the
geometry type drawn for it and its default map symbology. The category of a
layer is always looked up here; it is never stored independently.

Also holds the built-in catalog of accepted municipalities (IBGE 7-digit
codes for São Paulo state, prefix 35). Deployments extend it through
GLEBA_ALLOWED_MUNICIPALITIES or by seeding the municipalities table.

Author: Gleba Project
License: AGPL-3.0
"""

from enum import Enum
from typing import Dict, List, NamedTuple, Optional


class LayerId(str, Enum):
    """Identifiers of the declarable layers. At most one layer per id."""

    PROPERTY = "property"
    HEADQUARTERS = "headquarters"
    CONSOLIDATED = "consolidated"
    NATIVE = "native"
    FALLOW = "fallow"
    ROADWAY = "roadway"
    RAILWAY = "railway"
    POWERLINE = "powerline"
    PPA = "ppa"
    RESTRICTED = "restricted"
    RESERVE = "reserve"


class LayerCategory(str, Enum):
    """Rule-set selector for validation."""

    PROPERTY = "property"
    SOIL_COVERAGE = "soil_coverage"
    ADMINISTRATIVE = "administrative"
    RESTRICTED_USE = "restricted_use"
    LEGAL_RESERVE = "legal_reserve"


class GeometryType(str, Enum):
    POINT = "point"
    POLYLINE = "polyline"
    POLYGON = "polygon"
    RECTANGLE = "rectangle"
    CIRCLE = "circle"


class CatalogEntry(NamedTuple):
    """
    Catalog row for one layer identifier.

    Attributes:
        layer_id (LayerId): Layer identifier
        category (LayerCategory): Validation category
        name (str): Display label
        geometry_type (GeometryType): Geometry drawn for the layer
        color (list): Fill colour as [r, g, b, alpha]
        outline (list): Outline colour as [r, g, b, alpha]
    """

    layer_id: LayerId
    category: LayerCategory
    name: str
    geometry_type: GeometryType
    color: List[float]
    outline: List[float]


LAYER_CATALOG: Dict[LayerId, CatalogEntry] = {
    entry.layer_id: entry
    for entry in (
        CatalogEntry(LayerId.PROPERTY, LayerCategory.PROPERTY, "Property area",
                     GeometryType.POLYGON, [0, 0, 255, 0.5], [0, 0, 255, 1]),
        CatalogEntry(LayerId.HEADQUARTERS, LayerCategory.PROPERTY, "Property headquarters",
                     GeometryType.POINT, [255, 0, 0, 1], [255, 0, 0, 1]),
        CatalogEntry(LayerId.CONSOLIDATED, LayerCategory.SOIL_COVERAGE, "Consolidated use area",
                     GeometryType.POLYGON, [255, 255, 0, 0.5], [255, 255, 0, 1]),
        CatalogEntry(LayerId.NATIVE, LayerCategory.SOIL_COVERAGE, "Native vegetation remnant",
                     GeometryType.POLYGON, [0, 128, 0, 0.5], [0, 128, 0, 1]),
        CatalogEntry(LayerId.FALLOW, LayerCategory.SOIL_COVERAGE, "Fallow land",
                     GeometryType.POLYGON, [165, 42, 42, 0.5], [165, 42, 42, 1]),
        CatalogEntry(LayerId.ROADWAY, LayerCategory.ADMINISTRATIVE, "Roadway right-of-way",
                     GeometryType.POLYGON, [128, 128, 128, 0.5], [128, 128, 128, 1]),
        CatalogEntry(LayerId.RAILWAY, LayerCategory.ADMINISTRATIVE, "Railway right-of-way",
                     GeometryType.POLYGON, [0, 0, 0, 0.5], [0, 0, 0, 1]),
        CatalogEntry(LayerId.POWERLINE, LayerCategory.ADMINISTRATIVE, "Power line right-of-way",
                     GeometryType.POLYGON, [255, 165, 0, 0.5], [255, 165, 0, 1]),
        CatalogEntry(LayerId.PPA, LayerCategory.RESTRICTED_USE, "Permanent preservation area",
                     GeometryType.POLYGON, [0, 255, 255, 0.5], [0, 255, 255, 1]),
        CatalogEntry(LayerId.RESTRICTED, LayerCategory.RESTRICTED_USE, "Restricted use area",
                     GeometryType.POLYGON, [255, 0, 255, 0.5], [255, 0, 255, 1]),
        CatalogEntry(LayerId.RESERVE, LayerCategory.LEGAL_RESERVE, "Legal reserve",
                     GeometryType.POLYGON, [50, 205, 50, 0.5], [50, 205, 50, 1]),
    )
}

## Right-of-way layers summed into the administrative service area
ADMINISTRATIVE_SERVICE_LAYERS = (LayerId.ROADWAY, LayerId.RAILWAY, LayerId.POWERLINE)

## Categories validated against the property boundary (clip on overflow)
BOUNDED_CATEGORIES = (
    LayerCategory.SOIL_COVERAGE,
    LayerCategory.ADMINISTRATIVE,
    LayerCategory.RESTRICTED_USE,
    LayerCategory.LEGAL_RESERVE,
)

DEFAULT_SYMBOLOGY = {"color": [128, 128, 128, 0.5], "outline": [128, 128, 128, 1]}


def resolve_layer_id(value) -> Optional[LayerId]:
    """
    Look up a layer identifier, accepting either a LayerId or its string value.

    Returns:
        LayerId or None if the value is not a catalog identifier
    """
    if isinstance(value, LayerId):
        return value
    try:
        return LayerId(str(value))
    except ValueError:
        return None


def category_for(layer_id) -> Optional[LayerCategory]:
    resolved = resolve_layer_id(layer_id)
    if resolved is None:
        return None
    return LAYER_CATALOG[resolved].category


def default_symbology(layer_id) -> dict:
    """Copy of the catalog symbology for a layer, grey fallback for unknown ids."""
    resolved = resolve_layer_id(layer_id)
    if resolved is None:
        return {key: list(value) for key, value in DEFAULT_SYMBOLOGY.items()}
    entry = LAYER_CATALOG[resolved]
    return {"color": list(entry.color), "outline": list(entry.outline)}


# IBGE municipality codes accepted out of the box (São Paulo state)
MUNICIPALITIES: Dict[str, str] = {
    "3502804": "Araçatuba",
    "3503208": "Araraquara",
    "3504503": "Avaré",
    "3505500": "Barretos",
    "3506003": "Bauru",
    "3507506": "Botucatu",
    "3509502": "Campinas",
    "3516200": "Franca",
    "3522307": "Itapetininga",
    "3525904": "Jundiaí",
    "3526902": "Limeira",
    "3529005": "Marília",
    "3538709": "Piracicaba",
    "3541406": "Presidente Prudente",
    "3542602": "Registro",
    "3543402": "Ribeirão Preto",
    "3548906": "São Carlos",
    "3549805": "São José do Rio Preto",
    "3550308": "São Paulo",
    "3552205": "Sorocaba",
}
