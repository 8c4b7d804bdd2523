"""
Layer and Property Record Domain Model

In-memory records owned by the layer registry. Geometries are kept apart
from these records (see services.registry) so that layer metadata stays
plain, serializable data.

Model: Layer
- One declared spatial feature of the property (at most one per id)
- Category is resolved from the classification catalog, never supplied

Model: PropertyRecord
- Singleton derived state of the property declaration
- All areas in hectares

Author: Gleba Project
License: AGPL-3.0
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Optional

from gleba.models.catalog import LayerCategory, LayerId


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Layer:
    """
    Metadata of a declared layer.

    Attributes:
        id (LayerId): Catalog identifier
        name (str): Display label
        category (LayerCategory): Derived from id
        area (float): Area in hectares, computed from the stored geometry
        created_at (datetime): When the layer was (re)added
        symbol_type (str): Rendering hint for the client
    """

    id: LayerId
    name: str
    category: LayerCategory
    area: float = 0.0
    created_at: datetime = field(default_factory=utcnow)
    symbol_type: str = "default"

    def to_dict(self) -> dict:
        data = asdict(self)
        data["id"] = self.id.value
        data["category"] = self.category.value
        data["created_at"] = self.created_at.isoformat()
        return data


@dataclass
class PropertyRecord:
    """
    Derived area bookkeeping of the property.

    Attributes:
        municipality_id (str): Selected IBGE municipality code
        municipality_name (str): Display name of the municipality
        property_area (float): Area of the property layer (ha)
        administrative_service_area (float): Roadway + railway + powerline (ha)
        net_area (float): max(0, property_area - administrative_service_area)
        anthropized_area (float): Property area not covered by any layer (ha)
        coverage_percentage (float): Share of the property covered by layers (0-100)
    """

    municipality_id: Optional[str] = None
    municipality_name: Optional[str] = None
    property_area: float = 0.0
    administrative_service_area: float = 0.0
    net_area: float = 0.0
    anthropized_area: float = 0.0
    coverage_percentage: float = 0.0

    def reset_areas(self) -> None:
        """Clear derived fields; the municipality selection is kept."""
        self.property_area = 0.0
        self.administrative_service_area = 0.0
        self.net_area = 0.0
        self.anthropized_area = 0.0
        self.coverage_percentage = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class OperationResult:
    """Outcome of a registry mutation as shown to the user."""

    success: bool
    message: str

    def to_dict(self) -> dict:
        return {"success": self.success, "message": self.message}
