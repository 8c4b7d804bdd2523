"""
Test Configuration and Shared Fixtures

Shared pytest fixtures for the test suite. Geometry tests run on the planar
engine with metric coordinates, so areas are exact: a 1000 m × 1000 m square
is 100 ha.

Fixtures:
- settings: Default Settings
- planar_engine / geodesic_engine: Shapely engines
- property_polygon: 100 ha property (0..1000 m × 0..1000 m)
- municipality_polygon: Boundary fully containing the property
- registry: LayerRegistry with static boundary/hydrography providers
- sample_municipalities_gdf: IBGE-like mesh for ETL tests
- mock_db_session: MagicMock SQLAlchemy session

Author: Gleba Project
License: AGPL-3.0
"""

import logging
from unittest.mock import MagicMock

import geopandas as gpd
import pytest
from shapely.geometry import LineString, box

from gleba.core.config import Settings
from gleba.geometry.engine import GeodesicGeometryEngine, PlanarGeometryEngine
from gleba.services.registry import LayerRegistry

logging.basicConfig(
    level=logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

## Campinas, accepted by the default settings
MUNICIPALITY_ID = "3509502"


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests (slower)")
    config.addinivalue_line("markers", "slow: Slow-running tests")
    config.addinivalue_line("markers", "database: Tests requiring PostgreSQL")
    config.addinivalue_line("markers", "api: API endpoint tests")
    config.addinivalue_line("markers", "geometry: Geometry engine and unit tests")
    config.addinivalue_line("markers", "services: Validation and accounting tests")
    config.addinivalue_line("markers", "registry: Layer registry tests")
    config.addinivalue_line("markers", "etl: ETL pipeline tests")
    config.addinivalue_line("markers", "models: Model and catalog tests")
    config.addinivalue_line("markers", "seed: Database seeding tests")


def pytest_collection_modifyitems(config, items):
    """Add markers based on test location."""
    by_file = {
        "test_api": pytest.mark.api,
        "test_engine": pytest.mark.geometry,
        "test_units": pytest.mark.geometry,
        "test_validation": pytest.mark.services,
        "test_calculation": pytest.mark.services,
        "test_registry": pytest.mark.registry,
        "test_etl": pytest.mark.etl,
        "test_models": pytest.mark.models,
        "test_seed": pytest.mark.seed,
    }
    for item in items:
        for name, marker in by_file.items():
            if name in str(item.fspath):
                item.add_marker(marker)
                break

        if "database" not in item.keywords:
            item.add_marker(pytest.mark.unit)


class StaticBoundaryProvider:
    """Boundary lookups from a fixed dict; records every requested id."""

    def __init__(self, boundaries):
        self.boundaries = dict(boundaries)
        self.requested = []

    async def get_boundary(self, municipality_id):
        self.requested.append(municipality_id)
        return self.boundaries.get(municipality_id)


class StaticHydrographyProvider:
    def __init__(self, features=()):
        self.features = list(features)

    async def get_hydrography(self, area_geometry):
        return list(self.features)


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def planar_engine():
    return PlanarGeometryEngine()


@pytest.fixture
def geodesic_engine():
    return GeodesicGeometryEngine()


@pytest.fixture
def property_polygon():
    """100 ha square property."""
    return box(0, 0, 1000, 1000)


@pytest.fixture
def municipality_polygon():
    return box(-5000, -5000, 5000, 5000)


@pytest.fixture
def river():
    """River crossing the property horizontally at y = 500."""
    return LineString([(-100, 500), (1100, 500)])


@pytest.fixture
def boundary_provider(municipality_polygon):
    return StaticBoundaryProvider({MUNICIPALITY_ID: municipality_polygon})


@pytest.fixture
def hydrography_provider(river):
    return StaticHydrographyProvider([river])


@pytest.fixture
def registry(planar_engine, settings, boundary_provider, hydrography_provider):
    """Registry with Campinas selected and no layers."""
    layer_registry = LayerRegistry(
        planar_engine,
        settings,
        boundary_provider=boundary_provider,
        hydrography_provider=hydrography_provider,
    )
    layer_registry.set_municipality(MUNICIPALITY_ID)
    return layer_registry


@pytest.fixture
def sample_municipalities_gdf():
    """
    IBGE-like municipal mesh with two São Paulo municipalities and one from
    Minas Gerais.

    Returns:
        gpd.GeoDataFrame: CD_MUN, NM_MUN, SIGLA_UF, AREA_KM2, geometry
    """
    data = {
        'CD_MUN': ['3509502', '3550308', '3106200'],
        'NM_MUN': ['Campinas', 'São Paulo', 'Belo Horizonte'],
        'SIGLA_UF': ['SP', 'SP', 'MG'],
        'AREA_KM2': [794.571, 1521.202, 331.354],
        'geometry': [
            box(-47.2, -23.1, -46.9, -22.7),
            box(-46.8, -24.0, -46.4, -23.4),
            box(-44.1, -20.0, -43.8, -19.8),
        ]
    }
    return gpd.GeoDataFrame(data, crs="EPSG:4326")


@pytest.fixture
def mock_db_session():
    session = MagicMock()
    session.query.return_value.filter.return_value.first.return_value = None
    session.query.return_value.filter.return_value.all.return_value = []
    return session
