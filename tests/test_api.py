"""
API Endpoint Tests

Tests for the FastAPI endpoints of the Gleba backend. Property sessions run
on a test RegistryStore whose registries use the geodesic engine and a
static Campinas boundary, so no database is needed.

Test Classes:
- TestRootEndpoint: GET / service index
- TestCatalogEndpoint: GET /catalog classification catalog
- TestMunicipalitiesEndpoint: GET /municipalities accepted municipalities
- TestMunicipalityBoundaryEndpoint: GET /municipalities/{code} boundary
- TestPropertyEndpoints: property sessions and municipality selection, closing
- TestLayerEndpoints: add / get / update / delete layers
- TestLayerMetadataEndpoints: visibility and symbology
- TestHealthEndpoints: /health, /health/ready, /health/live

Author: Gleba Project
License: AGPL-3.0
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from geoalchemy2.shape import from_shape
from shapely.geometry import MultiPolygon, box, mapping

from gleba.api.routes import RegistryStore, get_store
from gleba.core.config import Settings
from gleba.core.health import HealthStatus
from gleba.db.database import get_db
from gleba.geometry.engine import GeodesicGeometryEngine
from gleba.main import app
from gleba.models.municipality import Municipality
from gleba.services.registry import LayerRegistry
from tests.conftest import MUNICIPALITY_ID, StaticBoundaryProvider

CAMPINAS_BOUNDARY = box(-47.5, -23.2, -46.8, -22.6)
PROPERTY = box(-47.06, -22.90, -47.05, -22.89)
WEST_HALF = box(-47.06, -22.90, -47.055, -22.89)
EAST_HALF = box(-47.055, -22.90, -47.05, -22.89)


def geojson(geometry):
    return dict(mapping(geometry))


@pytest.fixture
def registry_store():
    def factory():
        return LayerRegistry(
            GeodesicGeometryEngine(),
            Settings(),
            boundary_provider=StaticBoundaryProvider({MUNICIPALITY_ID: CAMPINAS_BOUNDARY}),
        )

    test_store = RegistryStore(factory)
    app.dependency_overrides[get_store] = lambda: test_store
    yield test_store
    app.dependency_overrides.pop(get_store, None)


@pytest.fixture
def client(registry_store):
    return TestClient(app)


@pytest.fixture
def property_id(client):
    response = client.post("/properties", json={"municipality_id": MUNICIPALITY_ID})
    return response.json()["property_id"]


@pytest.fixture
def drawn_property(client, property_id):
    response = client.post(
        f"/properties/{property_id}/layers",
        json={"id": "property", "name": "Property area", "geometry": geojson(PROPERTY)},
    )
    assert response.status_code == 201
    return property_id


class TestRootEndpoint:
    """Test GET / service index."""

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Gleba API"
        assert data["docs"] == "/api/docs"

    def test_openapi_docs(self, client):
        response = client.get("/api/docs")
        assert response.status_code == 200


class TestCatalogEndpoint:
    def test_catalog_lists_every_layer(self, client):
        response = client.get("/catalog")

        assert response.status_code == 200
        ids = {entry["id"] for entry in response.json()}
        assert {"property", "headquarters", "native", "roadway", "reserve"} <= ids
        assert len(ids) == 11

    def test_catalog_entry_shape(self, client):
        entries = {entry["id"]: entry for entry in client.get("/catalog").json()}

        assert entries["headquarters"]["geometry_type"] == "point"
        assert entries["roadway"]["category"] == "administrative"
        assert entries["property"]["symbology"]["color"] == [0, 0, 255, 0.5]


class TestMunicipalitiesEndpoint:
    def test_lists_catalog_when_no_boundaries_loaded(self, client):
        with patch("gleba.api.routes.SessionLocal", return_value=MagicMock()):
            response = client.get("/municipalities")

        assert response.status_code == 200
        data = response.json()
        codes = [entry["code"] for entry in data]
        assert MUNICIPALITY_ID in codes
        assert all(code.startswith("35") for code in codes)
        assert all(entry["has_boundary"] is False for entry in data)
        assert [entry["name"] for entry in data] == sorted(entry["name"] for entry in data)


class TestMunicipalityBoundaryEndpoint:
    @pytest.fixture
    def db_session(self, mock_db_session):
        app.dependency_overrides[get_db] = lambda: mock_db_session
        yield mock_db_session
        app.dependency_overrides.pop(get_db, None)

    def test_boundary_as_geojson(self, client, db_session):
        db_session.query.return_value.filter.return_value.first.return_value = Municipality(
            code=MUNICIPALITY_ID,
            name="Campinas",
            state="SP",
            area_km2=794.571,
            geom=from_shape(MultiPolygon([CAMPINAS_BOUNDARY]), srid=4326),
        )

        response = client.get(f"/municipalities/{MUNICIPALITY_ID}")

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Campinas"
        assert data["geometry"]["type"] == "MultiPolygon"

    def test_boundary_not_loaded(self, client, db_session):
        response = client.get(f"/municipalities/{MUNICIPALITY_ID}")
        assert response.status_code == 404

    def test_municipality_not_accepted(self, client, db_session):
        response = client.get("/municipalities/3106200")

        assert response.status_code == 404
        db_session.query.assert_not_called()


class TestPropertyEndpoints:
    def test_create_property(self, client, registry_store):
        response = client.post("/properties", json={"municipality_id": MUNICIPALITY_ID})

        assert response.status_code == 201
        data = response.json()
        assert data["record"]["municipality_id"] == MUNICIPALITY_ID
        assert data["record"]["municipality_name"] == "Campinas"
        assert data["is_property_defined"] is False
        assert len(registry_store) == 1

    def test_create_property_without_municipality(self, client):
        data = client.post("/properties", json={}).json()
        assert data["record"]["municipality_id"] is None

    def test_get_unknown_property(self, client):
        response = client.get("/properties/does-not-exist")

        assert response.status_code == 404
        assert "not found" in response.json()["error"]

    def test_select_municipality(self, client, property_id):
        response = client.put(
            f"/properties/{property_id}/municipality",
            json={"municipality_id": "3550308"},
        )

        assert response.status_code == 200
        assert response.json()["record"]["municipality_name"] == "São Paulo"

    def test_validate_location(self, client, property_id):
        response = client.post(f"/properties/{property_id}/location", json={"geometry": geojson(PROPERTY)})

        assert response.status_code == 200
        assert response.json()["is_valid"] is True
        assert client.get(f"/properties/{property_id}").json()["layers"] == []

    def test_validate_location_outside(self, client, property_id):
        outside = box(-45.0, -22.0, -44.99, -21.99)

        response = client.post(f"/properties/{property_id}/location", json={"geometry": geojson(outside)})

        assert response.json()["is_valid"] is False

    def test_invalid_coordinates(self, client, property_id):
        geometry = {"type": "Point", "coordinates": [500, 0]}

        response = client.post(f"/properties/{property_id}/location", json={"geometry": geometry})

        assert response.status_code == 422
        assert response.json()["error"] == "Geometry error"

    def test_non_numeric_coordinates(self, client, property_id):
        geometry = {"type": "Point", "coordinates": ["-47.0", "-22.9"]}

        response = client.post(f"/properties/{property_id}/location", json={"geometry": geometry})

        assert response.status_code == 422
        assert response.json()["error"] == "Geometry error"

    def test_close_property(self, client, registry_store, drawn_property):
        assert len(registry_store) == 1

        response = client.delete(f"/properties/{drawn_property}")

        assert response.status_code == 200
        assert response.json() == {"property_id": drawn_property, "closed": True}
        assert len(registry_store) == 0
        assert client.get(f"/properties/{drawn_property}").status_code == 404

    def test_close_unknown_property(self, client):
        response = client.delete("/properties/does-not-exist")
        assert response.status_code == 404

    def test_missing_body_field(self, client, property_id):
        response = client.post(f"/properties/{property_id}/location", json={})

        assert response.status_code == 422
        assert response.json()["error"] == "Validation error"


class TestLayerEndpoints:
    def test_add_property_layer(self, client, property_id):
        response = client.post(
            f"/properties/{property_id}/layers",
            json={"id": "property", "name": "Property area", "geometry": geojson(PROPERTY)},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["success"] is True
        assert data["layer"]["id"] == "property"
        assert data["layer"]["geometry"]["type"] == "Polygon"
        assert data["record"]["property_area"] == pytest.approx(data["layer"]["area"])
        # about 1 km × 1.1 km
        assert 100 < data["record"]["property_area"] < 125

    def test_layer_before_property_rejected(self, client, property_id):
        response = client.post(
            f"/properties/{property_id}/layers",
            json={"id": "native", "name": "Native", "geometry": geojson(WEST_HALF)},
        )

        assert response.status_code == 422
        assert response.json() == {"success": False, "message": "The property area must be drawn first."}

    def test_incomplete_layer_rejected(self, client, drawn_property):
        response = client.post(f"/properties/{drawn_property}/layers", json={"id": "native", "name": "Native"})

        assert response.status_code == 422
        assert response.json()["message"] == "Incomplete layer data."

    def test_complete_coverage(self, client, drawn_property):
        client.post(
            f"/properties/{drawn_property}/layers",
            json={"id": "native", "name": "Native", "geometry": geojson(WEST_HALF)},
        )
        client.post(
            f"/properties/{drawn_property}/layers",
            json={"id": "consolidated", "name": "Consolidated", "geometry": geojson(EAST_HALF)},
        )

        response = client.get(f"/properties/{drawn_property}/coverage")

        assert response.status_code == 200
        data = response.json()
        assert data["is_valid"] is True
        assert data["coverage_percentage"] == pytest.approx(100, abs=0.1)
        assert data["status"] == "success"

    def test_overflowing_layer_is_clipped(self, client, drawn_property):
        overflow = box(-47.055, -22.90, -47.04, -22.89)

        response = client.post(
            f"/properties/{drawn_property}/layers",
            json={"id": "native", "name": "Native", "geometry": geojson(overflow)},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["message"] == "Layer clipped to the property boundaries."
        assert data["layer"]["area"] == pytest.approx(data["record"]["property_area"] / 2, rel=0.01)

    def test_drawn_geometry_is_simplified(self, client, drawn_property):
        # the extra vertex lies on the western edge
        ring = [
            [-47.06, -22.90], [-47.055, -22.90], [-47.055, -22.89],
            [-47.06, -22.89], [-47.06, -22.895], [-47.06, -22.90],
        ]

        response = client.post(
            f"/properties/{drawn_property}/layers",
            json={"id": "native", "name": "Native", "geometry": {"type": "Polygon", "coordinates": [ring]}},
        )

        assert response.status_code == 201
        assert len(response.json()["layer"]["geometry"]["coordinates"][0]) == 5

    def test_get_layer(self, client, drawn_property):
        response = client.get(f"/properties/{drawn_property}/layers/property")

        assert response.status_code == 200
        data = response.json()
        assert data["visible"] is True
        assert data["symbology"]["outline"] == [0, 0, 255, 1]

    def test_get_missing_layer(self, client, drawn_property):
        response = client.get(f"/properties/{drawn_property}/layers/native")
        assert response.status_code == 404

    def test_update_layer(self, client, drawn_property):
        client.post(
            f"/properties/{drawn_property}/layers",
            json={"id": "native", "name": "Native", "geometry": geojson(WEST_HALF)},
        )

        response = client.put(
            f"/properties/{drawn_property}/layers/native",
            json={"geometry": geojson(PROPERTY)},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["record"]["coverage_percentage"] == pytest.approx(100, abs=0.1)
        assert data["record"]["anthropized_area"] == pytest.approx(0, abs=0.01)

    def test_delete_property_cascades(self, client, drawn_property):
        client.post(
            f"/properties/{drawn_property}/layers",
            json={"id": "native", "name": "Native", "geometry": geojson(WEST_HALF)},
        )

        response = client.delete(f"/properties/{drawn_property}/layers/property")

        assert response.status_code == 200
        assert response.json()["record"]["property_area"] == 0
        snapshot = client.get(f"/properties/{drawn_property}").json()
        assert snapshot["layers"] == []
        assert snapshot["record"]["municipality_id"] == MUNICIPALITY_ID

    def test_delete_missing_layer(self, client, drawn_property):
        response = client.delete(f"/properties/{drawn_property}/layers/reserve")

        assert response.status_code == 422
        assert response.json()["message"] == "Layer not found."


class TestLayerMetadataEndpoints:
    def test_hide_layer(self, client, drawn_property):
        response = client.patch(
            f"/properties/{drawn_property}/layers/property/visibility",
            json={"visible": False},
        )

        assert response.status_code == 200
        assert response.json()["visible"] is False
        assert client.get(f"/properties/{drawn_property}/layers/property").json()["visible"] is False

    def test_visibility_of_unknown_layer(self, client, property_id):
        response = client.patch(
            f"/properties/{property_id}/layers/orchard/visibility",
            json={"visible": False},
        )
        assert response.status_code == 422

    def test_update_symbology(self, client, property_id):
        response = client.put(
            f"/properties/{property_id}/layers/native/symbology",
            json={"color": [10, 20, 30, 0.3]},
        )

        assert response.status_code == 200
        assert response.json()["symbology"] == {"color": [10, 20, 30, 0.3], "outline": [0, 128, 0, 1]}

    def test_symbology_validation(self, client, property_id):
        response = client.put(
            f"/properties/{property_id}/layers/native/symbology",
            json={"color": [10]},
        )
        assert response.status_code == 422


class TestHealthEndpoints:
    def test_liveness(self, client):
        response = client.get("/health/live")

        assert response.status_code == 200
        assert response.json()["alive"] is True

    @patch("gleba.api.endpoints.health.get_system_health", new_callable=AsyncMock)
    def test_health_healthy(self, mock_health, client):
        mock_health.return_value = {
            "status": HealthStatus.HEALTHY,
            "message": "System is operational",
            "components": {},
        }

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @patch("gleba.api.endpoints.health.get_system_health", new_callable=AsyncMock)
    def test_health_degraded(self, mock_health, client):
        mock_health.return_value = {
            "status": HealthStatus.DEGRADED,
            "message": "System is running with reduced functionality",
            "components": {},
        }

        response = client.get("/health")

        assert response.status_code == 503
        assert "note" in response.json()

    @patch("gleba.api.endpoints.health.get_system_health", new_callable=AsyncMock)
    def test_readiness_not_ready(self, mock_health, client):
        mock_health.return_value = {
            "status": HealthStatus.UNHEALTHY,
            "message": "System is in maintenance mode",
            "components": {},
        }

        response = client.get("/health/ready")

        assert response.status_code == 503
        assert response.json()["ready"] is False
