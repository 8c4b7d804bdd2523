import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from gleba.core.health import HealthStatus, check_cache, check_reference_data, get_system_health
from gleba.core.middleware import DatabaseErrorMiddleware

# Setup mock app
app = FastAPI()
app.add_middleware(DatabaseErrorMiddleware)


@app.get("/test-db-error")
def trigger_db_error():
    raise OperationalError("SELECT 1", {}, "Mock DB Error")


@app.get("/test-ok")
def ok():
    return {"ok": True}


client = TestClient(app)


def test_database_error_middleware():
    """Test that middleware catches DB errors and returns 503"""
    response = client.get("/test-db-error")
    assert response.status_code == 503
    data = response.json()
    assert data["error"] == "Service unavailable"
    assert "Database connection failed" in data["message"]


def test_middleware_passes_responses_through():
    response = client.get("/test-ok")
    assert response.status_code == 200
    assert response.json() == {"ok": True}


@pytest.mark.asyncio
@patch("gleba.core.health.check_cache", new_callable=AsyncMock)
@patch("gleba.core.health.check_reference_data", new_callable=AsyncMock)
@patch("gleba.core.health.check_database", new_callable=AsyncMock)
async def test_health_check_unhealthy(mock_db, mock_reference, mock_cache):
    """Test health check when DB is down"""
    mock_db.return_value = {"status": HealthStatus.UNHEALTHY, "component": "database"}
    mock_cache.return_value = {"status": HealthStatus.HEALTHY, "component": "cache"}

    health = await get_system_health()

    assert health["status"] == HealthStatus.UNHEALTHY
    assert health["components"]["reference_data"]["status"] == HealthStatus.UNHEALTHY
    mock_reference.assert_not_awaited()


@pytest.mark.asyncio
@patch("gleba.core.health.check_cache", new_callable=AsyncMock)
@patch("gleba.core.health.check_reference_data", new_callable=AsyncMock)
@patch("gleba.core.health.check_database", new_callable=AsyncMock)
async def test_health_check_degraded_without_boundaries(mock_db, mock_reference, mock_cache):
    mock_db.return_value = {"status": HealthStatus.HEALTHY, "component": "database"}
    mock_reference.return_value = {"status": HealthStatus.DEGRADED, "component": "reference_data"}
    mock_cache.return_value = {"status": HealthStatus.HEALTHY, "component": "cache"}

    health = await get_system_health()

    assert health["status"] == HealthStatus.DEGRADED
    assert "reduced functionality" in health["message"]


@pytest.mark.asyncio
@patch("gleba.core.health.check_cache", new_callable=AsyncMock)
@patch("gleba.core.health.check_reference_data", new_callable=AsyncMock)
@patch("gleba.core.health.check_database", new_callable=AsyncMock)
async def test_health_check_healthy(mock_db, mock_reference, mock_cache):
    for mock in (mock_db, mock_reference, mock_cache):
        mock.return_value = {"status": HealthStatus.HEALTHY}

    health = await get_system_health()

    assert health["status"] == HealthStatus.HEALTHY


@pytest.mark.asyncio
async def test_reference_data_check_counts_boundaries():
    session = MagicMock()
    session.execute.return_value.scalar.return_value = 20

    with patch("gleba.core.health.SessionLocal", return_value=session):
        status = await check_reference_data()

    assert status["status"] == HealthStatus.HEALTHY
    assert "20" in status["message"]
    session.close.assert_called_once()


@pytest.mark.asyncio
async def test_reference_data_check_on_query_error():
    session = MagicMock()
    session.execute.side_effect = SQLAlchemyError("relation does not exist")

    with patch("gleba.core.health.SessionLocal", return_value=session):
        status = await check_reference_data()

    assert status["status"] == HealthStatus.DEGRADED


@pytest.mark.asyncio
async def test_cache_check_without_client():
    with patch("gleba.core.health.cache") as mock_cache:
        mock_cache.client = None
        status = await check_cache()

    assert status["status"] == HealthStatus.UNHEALTHY


def test_get_db_unavailable():
    from fastapi import HTTPException
    from gleba.db.database import get_db

    session = MagicMock()
    session.execute.side_effect = OperationalError("SELECT 1", {}, "Connection refused")

    with patch("gleba.db.database.SessionLocal", return_value=session):
        with pytest.raises(HTTPException) as exc_info:
            next(get_db())

    assert exc_info.value.status_code == 503
    session.close.assert_called_once()
