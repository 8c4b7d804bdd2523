"""
@file health.py
@brief System health checks

@details
Component checks for:
- PostgreSQL/PostGIS connectivity
- Reference data (municipality boundaries of the configured state)
- Redis cache connectivity

The layer registry itself never depends on these components; without them
property locations are simply validated without a boundary.

@author Gleba Project
@date 2026-10-18
@version 1.0
@license AGPL-3.0
"""

import logging
from typing import Any, Dict

from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from gleba.core.cache import cache
from gleba.core.config import settings
from gleba.db.database import SessionLocal

logger = logging.getLogger(__name__)


class HealthStatus:
    """Health status indicator for system components"""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


async def check_database() -> Dict[str, Any]:
    """
    @brief Check PostgreSQL connectivity with `SELECT 1`
    """
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        return {
            "status": HealthStatus.HEALTHY,
            "message": "PostgreSQL database is healthy",
            "component": "database"
        }
    except OperationalError as e:
        logger.error(f"Database health check failed: {e}")
        return {
            "status": HealthStatus.UNHEALTHY,
            "message": "PostgreSQL database is unavailable",
            "component": "database",
            "error": str(e)
        }
    except SQLAlchemyError as e:
        logger.error(f"Unexpected database health check error: {e}")
        return {
            "status": HealthStatus.DEGRADED,
            "message": "Database health check encountered an error",
            "component": "database",
            "error": str(e)
        }
    finally:
        db.close()


async def check_reference_data() -> Dict[str, Any]:
    """
    @brief Check that municipality boundaries of the state are loaded

    @details Missing boundaries degrade location checks, so the component is
    reported as degraded rather than unhealthy.
    """
    db = SessionLocal()
    try:
        count = db.execute(
            text("SELECT COUNT(*) FROM municipalities WHERE code LIKE :prefix"),
            {"prefix": f"{settings.state_code}%"},
        ).scalar()
    except SQLAlchemyError as e:
        logger.warning(f"Reference data health check failed: {e}")
        return {
            "status": HealthStatus.DEGRADED,
            "message": "Municipality boundaries could not be checked",
            "component": "reference_data",
            "error": str(e)
        }
    finally:
        db.close()

    if not count:
        return {
            "status": HealthStatus.DEGRADED,
            "message": "No municipality boundaries loaded",
            "component": "reference_data"
        }
    return {
        "status": HealthStatus.HEALTHY,
        "message": f"{count} municipality boundaries loaded",
        "component": "reference_data"
    }


async def check_cache() -> Dict[str, Any]:
    """
    @brief Check Redis connectivity with PING (cache is optional)
    """
    if not cache.client:
        return {
            "status": HealthStatus.UNHEALTHY,
            "message": "Redis cache is not initialized",
            "component": "cache"
        }
    try:
        await cache.client.ping()
        return {
            "status": HealthStatus.HEALTHY,
            "message": "Redis cache is healthy",
            "component": "cache"
        }
    except Exception as e:
        logger.warning(f"Cache health check failed: {e}")
        return {
            "status": HealthStatus.DEGRADED,
            "message": "Redis cache is unavailable (running in degraded mode)",
            "component": "cache",
            "error": str(e)
        }


async def get_system_health() -> Dict[str, Any]:
    """
    @brief Overall status from the component checks

    @details
    - UNHEALTHY: database unavailable
    - DEGRADED: database reachable, but reference data or cache impaired
    - HEALTHY: everything operational
    """
    db_status = await check_database()
    if db_status["status"] == HealthStatus.UNHEALTHY:
        reference_status = {
            "status": HealthStatus.UNHEALTHY,
            "message": "Reference data unavailable (database down)",
            "component": "reference_data"
        }
    else:
        reference_status = await check_reference_data()
    cache_status = await check_cache()

    if db_status["status"] == HealthStatus.UNHEALTHY:
        overall_status = HealthStatus.UNHEALTHY
    elif HealthStatus.DEGRADED in (db_status["status"], reference_status["status"], cache_status["status"]):
        overall_status = HealthStatus.DEGRADED
    else:
        overall_status = HealthStatus.HEALTHY

    return {
        "status": overall_status,
        "components": {
            "database": db_status,
            "reference_data": reference_status,
            "cache": cache_status
        },
        "message": get_status_message(overall_status)
    }


def get_status_message(status: str) -> str:
    messages = {
        HealthStatus.HEALTHY: "System is operational",
        HealthStatus.DEGRADED: "System is running with reduced functionality (reference data or cache unavailable)",
        HealthStatus.UNHEALTHY: "System is in maintenance mode (critical services unavailable)"
    }
    return messages.get(status, "Unknown status")
