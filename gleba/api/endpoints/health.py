"""
@file health.py
@brief Health check API endpoints
@details
Status, readiness and liveness endpoints. Readiness requires the database,
the municipality boundaries and the cache to be healthy; liveness only
requires the process to answer.

@author Gleba Project
@date 2026-10-18
@version 1.0
@license AGPL-3.0
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from gleba.core.health import HealthStatus, get_system_health

router = APIRouter(tags=["Health"])

NOTES = {
    HealthStatus.UNHEALTHY: "System is in maintenance mode. Critical services are unavailable.",
    HealthStatus.DEGRADED: "System is running with reduced functionality.",
}


@router.get("/health")
async def health_check():
    """
    @brief System health with per-component details

    @details Returns 503 when the system is unhealthy or degraded.
    """
    health = await get_system_health()
    body = {
        "status": health["status"],
        "message": health["message"],
        "components": health["components"],
    }

    if health["status"] in NOTES:
        return JSONResponse(status_code=503, content={**body, "note": NOTES[health["status"]]})
    return body


@router.get("/health/ready")
async def readiness_check():
    """
    @brief Readiness probe: 200 only when fully operational
    """
    health = await get_system_health()

    if health["status"] == HealthStatus.HEALTHY:
        return {"ready": True, "status": "System is ready"}
    return JSONResponse(
        status_code=503,
        content={
            "ready": False,
            "status": "System is not ready",
            "reason": health["message"]
        }
    )


@router.get("/health/live")
async def liveness_check():
    return {"alive": True, "status": "Application is running"}
