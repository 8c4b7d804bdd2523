"""
@file main.py
@brief FastAPI application factory
@details
Initializes the Gleba API with:
- Logging configuration
- Reference database initialization (PostGIS, IBGE municipalities)
- Redis connection
- Middleware (CORS, database error translation)
- Routers (property API, health)
- Exception handlers

@author Gleba Project
@date 2026-10-18
@version 1.0
@license AGPL-3.0
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException

from gleba.api import routes
from gleba.api.endpoints import health
from gleba.core import exceptions
from gleba.core.cache import cache
from gleba.core.config import settings
from gleba.core.logging import setup_logging
from gleba.core.middleware import DatabaseErrorMiddleware
from gleba.db.seed import initialize_database

logger = setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    @brief Application lifecycle: database seeding and Redis on startup
    """
    logger.info("=" * 60)
    logger.info("Starting Gleba API...")
    logger.info(
        f"State {settings.state_code}, tolerance {settings.geometry_tolerance} m, "
        f"unverified boundaries {'allowed' if settings.allow_unverified_boundary else 'rejected'}"
    )
    logger.info("=" * 60)

    try:
        if initialize_database():
            logger.info("✓ Database initialization completed")
        else:
            logger.warning("⚠ Database initialization encountered issues")
    except Exception as e:
        logger.error(f"✗ Database initialization failed: {e}", exc_info=True)

    await cache.connect()

    yield

    await cache.close()
    routes.store.clear()
    logger.info("Gleba API shutdown completed")


## @brief FastAPI application instance
app = FastAPI(
    title="Gleba API - Rural Property Geometry Validation",
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url=None
)

# Production Note: Restrict allow_origins in production
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(DatabaseErrorMiddleware)

app.include_router(health.router)
app.include_router(routes.router)

app.add_exception_handler(HTTPException, exceptions.http_exception_handler)
app.add_exception_handler(RequestValidationError, exceptions.validation_exception_handler)
app.add_exception_handler(exceptions.GeometryEngineError, exceptions.geometry_exception_handler)
app.add_exception_handler(Exception, exceptions.general_exception_handler)


@app.get("/")
def read_root():
    return {
        "name": "Gleba API",
        "docs": "/api/docs",
        "health": "/health",
    }
