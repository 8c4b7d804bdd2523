"""
@file __init__.py
@brief Gleba backend package initialization

@details
Geometry validation and area accounting for rural property declarations
(CAR): a layer registry that validates drawn geometries against the
property boundary, the municipality and the hydrography, and derives the
hectare figures of the declaration.

**Package Structure:**
- geometry/: Geometry engine protocol, shapely engines, units, GeoJSON
- models/: Classification catalog, layer records, result objects, ORM models
- services/: Validation, area accounting, layer registry, reference data
- api/: FastAPI route handlers and request schemas
- core/: Configuration, logging, errors, cache, health, middleware
- db/: Database configuration and initialization
- etl/: IBGE / ANA reference data ingestion

@author Gleba Project
@date 2026-10-18
@version 1.0
@license AGPL-3.0

@see main for FastAPI application setup
@see services.registry for the layer state machine
"""

__version__ = "1.0.0"
