"""
@file municipalities.py
@brief Reference data providers backed by PostGIS and Redis

@details
Implements the BoundaryProvider and HydrographyProvider protocols used by
the layer registry:

- **DatabaseBoundaryProvider**: municipality boundary by IBGE code, cached in
  Redis as GeoJSON for settings.boundary_cache_ttl seconds
- **DatabaseHydrographyProvider**: water bodies intersecting an area
  (ST_Intersects on the spatial index)

Database failures are logged and degrade to "no boundary" / "no
hydrography"; the registry then applies its unverified-boundary policy.

@author Gleba Project
@date 2026-10-18
@version 1.0
@license AGPL-3.0

@see services.registry for the provider protocols
"""

import logging
from typing import Any, Dict, List, Optional

from geoalchemy2.shape import from_shape, to_shape
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from gleba.core.cache import cache as default_cache
from gleba.core.config import Settings, settings as default_settings
from gleba.core.exceptions import GeometryEngineError
from gleba.db.database import SessionLocal
from gleba.geometry.geojson import from_geojson, to_geojson
from gleba.models.catalog import MUNICIPALITIES
from gleba.models.hydrography import HydrographyFeature
from gleba.models.municipality import Municipality

logger = logging.getLogger(__name__)


def boundary_cache_key(municipality_id: str) -> str:
    return f"municipality:boundary:{municipality_id}"


class DatabaseBoundaryProvider:
    """
    @brief Municipality boundaries from the municipalities table

    @param session_factory Callable returning a SQLAlchemy session
    @param cache RedisCache-like object (get/set)
    @param settings Settings supplying the cache TTL
    """

    def __init__(self, session_factory=SessionLocal, cache=default_cache, settings: Settings = default_settings):
        self.session_factory = session_factory
        self.cache = cache
        self.settings = settings

    async def get_boundary(self, municipality_id: str):
        """
        @brief Boundary geometry of a municipality, or None when unknown
        """
        key = boundary_cache_key(municipality_id)
        cached = await self.cache.get(key)
        if cached:
            try:
                return from_geojson(cached, check_coordinates=False)
            except GeometryEngineError as e:
                logger.warning(f"Discarding unreadable cached boundary for {municipality_id}: {e}")

        geometry = self._query_boundary(municipality_id)
        if geometry is not None:
            await self.cache.set(key, to_geojson(geometry), ttl=self.settings.boundary_cache_ttl)
        return geometry

    def _query_boundary(self, municipality_id: str):
        db = self.session_factory()
        try:
            row = db.query(Municipality).filter(Municipality.code == municipality_id).first()
            if row is None or row.geom is None:
                logger.info(f"No boundary stored for municipality {municipality_id}")
                return None
            return to_shape(row.geom)
        except SQLAlchemyError as e:
            logger.warning(f"Boundary lookup failed for {municipality_id}: {e}")
            return None
        finally:
            db.close()


class DatabaseHydrographyProvider:
    """
    @brief Water bodies from the hydrography table
    """

    def __init__(self, session_factory=SessionLocal):
        self.session_factory = session_factory

    async def get_hydrography(self, area_geometry) -> List[Any]:
        """
        @brief Geometries of the water bodies intersecting an area
        """
        if area_geometry is None:
            return []

        db = self.session_factory()
        try:
            rows = (
                db.query(HydrographyFeature)
                .filter(func.ST_Intersects(HydrographyFeature.geom, from_shape(area_geometry, srid=4326)))
                .all()
            )
            return [to_shape(row.geom) for row in rows if row.geom is not None]
        except SQLAlchemyError as e:
            logger.warning(f"Hydrography lookup failed: {e}")
            return []
        finally:
            db.close()


def list_municipalities(db: Optional[Session], settings: Settings = default_settings) -> List[Dict[str, Any]]:
    """
    @brief Accepted municipalities with their boundary availability

    @details
    Names come from the database when the boundary is loaded, otherwise from
    the built-in catalog. Extra allow-listed codes without a catalog name are
    listed under their code.

    @param db Open session, or None to list the catalog only
    @param settings Settings providing the allow-list
    @return List of {code, name, has_boundary}, sorted by name
    """
    stored: Dict[str, str] = {}
    if db is not None:
        try:
            codes = sorted(settings.allowed_municipalities)
            for code, name in db.query(Municipality.code, Municipality.name).filter(Municipality.code.in_(codes)):
                stored[code] = name
        except SQLAlchemyError as e:
            logger.warning(f"Municipality listing fell back to the catalog: {e}")

    entries = [
        {
            "code": code,
            "name": stored.get(code) or MUNICIPALITIES.get(code, code),
            "has_boundary": code in stored,
        }
        for code in settings.allowed_municipalities
        if settings.is_accepted_municipality(code)
    ]
    return sorted(entries, key=lambda entry: entry["name"])
