"""
Hydrography Reference Data Model

Water bodies (rivers, lakes, reservoirs) used to keep the property
headquarters off hydrography. Geometries are kept in their source type
(lines for drainage, polygons for water masses).

Author: Gleba Project
License: AGPL-3.0
"""

from geoalchemy2 import Geometry
from sqlalchemy import Column, Integer, String

from gleba.db.base import Base


class HydrographyFeature(Base):
    """
    ORM model of a water body.

    Attributes:
        id (int): Primary key
        name (str): Water body name, when known
        kind (str): Feature kind ("drainage", "water_mass", ...)
        geom: Any geometry type, SRID 4326
    """

    __tablename__ = "hydrography"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=True)
    kind = Column(String(50), nullable=True, index=True)
    geom = Column(Geometry("GEOMETRY", srid=4326, spatial_index=True))
