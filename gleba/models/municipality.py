"""
Municipality Reference Data Model

Model: Municipality
- One row per IBGE municipality of the configured state
- Boundary stored as WGS84 multipolygon (EPSG:4326)
- Loaded from the IBGE municipal mesh by the ETL (etl.ingest_ibge)

Key Attributes:
- code: 7-digit IBGE municipality code (first two digits are the state code)
- name: Official municipality name
- state: UF abbreviation (e.g. "SP")
- area_km2: Official area reported by IBGE

Author: Gleba Project
License: AGPL-3.0
"""

from geoalchemy2 import Geometry
from sqlalchemy import Column, Float, Integer, String

from gleba.db.base import Base


class Municipality(Base):
    """
    ORM model of a municipality boundary.

    Attributes:
        id (int): Surrogate primary key
        code (str): IBGE code, unique
        name (str): Official name
        state (str): UF abbreviation
        area_km2 (float): IBGE official area, if provided
        geom: MULTIPOLYGON boundary, SRID 4326
    """

    __tablename__ = "municipalities"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(7), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    state = Column(String(2), default="SP")
    area_km2 = Column(Float, nullable=True)
    geom = Column(Geometry("MULTIPOLYGON", srid=4326, spatial_index=True))

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "name": self.name,
            "state": self.state,
            "area_km2": self.area_km2,
        }
