"""
IBGE / ANA Reference Data ETL (Extract, Transform, Load)

Loads the reference layers used by property validation into PostGIS:

1. EXTRACT: Reads shapefiles from the raw data directory
2. TRANSFORM: Filters the configured state, reprojects to WGS84, drops
   null/invalid geometries, promotes polygons to multipolygons
3. LOAD: Writes the `municipalities` and `hydrography` tables

Data Sources:
- <UF>_Municipios_<year>.shp: IBGE municipal mesh (CD_MUN, NM_MUN,
  SIGLA_UF, AREA_KM2)
- hydrography/*.shp: ANA drainage and water-mass shapefiles (optional)

Author: Gleba Project
License: AGPL-3.0
"""

import glob
import logging
import os
from typing import Optional

import geopandas as gpd
import pandas as pd
from geoalchemy2 import Geometry
from shapely.geometry import MultiPolygon, Polygon
from sqlalchemy import text

from gleba.core.config import settings
from gleba.db.database import engine

logger = logging.getLogger(__name__)

## IBGE attribute names mapped to the municipalities table
MUNICIPALITY_COLUMNS = {
    "CD_MUN": "code",
    "NM_MUN": "name",
    "SIGLA_UF": "state",
    "AREA_KM2": "area_km2",
}

## Candidate name attributes in ANA hydrography shapefiles
HYDROGRAPHY_NAME_COLUMNS = ("NOME", "NORIOCOMP", "NM_RIO", "nome")


def raw_data_path() -> str:
    return os.getenv("RAW_DATA_PATH", "/app/data")


def load_data(pattern: str) -> Optional[gpd.GeoDataFrame]:
    """
    Load the first shapefile matching a pattern inside the raw data directory.

    Both flat and nested layouts are searched, so "SP_Municipios_2022.shp" and
    "municipios/SP_Municipios_2022.shp" are found with "*Municipios*.shp".

    Args:
        pattern (str): Glob pattern relative to RAW_DATA_PATH

    Returns:
        gpd.GeoDataFrame or None if no file matches or it cannot be read
    """
    base = raw_data_path()
    matches = sorted(
        glob.glob(os.path.join(base, pattern))
        + glob.glob(os.path.join(base, "**", pattern), recursive=True)
    )
    if not matches:
        logger.warning(f"No shapefile matching {pattern} in {base}")
        return None

    file_path = matches[0]
    logger.info(f"Loading shapefile: {file_path}")
    try:
        gdf = gpd.read_file(file_path)
        logger.info(f"  → Loaded {len(gdf)} features")
        return gdf
    except Exception as e:
        logger.error(f"Error reading {file_path}: {e}")
        return None


def filter_state(municipalities: gpd.GeoDataFrame, state_code: str) -> gpd.GeoDataFrame:
    """
    Keep only municipalities whose IBGE code starts with the state code.

    Args:
        municipalities (gpd.GeoDataFrame): IBGE mesh with a CD_MUN column
        state_code (str): Two-digit IBGE state code (e.g. "35")

    Returns:
        gpd.GeoDataFrame: Municipalities of the state
    """
    codes = municipalities["CD_MUN"].astype(str)
    filtered = municipalities[codes.str.startswith(state_code)].copy()
    logger.info(f"  → {len(filtered)} municipalities in state {state_code}")
    return filtered


def reproject_and_clean(gdf: gpd.GeoDataFrame) -> gpd.GeoDataFrame:
    """
    Reproject to WGS84 and remove null, empty and invalid geometries.

    Invalid polygons are repaired with buffer(0) before the check, which is
    enough for the self-touching rings common in the IBGE mesh.

    Args:
        gdf (gpd.GeoDataFrame): Features in any CRS

    Returns:
        gpd.GeoDataFrame: Clean features in EPSG:4326
    """
    logger.info("Reprojecting and cleaning geometry...")

    if gdf.crs is not None and gdf.crs != "EPSG:4326":
        logger.info(f"  → Reprojecting from {gdf.crs} to EPSG:4326")
        gdf = gdf.to_crs("EPSG:4326")

    initial_count = len(gdf)
    gdf = gdf[gdf.geometry.notnull() & ~gdf.geometry.is_empty].copy()

    invalid = ~gdf.geometry.is_valid
    if invalid.any():
        logger.info(f"  → Repairing {int(invalid.sum())} invalid geometries")
        gdf.loc[invalid, "geometry"] = gdf.loc[invalid, "geometry"].buffer(0)
        gdf = gdf[gdf.geometry.is_valid & ~gdf.geometry.is_empty]

    removed = initial_count - len(gdf)
    if removed > 0:
        logger.warning(f"  → Removed {removed} features with null or invalid geometry")

    return gdf


def to_multipolygon(geometry):
    if isinstance(geometry, Polygon):
        return MultiPolygon([geometry])
    return geometry


def prepare_municipalities(municipalities: gpd.GeoDataFrame) -> gpd.GeoDataFrame:
    """
    Select and rename the IBGE columns to the municipalities table schema.

    Args:
        municipalities (gpd.GeoDataFrame): Clean mesh of one state

    Returns:
        gpd.GeoDataFrame: Ready for to_postgis()
    """
    logger.info("Preparing municipalities for database ingestion...")

    columns = [column for column in MUNICIPALITY_COLUMNS if column in municipalities.columns]
    output_gdf = municipalities[columns + ["geometry"]].copy()
    output_gdf = output_gdf.rename(columns=MUNICIPALITY_COLUMNS)

    output_gdf["code"] = output_gdf["code"].astype(str)
    if "area_km2" in output_gdf.columns:
        output_gdf["area_km2"] = pd.to_numeric(output_gdf["area_km2"], errors="coerce")

    output_gdf["geometry"] = output_gdf["geometry"].apply(to_multipolygon)
    output_gdf = output_gdf.rename_geometry("geom")

    output_gdf = output_gdf.reset_index(drop=True)
    output_gdf["id"] = output_gdf.index + 1

    logger.info(f"  → {len(output_gdf)} municipalities ready for ingestion")
    return output_gdf


def prepare_hydrography(hydrography: gpd.GeoDataFrame, kind: str) -> gpd.GeoDataFrame:
    """
    Reduce an ANA hydrography layer to (name, kind, geom).

    Args:
        hydrography (gpd.GeoDataFrame): Clean water bodies
        kind (str): Feature kind stored with every row

    Returns:
        gpd.GeoDataFrame: Ready for to_postgis()
    """
    name_column = next((c for c in HYDROGRAPHY_NAME_COLUMNS if c in hydrography.columns), None)

    names = hydrography[name_column].astype(str) if name_column else pd.Series(None, index=hydrography.index, dtype=object)

    output_gdf = gpd.GeoDataFrame(
        {"name": names, "kind": kind},
        index=hydrography.index,
        geometry=hydrography.geometry,
        crs=hydrography.crs,
    )
    output_gdf = output_gdf.rename_geometry("geom").reset_index(drop=True)
    logger.info(f"  → {len(output_gdf)} {kind} features ready for ingestion")
    return output_gdf


def ingest_to_postgis(output_gdf: gpd.GeoDataFrame, table: str, geometry_type: str) -> bool:
    """
    Write a prepared GeoDataFrame to PostGIS, replacing the table.

    Args:
        output_gdf (gpd.GeoDataFrame): Prepared data
        table (str): Target table
        geometry_type (str): PostGIS geometry type of the `geom` column

    Returns:
        bool: True if successful, False otherwise
    """
    logger.info(f"Ingesting {len(output_gdf)} rows into {table}...")
    try:
        output_gdf.to_postgis(
            table,
            engine,
            if_exists="replace",
            index=False,
            dtype={"geom": Geometry(geometry_type, srid=4326)},
        )
        logger.info(f"  → {table} ingested successfully")
        return True
    except Exception as e:
        logger.error(f"Error during PostGIS ingestion of {table}: {e}")
        return False


def set_primary_key(table: str) -> bool:
    try:
        with engine.begin() as conn:
            conn.execute(text(f"ALTER TABLE {table} ADD PRIMARY KEY (id);"))
        logger.info(f"  → Primary key set on {table}")
        return True
    except Exception as e:
        logger.warning(f"Primary key on {table} may already exist: {e}")
        return True


def run_municipalities_etl(state_code: Optional[str] = None) -> bool:
    """
    Load the IBGE municipal mesh of one state into the municipalities table.

    Args:
        state_code (str): IBGE state code [default: settings.state_code]

    Returns:
        bool: True when the table was written
    """
    state_code = state_code or settings.state_code

    municipalities = load_data("*Municipios*.shp")
    if municipalities is None:
        logger.error("IBGE municipal mesh not found - cannot load municipalities")
        return False

    municipalities = filter_state(municipalities, state_code)
    municipalities = reproject_and_clean(municipalities)
    output_gdf = prepare_municipalities(municipalities)

    if not ingest_to_postgis(output_gdf, "municipalities", "MULTIPOLYGON"):
        return False
    return set_primary_key("municipalities")


def run_hydrography_etl() -> bool:
    """
    Load every hydrography shapefile found under RAW_DATA_PATH/hydrography.

    Each file becomes one feature kind (its file name). Missing hydrography
    is not an error: headquarters are then only checked against the
    property boundary.
    """
    folder = os.path.join(raw_data_path(), "hydrography")
    paths = sorted(glob.glob(os.path.join(folder, "*.shp")))
    if not paths:
        logger.info("No hydrography shapefiles found - skipping")
        return True

    frames = []
    for path in paths:
        kind = os.path.splitext(os.path.basename(path))[0].lower()
        try:
            gdf = gpd.read_file(path)
        except Exception as e:
            logger.error(f"Error reading {path}: {e}")
            return False
        frames.append(prepare_hydrography(reproject_and_clean(gdf), kind))

    output_gdf = gpd.GeoDataFrame(pd.concat(frames, ignore_index=True), geometry="geom", crs="EPSG:4326")
    output_gdf["id"] = output_gdf.index + 1

    if not ingest_to_postgis(output_gdf, "hydrography", "GEOMETRY"):
        return False
    return set_primary_key("hydrography")


def run_etl() -> bool:
    """
    Run the complete reference data ETL.

    Returns:
        bool: True when municipalities (required) and hydrography (optional)
        were both loaded without error
    """
    logger.info("=" * 70)
    logger.info("Reference data ETL")
    logger.info("=" * 70)

    if not run_municipalities_etl():
        return False
    if not run_hydrography_etl():
        logger.warning("Hydrography ETL failed - headquarters checks will skip hydrography")
    logger.info("✓ Reference data ETL completed")
    return True


if __name__ == "__main__":
    from gleba.core.logging import setup_logging

    setup_logging()
    run_etl()
