"""
@file seed.py
@brief Database initialization and reference data seeding on startup

@details
Manages the reference database lifecycle:
- Connection health checking with retry logic
- PostGIS extension and table creation
- Automatic IBGE municipal mesh download (if the database is empty)
- ETL invocation to load municipalities and hydrography
- Idempotent initialization (safe to call multiple times)

Downloads land in a temporary directory that is deleted after seeding.
The application keeps running when seeding fails: property validation then
falls back to "boundary unavailable".

@author Gleba Project
@date 2026-10-18
@version 1.0
@license AGPL-3.0

@see etl.ingest_ibge for the ETL pipeline
@see db.database for engine configuration
"""

import logging
import os
import shutil
import time
import zipfile
from pathlib import Path

import requests
from sqlalchemy import inspect, text
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from gleba.core.config import settings
from gleba.db.base import Base
from gleba.db.database import engine

logger = logging.getLogger(__name__)

## @brief IBGE municipal mesh, one zip per state
IBGE_MESH_URL = (
    "https://geoftp.ibge.gov.br/organizacao_do_territorio/malhas_territoriais/"
    "malhas_municipais/municipio_{year}/UFs/{uf}/{uf}_Municipios_{year}.zip"
)

## @brief Mesh edition to download
IBGE_MESH_YEAR = os.getenv("IBGE_MESH_YEAR", "2022")

## @brief IBGE state codes to UF abbreviations
STATE_ABBREVIATIONS = {
    "11": "RO", "12": "AC", "13": "AM", "14": "RR", "15": "PA", "16": "AP", "17": "TO",
    "21": "MA", "22": "PI", "23": "CE", "24": "RN", "25": "PB", "26": "PE", "27": "AL",
    "28": "SE", "29": "BA", "31": "MG", "32": "ES", "33": "RJ", "35": "SP", "41": "PR",
    "42": "SC", "43": "RS", "50": "MS", "51": "MT", "52": "GO", "53": "DF",
}

## @brief Temporary directory for downloads
TMP_DATA_DIR = "/tmp/gleba_data_download"

_session = None


def get_session() -> requests.Session:
    """Get or create the HTTP session used for downloads."""
    global _session
    if _session is None:
        _session = requests.Session()
        _session.headers.update({"User-Agent": "Gleba IBGE Data Download"})
    return _session


def mesh_url(state_code: str, year: str = IBGE_MESH_YEAR) -> str:
    """
    @brief Download URL of the municipal mesh of a state

    @throws ValueError for an unknown state code
    """
    uf = STATE_ABBREVIATIONS.get(state_code)
    if uf is None:
        raise ValueError(f"Unknown IBGE state code: {state_code}")
    return IBGE_MESH_URL.format(year=year, uf=uf)


def download_file(url: str, destination: Path, retries: int = 3, retry_delay: int = 5) -> bool:
    """
    @brief Download a file with retry logic

    @param url Source URL
    @param destination Target file
    @param retries Number of attempts
    @param retry_delay Seconds between attempts
    @return True if successful, False otherwise
    """
    for attempt in range(retries):
        try:
            logger.info(f"Downloading {url}")
            response = get_session().get(url, timeout=60, stream=True, allow_redirects=True)
            response.raise_for_status()

            downloaded = 0
            with open(destination, "wb") as f:
                for chunk in response.iter_content(chunk_size=8192):
                    if chunk:
                        f.write(chunk)
                        downloaded += len(chunk)

            logger.info(f"✓ Downloaded {downloaded:,} bytes")
            return True

        except requests.exceptions.RequestException as e:
            logger.warning(f"✗ Download attempt {attempt + 1}/{retries} failed: {e}")
            if attempt < retries - 1:
                logger.info(f"Retrying in {retry_delay} seconds...")
                time.sleep(retry_delay)

    logger.error(f"✗ Failed to download after {retries} attempts")
    return False


def extract_zip(zip_path: Path, target_dir: Path) -> bool:
    """
    @brief Extract a zip archive

    @return True if successful, False for a corrupt archive
    """
    try:
        logger.info(f"Extracting to {target_dir}")
        os.makedirs(target_dir, exist_ok=True)
        with zipfile.ZipFile(zip_path, "r") as zip_ref:
            zip_ref.extractall(target_dir)
        logger.info("✓ Extracted successfully")
        return True
    except zipfile.BadZipFile:
        logger.error(f"✗ Invalid ZIP file: {zip_path}")
        return False
    except OSError as e:
        logger.error(f"✗ Extraction error: {e}")
        return False


def validate_shapefile(target_dir: Path) -> bool:
    """
    @brief Check that the .shp, .shx and .dbf components were extracted
    """
    required_extensions = {".shp", ".shx", ".dbf"}
    found_extensions = {path.suffix.lower() for path in target_dir.rglob("*")} & required_extensions

    if found_extensions == required_extensions:
        logger.info("✓ Shapefile validated (found .shp, .shx, .dbf)")
        return True

    logger.warning(f"⚠ Missing shapefile components: {required_extensions - found_extensions}")
    return False


def download_ibge_mesh(state_code: str = None) -> bool:
    """
    @brief Download and extract the IBGE municipal mesh of the configured state

    @param state_code IBGE state code [default: settings.state_code]
    @return True when a usable shapefile was extracted
    """
    state_code = state_code or settings.state_code
    try:
        url = mesh_url(state_code)
    except ValueError as e:
        logger.error(str(e))
        return False

    target_dir = Path(TMP_DATA_DIR) / "municipios"
    os.makedirs(target_dir, exist_ok=True)
    zip_path = Path(TMP_DATA_DIR) / f"municipios_{state_code}.zip"

    if not download_file(url, zip_path):
        return False

    try:
        if not extract_zip(zip_path, target_dir):
            return False
        return validate_shapefile(target_dir)
    finally:
        zip_path.unlink(missing_ok=True)


def wait_for_database(max_retries: int = 30, retry_delay: int = 2) -> bool:
    """
    @brief Wait for the database to accept connections

    @details
    Useful for containerized deployments where PostGIS starts after the API.

    @param max_retries Maximum connection attempts [default: 30]
    @param retry_delay Delay between retries in seconds [default: 2]
    @return True if the database is available, False if retries ran out
    """
    retries = 0
    while retries < max_retries:
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.info("✓ Database connection established successfully")
            return True
        except OperationalError as e:
            retries += 1
            logger.warning(f"Database not ready (attempt {retries}/{max_retries}): {str(e)[:100]}")
            if retries < max_retries:
                logger.info(f"Retrying in {retry_delay} seconds...")
                time.sleep(retry_delay)

    logger.error(f"Failed to connect to database after {max_retries} attempts")
    return False


def check_database_seeded(db_engine=None) -> bool:
    """
    @brief True when the municipalities table holds rows of the configured state

    @param db_engine SQLAlchemy engine [default: shared engine]
    @return False for a missing table, an empty table or any database error
    """
    db_engine = db_engine or engine
    try:
        if "municipalities" not in inspect(db_engine).get_table_names():
            logger.info("municipalities table not found - database needs seeding")
            return False

        with db_engine.begin() as conn:
            count = conn.execute(
                text("SELECT COUNT(*) FROM municipalities WHERE code LIKE :prefix"),
                {"prefix": f"{settings.state_code}%"},
            ).scalar()

        if not count:
            logger.info("municipalities table is empty - database needs seeding")
            return False

        logger.info(f"✓ Database already seeded with {count} municipalities")
        return True
    except SQLAlchemyError as e:
        logger.warning(f"Error checking database seed status: {e}")
        return False


def seed_database_from_tmp() -> bool:
    """
    @brief Run the ETL against the downloaded data, then clean up

    @details
    RAW_DATA_PATH is pointed at the download directory for the duration of
    the run and restored afterwards.
    """
    from gleba.etl.ingest_ibge import run_etl

    original_raw_path = os.getenv("RAW_DATA_PATH")

    try:
        os.environ["RAW_DATA_PATH"] = TMP_DATA_DIR
        logger.info(f"Seeding from temporary directory: {TMP_DATA_DIR}")
        return run_etl()
    except Exception as e:
        logger.error(f"Error during database seeding: {e}", exc_info=True)
        return False
    finally:
        if os.path.exists(TMP_DATA_DIR):
            shutil.rmtree(TMP_DATA_DIR, ignore_errors=True)
            logger.info("✓ Temporary directory cleaned up")

        if original_raw_path is None:
            os.environ.pop("RAW_DATA_PATH", None)
        else:
            os.environ["RAW_DATA_PATH"] = original_raw_path


def create_schema() -> bool:
    """
    @brief Enable PostGIS and create the reference tables
    """
    try:
        with engine.begin() as conn:
            conn.execute(text("CREATE EXTENSION IF NOT EXISTS postgis"))
        # registers the ORM models on Base.metadata
        from gleba.models import hydrography, municipality  # noqa: F401

        Base.metadata.create_all(bind=engine)
        logger.info("✓ Tables created/verified")
        return True
    except SQLAlchemyError as e:
        logger.error(f"Error creating tables: {e}", exc_info=True)
        return False


def initialize_database() -> bool:
    """
    @brief Main entry point for database initialization on app startup

    @details
    1. Wait for PostgreSQL to be available
    2. Enable PostGIS and create tables
    3. When no municipality of the state is loaded: download the IBGE mesh
       and run the ETL

    @return True if all steps succeed, False otherwise (errors are logged;
            the application continues without reference data)
    """
    logger.info("Starting database initialization...")

    if not wait_for_database(max_retries=1, retry_delay=1):
        logger.error("Could not establish database connection - proceeding anyway")
        return False

    if not create_schema():
        return False

    if check_database_seeded():
        logger.info("Skipping database seeding - already seeded")
        return True

    logger.info("Database is empty - downloading IBGE municipal mesh...")
    if not download_ibge_mesh():
        logger.error("✗ Failed to download IBGE data")
        shutil.rmtree(TMP_DATA_DIR, ignore_errors=True)
        return False

    if not seed_database_from_tmp():
        logger.error("Database seeding failed - municipality boundaries unavailable")
        return False

    logger.info("✓ Database initialization completed successfully")
    return True
