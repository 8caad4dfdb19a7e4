"""
Settings for the map search backend, read from the environment.

Database selection follows ENVIRONMENT: "production" talks to PostgreSQL,
anything else to a local SQLite file at DB_PATH.
"""

import os
from pathlib import Path
from typing import Optional


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


ENVIRONMENT = os.getenv("ENVIRONMENT", "development").lower()

# SQLite (development); ":memory:" gives a throwaway database
PROJECT_ROOT = Path(__file__).parent
DB_PATH = os.getenv("DB_PATH", str(PROJECT_ROOT / "listings.db"))

# PostgreSQL (production)
DB_HOST = os.getenv("DB_HOST")
DB_PORT = os.getenv("DB_PORT", "5432")
DB_USER = os.getenv("DB_USER")
DB_PASSWORD = os.getenv("DB_PASSWORD")
DB_NAME = os.getenv("DB_NAME")
DB_SSLMODE = os.getenv("DB_SSLMODE", "require")

# Where listings without coordinates are placed (Lagos Island)
DEFAULT_LATITUDE = _env_float("DEFAULT_LATITUDE", 6.5244)
DEFAULT_LONGITUDE = _env_float("DEFAULT_LONGITUDE", 3.3792)

# Filter panel defaults, prices in naira
DEFAULT_MIN_PRICE = _env_float("DEFAULT_MIN_PRICE", 0)
DEFAULT_MAX_PRICE = _env_float("DEFAULT_MAX_PRICE", 1_000_000_000)
DEFAULT_RADIUS_KM = _env_float("DEFAULT_RADIUS_KM", 5)
DEFAULT_HEATMAP = _env_flag("DEFAULT_HEATMAP", False)
DEFAULT_CLUSTERING = _env_flag("DEFAULT_CLUSTERING", True)

POPULAR_AREAS_LIMIT = _env_int("POPULAR_AREAS_LIMIT", 3)
SIDEBAR_PREVIEW_LIMIT = _env_int("SIDEBAR_PREVIEW_LIMIT", 10)
HEATMAP_GRID_CELLS = _env_int("HEATMAP_GRID_CELLS", 40)

# Camera moves requested from the map widget
FIT_BOUNDS_PADDING = _env_int("FIT_BOUNDS_PADDING", 50)
FIT_BOUNDS_MAX_ZOOM = _env_int("FIT_BOUNDS_MAX_ZOOM", 15)
FLY_TO_ZOOM = _env_int("FLY_TO_ZOOM", 15)
RESET_VIEW_ZOOM = _env_int("RESET_VIEW_ZOOM", 11)

# Seconds a search session may sit idle before it is dropped
SESSION_TTL = _env_int("SESSION_TTL", 1800)

_db_instance = None


def is_production() -> bool:
    return ENVIRONMENT == "production"


def get_db_path() -> str:
    """SQLite file used outside production."""
    return DB_PATH


def get_database_url() -> Optional[str]:
    """
    PostgreSQL URL in production, None otherwise.

    Raises:
        ValueError: production mode without complete credentials
    """
    if not is_production():
        return None

    missing = [
        name
        for name, value in (
            ("DB_HOST", DB_HOST),
            ("DB_USER", DB_USER),
            ("DB_PASSWORD", DB_PASSWORD),
            ("DB_NAME", DB_NAME),
        )
        if not value
    ]
    if missing:
        raise ValueError(
            "ENVIRONMENT is 'production' but PostgreSQL settings are missing: "
            + ", ".join(missing)
        )
    return (
        f"postgresql://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}"
        f"?sslmode={DB_SSLMODE}"
    )


def set_db_instance(db_instance):
    """Register the process-wide Database (done once in main.py)."""
    global _db_instance
    _db_instance = db_instance


def get_db_instance():
    if _db_instance is None:
        raise RuntimeError("Database not initialized; call set_db_instance() first")
    return _db_instance
