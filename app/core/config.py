"""
Application configuration.

This module centralizes environment-based configuration for the movie
catalog, including media and data locations, database selection, TMDB
access and admin tokens.
"""

import os
from dataclasses import dataclass
from pathlib import Path


def _env_bool(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


# Root directory for movie files (mounted volume)
MEDIA_ROOT = os.getenv("MEDIA_ROOT", "/media/movies")

# Database file and scan snapshot live here (mounted volume)
DATA_DIR = os.getenv("DATA_DIR", "/data")

# "sqlite" or "mysql"
DB_TYPE = os.getenv("DB_TYPE", "sqlite").strip().lower()
DB_NAME = os.getenv("DB_NAME", "media")

# MySQL server (DB_TYPE=mysql only)
DB_HOST = os.getenv("DB_HOST", "localhost")
DB_PORT = int(os.getenv("DB_PORT", "3306"))
DB_USER = os.getenv("DB_USER", "root")
DB_PASS = os.getenv("DB_PASS", "")

# TMDB enrichment is disabled when no key is configured
TMDB_API_KEY = os.getenv("TMDB_API_KEY") or None

# Admin scan token (admin actions only)
ADMIN_SCAN_TOKEN = os.getenv("ADMIN_SCAN_TOKEN")

# Parallel TMDB lookups per scan; 1 keeps lookups sequential
ENRICH_WORKERS = max(1, int(os.getenv("ENRICH_WORKERS", "1")))

SCAN_ON_STARTUP = _env_bool("SCAN_ON_STARTUP")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


@dataclass(frozen=True)
class Settings:
    """
    Resolved configuration handed to the store, scanner and API.
    """
    media_root: Path
    data_dir: Path
    db_type: str = "sqlite"
    db_name: str = "media"
    db_host: str = "localhost"
    db_port: int = 3306
    db_user: str = "root"
    db_pass: str = ""
    tmdb_api_key: str | None = None
    admin_scan_token: str | None = None
    enrich_workers: int = 1

    @property
    def sqlite_path(self) -> Path:
        return self.data_dir / f"{self.db_name}.sqlite"

    @property
    def snapshot_path(self) -> Path:
        return self.data_dir / f"{self.db_name}.json"


def load_settings():
    """
    Build Settings from the module-level environment values.
    """
    return Settings(
        media_root=Path(MEDIA_ROOT),
        data_dir=Path(DATA_DIR),
        db_type=DB_TYPE,
        db_name=DB_NAME,
        db_host=DB_HOST,
        db_port=DB_PORT,
        db_user=DB_USER,
        db_pass=DB_PASS,
        tmdb_api_key=TMDB_API_KEY,
        admin_scan_token=ADMIN_SCAN_TOKEN,
        enrich_workers=ENRICH_WORKERS,
    )
