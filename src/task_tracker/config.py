"""
Environment-driven configuration for the Task Tracker backend and client.

Resolves the SQLite database path, the uploads directory and the API base URL
from environment variables, falling back to production-style paths when the
process runs on the hosting platform.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

# Hosting platform mounts its persistent disk here
PRODUCTION_DATA_DIR = Path("/data")
DEFAULT_DB_FILENAME = "tracker.db"

PRODUCTION_URL = "https://task-tracker.onrender.com"
LOCAL_URL = "http://localhost:3001"
HOSTING_SUFFIXES = ("onrender.com", "vercel.app", "netlify.app")


@dataclass
class Settings:
    """Resolved runtime settings."""
    db_path: Path
    data_dir: Path
    uploads_dir: Path
    is_production: bool = False
    api_base_url: Optional[str] = None
    log_level: str = "INFO"


def load_settings(environ: Optional[Mapping[str, str]] = None,
                  base_dir: Optional[Path] = None) -> Settings:
    """
    Build Settings from environment variables.

    Args:
        environ: Mapping to read instead of os.environ (used by tests)
        base_dir: Directory for non-production defaults (defaults to cwd)

    Returns:
        Settings with database, uploads and client values resolved
    """
    env = os.environ if environ is None else environ
    base = Path(base_dir) if base_dir is not None else Path.cwd()
    is_production = bool(env.get("RENDER"))

    if env.get("SQLITE_DIR"):
        data_dir = Path(env["SQLITE_DIR"])
    else:
        data_dir = PRODUCTION_DATA_DIR if is_production else base / "data"

    if env.get("UPLOADS_DIR"):
        uploads_dir = Path(env["UPLOADS_DIR"])
    else:
        uploads_dir = PRODUCTION_DATA_DIR / "uploads" if is_production else base / "uploads"

    db_path = Path(env["SQLITE_PATH"]) if env.get("SQLITE_PATH") else data_dir / DEFAULT_DB_FILENAME

    return Settings(
        db_path=db_path,
        data_dir=data_dir,
        uploads_dir=uploads_dir,
        is_production=is_production,
        api_base_url=env.get("TASK_TRACKER_API_BASE_URL") or None,
        log_level=env.get("LOG_LEVEL", "INFO").upper(),
    )


def ensure_directories(settings: Settings) -> None:
    """Create data, database and uploads directories if they are missing."""
    for directory in (settings.data_dir, settings.db_path.parent, settings.uploads_dir):
        directory.mkdir(parents=True, exist_ok=True)
    logger.info(f"Database path: {settings.db_path}")
    logger.info(f"Uploads directory: {settings.uploads_dir}")
