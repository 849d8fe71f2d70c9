"""Configuration for Image Host.

Values come from the environment (or a `.env` file next to this module) and
fall back to paths under the application folder.
"""
import os
from pathlib import Path

from dotenv import load_dotenv

APP_DIR = Path(__file__).resolve().parent
load_dotenv(APP_DIR / ".env")

BASE_FOLDER = Path(os.getenv("IHOST_BASE_FOLDER", str(APP_DIR / "data")))
DB_PATH = Path(os.getenv("IHOST_DB_PATH", str(BASE_FOLDER / "sqlite.db")))
STORE_FOLDER = BASE_FOLDER / "store"
THUMB_FOLDER = BASE_FOLDER / "thumb"
TMP_FOLDER = BASE_FOLDER / "tmp"

TEMPLATES_DIR = APP_DIR / "templates"
STATIC_DIR = APP_DIR / "static"

THUMBNAIL_DIMENSIONS = int(os.getenv("IHOST_THUMBNAIL_DIMENSIONS", "200"))

# Row IDs are shifted before base62 encoding so public IDs are never tiny.
ID_OFFSET = 10000

# Seconds to wait on a remote image before giving up.
DOWNLOAD_TIMEOUT = float(os.getenv("IHOST_DOWNLOAD_TIMEOUT", "30"))

# When set, files are handed to nginx via X-Accel-Redirect under these prefixes.
XACCEL_IMAGE_PREFIX = os.getenv("IHOST_XACCEL_IMAGE", "")
XACCEL_THUMB_PREFIX = os.getenv("IHOST_XACCEL_THUMB", "")

LOG_LEVEL = os.getenv("IHOST_LOG_LEVEL", "INFO")
LOG_DIR = Path(os.getenv("IHOST_LOG_DIR", str(BASE_FOLDER / "logs")))


def ensure_folders() -> None:
    """Create the store, thumbnail and temp folders."""
    for folder in (STORE_FOLDER, THUMB_FOLDER, TMP_FOLDER):
        folder.mkdir(parents=True, exist_ok=True)
