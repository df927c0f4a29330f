"""
Path utilities for CardLink.

Handles path resolution for both development mode and frozen (PyInstaller) executables.
- In development: paths are relative to the project root
- When frozen: paths are relative to the executable location

External data (db/, config.json) lives NEXT TO the executable, not bundled inside.
"""

import os
import sys
from pathlib import Path


def get_app_dir() -> Path:
    """
    Get the application directory.

    - In development: the project root (parent of cardlink/)
    - When frozen: the directory containing the executable
    """
    if getattr(sys, 'frozen', False):
        return Path(sys.executable).parent
    return Path(__file__).parent.parent


def get_db_dir() -> Path:
    """Get the database directory holding store.json. CARDLINK_DB_DIR overrides it."""
    override = os.environ.get("CARDLINK_DB_DIR")
    if override:
        return Path(override)
    return get_app_dir() / "db"


def get_store_path() -> Path:
    """Get the path to the key-value store file."""
    return get_db_dir() / "store.json"


def get_config_path() -> Path:
    """Get the path to the config file."""
    return get_app_dir() / "config.json"

