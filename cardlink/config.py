"""
Configuration management for CardLink.

Handles persistent configuration including:
- Snap radius used when finishing a drag
- Log level
- Where the key-value store lives, and the host/port of the web page

Config is stored in config.json next to the executable/project root.
Environment variables (also read from .env) win over the file.
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from cardlink.paths import get_config_path, get_db_dir
from cardlink.connector.constants import SNAP_RADIUS

logger = logging.getLogger(__name__)

ENV_SNAP_RADIUS = "CARDLINK_SNAP_RADIUS"
ENV_LOG_LEVEL = "CARDLINK_LOG_LEVEL"
ENV_DB_DIR = "CARDLINK_DB_DIR"
ENV_PORT = "CARDLINK_PORT"

LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


@dataclass
class Settings:
    """Resolved runtime settings."""
    snap_radius: float = SNAP_RADIUS
    log_level: str = 'INFO'
    db_dir: str = ''
    host: str = '127.0.0.1'
    port: int = 8080


def load_config(config_path: Optional[Path] = None) -> dict:
    """Load configuration from config.json."""
    config_path = config_path or get_config_path()
    if config_path.exists():
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"Could not read {config_path}: {e}")
            return {}
    return {}


def save_config(config: dict, config_path: Optional[Path] = None) -> None:
    """Save configuration to config.json."""
    config_path = config_path or get_config_path()
    with open(config_path, 'w', encoding='utf-8') as f:
        json.dump(config, f, indent=2)


def get_settings(config: Optional[dict] = None) -> Settings:
    """
    Resolve settings.

    Priority:
    1. Environment variables (CARDLINK_*)
    2. Stored in config.json
    3. Defaults
    """
    if config is None:
        config = load_config()

    settings = Settings(db_dir=str(get_db_dir()))
    settings.snap_radius = _as_float(config.get("snap_radius"), settings.snap_radius, "snap_radius")
    settings.log_level = _as_level(config.get("log_level"), settings.log_level)
    settings.host = config.get("host") or settings.host
    settings.port = _as_int(config.get("port"), settings.port, "port")
    if config.get("db_dir"):
        settings.db_dir = str(config["db_dir"])

    settings.snap_radius = _as_float(os.environ.get(ENV_SNAP_RADIUS), settings.snap_radius, ENV_SNAP_RADIUS)
    settings.log_level = _as_level(os.environ.get(ENV_LOG_LEVEL), settings.log_level)
    settings.port = _as_int(os.environ.get(ENV_PORT), settings.port, ENV_PORT)
    if os.environ.get(ENV_DB_DIR):
        settings.db_dir = os.environ[ENV_DB_DIR]

    return settings


def _as_float(value, default: float, name: str) -> float:
    if value is None or value == '':
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring invalid {name}={value!r}")
        return default
    if result <= 0:
        logger.warning(f"Ignoring non-positive {name}={value!r}")
        return default
    return result


def _as_int(value, default: int, name: str) -> int:
    if value is None or value == '':
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring invalid {name}={value!r}")
        return default


def _as_level(value, default: str) -> str:
    if not value:
        return default
    level = str(value).upper()
    if level not in LOG_LEVELS:
        logger.warning(f"Ignoring unknown log level {value!r}")
        return default
    return level
