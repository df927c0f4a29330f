"""
Key-value store for CardLink.

A single JSON file (db/store.json by default) holding the few values the app
persists between sessions:
- scenario-layout: the last-saved layout (cards + connections)
- endpoint-occupancy: occupied endpoint refs at save time
- log-level: log level chosen in the UI
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from cardlink.paths import get_store_path

logger = logging.getLogger(__name__)

LAYOUT_KEY = 'scenario-layout'
OCCUPANCY_KEY = 'endpoint-occupancy'
LOG_LEVEL_KEY = 'log-level'


class KeyValueStore:
    """
    JSON-file backed key-value store.

    The whole file is read on construction and rewritten on every change.
    A missing or unreadable file starts the store empty.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path) if path else get_store_path()
        self._data: Dict[str, Any] = self._read()

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"Failed to read store file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring store file {self.path}: top level is not an object")
            return {}
        return data

    def _write(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'w', encoding='utf-8') as f:
            json.dump(self._data, f, indent=2, ensure_ascii=False)

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
        self._write()
        logger.debug(f"Stored '{key}' in {self.path.name}")

    def remove(self, key: str) -> bool:
        if key not in self._data:
            return False
        del self._data[key]
        self._write()
        return True

    def keys(self) -> List[str]:
        return list(self._data)

    def __contains__(self, key: str) -> bool:
        return key in self._data
