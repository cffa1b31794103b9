"""Small JSON key-value file for per-install state.

Holds the device id, the user identity, remote credentials entered from
the settings screen and the sync watermarks.
"""

import json
import logging
from pathlib import Path
from typing import Any

from .errors import StoreReadError, StoreWriteError
from .store.backend import write_json_atomic

logger = logging.getLogger(__name__)


class Settings:
    """Key-value settings persisted as a single JSON object."""

    def __init__(self, path: str | Path | None = None):
        """Initialize settings.

        Args:
            path: JSON file path. None keeps everything in memory.
        """
        self.path = Path(path).expanduser() if path is not None else None
        self._data: dict[str, Any] | None = None

    def _ensure_loaded(self) -> dict[str, Any]:
        if self._data is None:
            self._data = {}
            if self.path is not None and self.path.exists():
                try:
                    with open(self.path, encoding="utf-8") as f:
                        data = json.load(f)
                except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
                    raise StoreReadError(f"Cannot read {self.path}: {e}") from e
                if not isinstance(data, dict):
                    raise StoreReadError(f"{self.path} does not contain a JSON object")
                self._data = data
        return self._data

    def _flush(self) -> None:
        if self.path is None:
            return
        try:
            write_json_atomic(self.path, self._data)
        except (OSError, TypeError, ValueError) as e:
            raise StoreWriteError(f"Cannot write {self.path}: {e}") from e

    def get(self, key: str, default: Any = None) -> Any:
        return self._ensure_loaded().get(key, default)

    def set(self, key: str, value: Any) -> None:
        data = self._ensure_loaded()
        if key in data and data[key] == value:
            return
        data[key] = value
        self._flush()

    def delete(self, key: str) -> None:
        data = self._ensure_loaded()
        if key in data:
            del data[key]
            self._flush()

    def clear(self) -> None:
        """Forget everything, including the file on disk."""
        self._data = {}
        if self.path is not None and self.path.exists():
            self.path.unlink()
            logger.info(f"Removed {self.path}")
