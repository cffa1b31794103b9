"""Storage backends: where collections of raw rows live.

The entity store and audit log only see ``StorageBackend``; swapping the
flat JSON files for an embedded database means adding a backend here.
"""

import json
import logging
import os
import shutil
import tempfile
from abc import ABC, abstractmethod
from copy import deepcopy
from pathlib import Path
from typing import Any

from ..errors import StoreReadError, StoreWriteError

logger = logging.getLogger(__name__)


def write_json_atomic(path: Path, data: Any) -> None:
    """Write ``data`` as indented UTF-8 JSON via temp file + rename.

    Raises:
        OSError, TypeError, ValueError: Nothing was replaced.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            "w",
            delete=False,
            dir=path.parent,
            prefix=f".{path.stem}.",
            suffix=".tmp",
            encoding="utf-8",
        ) as handle:
            tmp_path = Path(handle.name)
            json.dump(data, handle, indent=2, ensure_ascii=False)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()
        raise


class StorageBackend(ABC):
    """Abstract collection-level persistence."""

    @abstractmethod
    def load(self, name: str) -> list[dict[str, Any]] | None:
        """Load a collection.

        Args:
            name: Collection name ("people", "audit_logs", ...).

        Returns:
            The stored rows, or None if the collection was never written.

        Raises:
            StoreReadError: The collection exists but cannot be decoded.
        """
        pass

    @abstractmethod
    def save(self, name: str, rows: list[dict[str, Any]]) -> None:
        """Replace a collection atomically.

        Raises:
            StoreWriteError: Nothing was replaced.
        """
        pass

    @abstractmethod
    def clear(self) -> None:
        """Physically remove every collection."""
        pass


class JsonDirectoryBackend(StorageBackend):
    """One pretty-printed JSON array file per collection.

    Files are written to a temporary file in the same directory and then
    renamed over the target, so readers never see a partial file.
    """

    def __init__(self, db_dir: str | Path):
        """Initialize the backend.

        Args:
            db_dir: Directory holding ``<collection>.json`` files.
        """
        self.db_dir = Path(db_dir).expanduser()

    def path_for(self, name: str) -> Path:
        return self.db_dir / f"{name}.json"

    def load(self, name: str) -> list[dict[str, Any]] | None:
        path = self.path_for(name)
        if not path.exists():
            return None

        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise StoreReadError(f"Cannot read {path}: {e}") from e

        if not isinstance(data, list) or not all(isinstance(r, dict) for r in data):
            raise StoreReadError(f"{path} does not contain a JSON array of objects")

        return data

    def save(self, name: str, rows: list[dict[str, Any]]) -> None:
        path = self.path_for(name)
        try:
            write_json_atomic(path, rows)
        except (OSError, TypeError, ValueError) as e:
            raise StoreWriteError(f"Cannot write {path}: {e}") from e

        logger.debug(f"Wrote {len(rows)} rows to {path}")

    def clear(self) -> None:
        if self.db_dir.exists():
            try:
                shutil.rmtree(self.db_dir)
            except OSError as e:
                raise StoreWriteError(f"Cannot remove {self.db_dir}: {e}") from e
            logger.info(f"Removed {self.db_dir}")


class MemoryBackend(StorageBackend):
    """In-process backend. Rows are deep-copied in both directions."""

    def __init__(self) -> None:
        self._collections: dict[str, list[dict[str, Any]]] = {}
        self.write_count = 0

    def load(self, name: str) -> list[dict[str, Any]] | None:
        rows = self._collections.get(name)
        return deepcopy(rows) if rows is not None else None

    def save(self, name: str, rows: list[dict[str, Any]]) -> None:
        self._collections[name] = deepcopy(rows)
        self.write_count += 1

    def clear(self) -> None:
        self._collections.clear()
