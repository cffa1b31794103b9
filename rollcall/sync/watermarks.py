"""Per-collection pull watermarks.

The watermark of a collection is the newest push time (remote
``synced_at``) this install has seen in a successful cycle, its own pushes
included. It never looks at ``updated_at``, so a row edited long ago but
pushed late by another device is still pulled.
"""

from datetime import datetime

from ..models import Collection, format_timestamp, parse_timestamp
from ..settings import Settings

WATERMARK_KEY = "sync_watermarks"


class WatermarkStore:
    def __init__(self, settings: Settings):
        self._settings = settings

    def get(self, collection: Collection) -> datetime | None:
        stored = self._settings.get(WATERMARK_KEY) or {}
        return parse_timestamp(stored.get(collection.value))

    def advance(self, collection: Collection, candidate: datetime | None) -> bool:
        """Move the watermark forward to ``candidate`` if it is newer.

        Returns:
            True if the stored watermark changed.
        """
        if candidate is None:
            return False
        current = self.get(collection)
        if current is not None and candidate <= current:
            return False

        stored = dict(self._settings.get(WATERMARK_KEY) or {})
        stored[collection.value] = format_timestamp(candidate)
        self._settings.set(WATERMARK_KEY, stored)
        return True

    def reset(self) -> None:
        self._settings.delete(WATERMARK_KEY)
