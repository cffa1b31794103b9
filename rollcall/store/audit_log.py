"""Append-only audit trail of mutations.

Entries are kept most-recent-first and bounded to ``max_entries`` locally.
They go through the same dirty/synced lifecycle as entities, but are never
edited once written.
"""

import logging
from typing import TYPE_CHECKING, Any

from ..errors import StoreReadError
from ..models import AuditLogEntry, Collection, utcnow
from .backend import StorageBackend

if TYPE_CHECKING:
    from ..identity import IdentityRegistry

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 1000


class AuditLog:
    """Size-bounded, append-only audit log."""

    def __init__(
        self,
        backend: StorageBackend,
        identity: "IdentityRegistry",
        max_entries: int = DEFAULT_MAX_ENTRIES,
    ):
        """Initialize the audit log.

        Args:
            backend: Storage backend holding the ``audit_logs`` collection.
            identity: Registry used to attribute new entries.
            max_entries: Entries kept locally; older ones are evicted.
        """
        self._backend = backend
        self._identity = identity
        self.max_entries = max_entries

    def get_all(self) -> list[AuditLogEntry]:
        """Return every local entry, newest first.

        Raises:
            StoreReadError: The log file exists but is unreadable.
        """
        rows = self._backend.load(Collection.AUDIT_LOGS.value)
        if rows is None:
            return []
        entries = []
        for index, row in enumerate(rows):
            try:
                entries.append(AuditLogEntry.from_dict(row))
            except (ValueError, TypeError) as e:
                raise StoreReadError(
                    f"Corrupt row {index} (id {row.get('id')!r}) in audit_logs: {e}"
                ) from e
        return entries

    def append(
        self,
        action: str,
        entity_type: str,
        entity_name: str,
        **extra: Any,
    ) -> AuditLogEntry:
        """Record a mutation.

        Args:
            action: CREATE, UPDATE, ARCHIVE, DELETE, LOCK...
            entity_type: PERSON, ACTIVITY or ATTENDANCE.
            entity_name: Human readable name of the affected record.
            **extra: Additional fields stored as extensions.

        Returns:
            The created entry.
        """
        user_name, user_email, device_id = self._identity.stamp()
        entry = AuditLogEntry(
            action=action,
            entity_type=entity_type,
            entity_name=entity_name,
            timestamp=utcnow(),
            user_name=user_name,
            user_email=user_email,
            device_id=device_id,
            extensions=dict(extra),
        )

        entries = self.get_all()
        entries.insert(0, entry)
        self.replace(entries)

        logger.debug(f"Audit {action} {entity_type} '{entity_name}' ({entry.id})")
        return entry

    def replace(self, entries: list[AuditLogEntry]) -> None:
        """Persist the whole log, trimming it to ``max_entries``.

        Only the sync engine calls this directly.
        """
        if len(entries) > self.max_entries:
            evicted = entries[self.max_entries:]
            unsynced = sum(1 for e in evicted if e.is_dirty)
            if unsynced:
                logger.warning(
                    f"Evicting {unsynced} audit entries that were never pushed"
                )
            entries = entries[: self.max_entries]

        self._backend.save(
            Collection.AUDIT_LOGS.value, [e.to_dict() for e in entries]
        )

    def get_unsynced(self) -> list[AuditLogEntry]:
        return [e for e in self.get_all() if e.is_dirty]

    def get_stats(self) -> dict[str, Any]:
        """Get log statistics.

        Returns:
            Dictionary with entry counts.
        """
        entries = self.get_all()
        by_action: dict[str, int] = {}
        for entry in entries:
            by_action[entry.action] = by_action.get(entry.action, 0) + 1

        return {
            "total_entries": len(entries),
            "unsynced_entries": sum(1 for e in entries if e.is_dirty),
            "max_entries": self.max_entries,
            "entries_by_action": by_action,
        }
