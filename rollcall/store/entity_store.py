"""Collection-level persistence for people, activities and attendance."""

import logging
from dataclasses import dataclass

from ..errors import StoreReadError, ValidationError
from ..models import (
    Activity,
    AttendanceRecord,
    Collection,
    Person,
    Record,
    RECORD_TYPES,
)
from .audit_log import AuditLog
from .backend import StorageBackend

logger = logging.getLogger(__name__)

ENTITY_COLLECTIONS = (Collection.PEOPLE, Collection.ACTIVITIES, Collection.ATTENDANCE)

# Audit entity_type recorded for each collection
AUDIT_ENTITY_TYPES = {
    Collection.PEOPLE: "PERSON",
    Collection.ACTIVITIES: "ACTIVITY",
    Collection.ATTENDANCE: "ATTENDANCE",
}


@dataclass
class AuditMeta:
    """What to write to the audit log after a successful save."""

    action: str
    name: str


def validate_record(collection: Collection, record: Record) -> None:
    """Check the required fields of a single record.

    Raises:
        ValidationError: The record must not be persisted.
    """
    expected = RECORD_TYPES[collection]
    if not isinstance(record, expected):
        raise ValidationError(
            f"{type(record).__name__} cannot be stored in {collection.value}",
            getattr(record, "id", None),
        )

    if not record.id or not str(record.id).strip():
        raise ValidationError("Every record needs an id")

    if isinstance(record, Person):
        if not record.name or not record.name.strip():
            raise ValidationError("All personnel must have a valid name.", record.id)
    elif isinstance(record, Activity):
        if not record.name or not record.name.strip():
            raise ValidationError("Activity name is mandatory.", record.id)
    elif isinstance(record, AttendanceRecord):
        if not record.activity_id or not record.activity_id.strip():
            raise ValidationError("Attendance must reference an activity.", record.id)
        if len(set(record.person_ids)) != len(record.person_ids):
            raise ValidationError("Attendance lists a person twice.", record.id)
        if record.count != len(record.person_ids):
            raise ValidationError(
                f"Attendance count {record.count} does not match "
                f"{len(record.person_ids)} attendees.",
                record.id,
            )


class EntityStore:
    """Loads and saves whole collections, validating before every write.

    The store enforces "no record without its required fields". It does not
    stamp ``updated_at``/``synced_at`` and knows nothing about attendance
    locks; both are the caller's business.
    """

    def __init__(self, backend: StorageBackend, audit_log: AuditLog | None = None):
        """Initialize the store.

        Args:
            backend: Where collections are persisted.
            audit_log: Log receiving entries for saves that pass ``audit``.
        """
        self._backend = backend
        self._audit_log = audit_log

    @property
    def backend(self) -> StorageBackend:
        return self._backend

    def load(self, collection: Collection) -> list[Record]:
        """Load a collection.

        Returns:
            The records in stored order; empty if never written.

        Raises:
            StoreReadError: The file exists but is unreadable or corrupt.
        """
        rows = self._backend.load(collection.value)
        if rows is None:
            return []
        record_type = RECORD_TYPES[collection]
        records = []
        for index, row in enumerate(rows):
            try:
                records.append(record_type.from_dict(row))
            except (ValueError, TypeError) as e:
                raise StoreReadError(
                    f"Corrupt row {index} (id {row.get('id')!r}) in {collection.value}: {e}"
                ) from e
        return records

    def save(
        self,
        collection: Collection,
        records: list[Record],
        audit: AuditMeta | None = None,
    ) -> None:
        """Replace a whole collection.

        Args:
            collection: One of people, activities or attendance.
            records: The complete new contents, in order.
            audit: Optional audit entry written after the save succeeds.

        Raises:
            ValidationError: A record is invalid; nothing was written.
            StoreWriteError: The write failed; the previous file is intact.
        """
        if collection not in ENTITY_COLLECTIONS:
            raise ValueError(f"{collection.value} is not an entity collection")

        seen: set[str] = set()
        for record in records:
            validate_record(collection, record)
            if record.id in seen:
                raise ValidationError(f"Duplicate id {record.id}", record.id)
            seen.add(record.id)

        self._backend.save(collection.value, [r.to_dict() for r in records])
        logger.debug(f"Saved {len(records)} records to {collection.value}")

        if audit is not None and self._audit_log is not None:
            try:
                self._audit_log.append(
                    audit.action, AUDIT_ENTITY_TYPES[collection], audit.name
                )
            except Exception as e:
                # The entity write already happened and stays.
                logger.error(f"Audit log append failed: {e}")

    def factory_reset(self) -> None:
        """Delete every persisted collection, audit log included."""
        self._backend.clear()
        logger.warning("Factory reset: all local collections deleted")
