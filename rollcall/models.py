"""Typed records for people, activities, attendance and the audit trail.

Every record carries the same lifecycle envelope (``id``, ``updated_at``,
``synced_at``) and an ``extensions`` dict for fields this version does not
know about. Records are serialized to camelCase dicts for the local JSON
files; the remote (snake_case) form lives in ``rollcall.sync.field_map``.
"""

import uuid
from dataclasses import dataclass, field, fields
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, ClassVar


class Collection(Enum):
    """The persisted collections and their file/table name."""

    PEOPLE = "people"
    ACTIVITIES = "activities"
    ATTENDANCE = "attendance"
    AUDIT_LOGS = "audit_logs"


class PersonStatus(str, Enum):
    MEMBER = "Membre"
    STUDENT = "Eleve"


class ActivityType(str, Enum):
    MONTHLY_MEETING = "REUNION MENSUELLE"
    CONFERENCE = "CONFERENCE"
    JRS_SERVICE = "SERVICE JRS"
    LEISURE = "ACTIVITE LUDIQUE"
    OTHER = "AUTRES"
    OPEN_DAY = "JPO"


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Envelope timestamps that read as EPOCH when null or missing
REQUIRED_TIMESTAMPS = frozenset({"updated_at", "timestamp"})


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp, treating naive values as UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value)
        # fromisoformat() only accepts a trailing "Z" from Python 3.11 on
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class Record:
    """Base class for everything that is persisted and synced.

    Subclasses declare their own dataclass fields and a ``LOCAL_FIELDS``
    table mapping attribute name to the camelCase key used on disk.
    """

    LOCAL_FIELDS: ClassVar[dict[str, str]] = {}
    TIMESTAMP_FIELDS: ClassVar[frozenset[str]] = frozenset(
        {"updated_at", "synced_at", "deleted_at", "timestamp"}
    )

    @property
    def is_dirty(self) -> bool:
        """True when this version has never been pushed or changed since."""
        return self.synced_at is None or self.updated_at > self.synced_at

    def to_dict(self) -> dict[str, Any]:
        """Convert to the camelCase dict stored in the local JSON files."""
        data: dict[str, Any] = {}
        for attr, key in self.LOCAL_FIELDS.items():
            value = getattr(self, attr)
            if attr in self.TIMESTAMP_FIELDS:
                value = format_timestamp(value)
            elif isinstance(value, Enum):
                value = value.value
            elif isinstance(value, list):
                value = list(value)
            if attr == "synced_at" and value is None:
                continue
            data[key] = value
        for key, value in self.extensions.items():
            data.setdefault(key, value)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Record":
        """Create from a camelCase dict, keeping unknown keys as extensions.

        Raises:
            ValueError: No id, or a timestamp that is not ISO-8601.
            TypeError: A field has the wrong type.
        """
        if not data.get("id"):
            raise ValueError(f"{cls.__name__} row without id")
        key_to_attr = {key: attr for attr, key in cls.LOCAL_FIELDS.items()}
        kwargs: dict[str, Any] = {}
        extensions: dict[str, Any] = {}
        for key, value in data.items():
            attr = key_to_attr.get(key)
            if attr is None:
                extensions[key] = value
            elif attr in cls.TIMESTAMP_FIELDS:
                parsed = parse_timestamp(value)
                if parsed is None and attr in REQUIRED_TIMESTAMPS:
                    continue
                kwargs[attr] = parsed
            else:
                kwargs[attr] = value
        kwargs["extensions"] = extensions
        return cls._build(kwargs)

    @classmethod
    def _build(cls, kwargs: dict[str, Any]) -> "Record":
        # Stored data never gets "now" as a default, so loading is deterministic.
        # An audit entry's updated_at follows its timestamp instead.
        for attr in REQUIRED_TIMESTAMPS & set(cls.LOCAL_FIELDS):
            if attr in kwargs:
                continue
            if attr == "updated_at" and "timestamp" in cls.LOCAL_FIELDS:
                continue
            kwargs[attr] = EPOCH
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in kwargs.items() if k in known})


@dataclass
class Person(Record):
    name: str = ""
    id: str = field(default_factory=new_id)
    phone: str = ""
    status: str = PersonStatus.MEMBER.value
    dob: str = ""
    date_integration: str = ""
    date_departure: str = ""
    is_jrs: bool = False
    image: str = ""
    is_archived: bool = False
    is_deleted: bool = False
    deleted_at: datetime | None = None
    updated_at: datetime = field(default_factory=utcnow)
    synced_at: datetime | None = None
    extensions: dict[str, Any] = field(default_factory=dict)

    LOCAL_FIELDS: ClassVar[dict[str, str]] = {
        "id": "id",
        "name": "name",
        "phone": "phone",
        "status": "status",
        "dob": "dob",
        "date_integration": "dateIntegration",
        "date_departure": "dateDeparture",
        "is_jrs": "isJRs",
        "image": "image",
        "is_archived": "isArchived",
        "is_deleted": "isDeleted",
        "deleted_at": "deletedAt",
        "updated_at": "updatedAt",
        "synced_at": "syncedAt",
    }

    @property
    def is_active(self) -> bool:
        """Shown on active rosters: neither archived nor tombstoned."""
        return not self.is_archived and not self.is_deleted


@dataclass
class Activity(Record):
    name: str = ""
    id: str = field(default_factory=new_id)
    date: str = field(default_factory=lambda: utcnow().date().isoformat())
    type: str = ActivityType.MONTHLY_MEETING.value
    notes: str = ""
    is_deleted: bool = False
    deleted_at: datetime | None = None
    updated_at: datetime = field(default_factory=utcnow)
    synced_at: datetime | None = None
    extensions: dict[str, Any] = field(default_factory=dict)

    LOCAL_FIELDS: ClassVar[dict[str, str]] = {
        "id": "id",
        "name": "name",
        "date": "date",
        "type": "type",
        "notes": "notes",
        "is_deleted": "isDeleted",
        "deleted_at": "deletedAt",
        "updated_at": "updatedAt",
        "synced_at": "syncedAt",
    }


@dataclass
class AttendanceRecord(Record):
    activity_id: str = ""
    id: str = field(default_factory=new_id)
    activity_name: str = ""
    date: str = ""
    person_ids: list[str] = field(default_factory=list)
    count: int = 0
    is_locked: bool = False
    updated_at: datetime = field(default_factory=utcnow)
    synced_at: datetime | None = None
    extensions: dict[str, Any] = field(default_factory=dict)

    LOCAL_FIELDS: ClassVar[dict[str, str]] = {
        "id": "id",
        "activity_id": "activityId",
        "activity_name": "activityName",
        "date": "date",
        "person_ids": "personIds",
        "count": "count",
        "is_locked": "isLocked",
        "updated_at": "updatedAt",
        "synced_at": "syncedAt",
    }

    def __post_init__(self) -> None:
        if not isinstance(self.person_ids, list):
            raise TypeError(
                f"personIds of {self.id} must be a list, got {type(self.person_ids).__name__}"
            )


@dataclass
class AuditLogEntry(Record):
    """A single immutable entry of the audit trail.

    ``updated_at`` always equals ``timestamp``: entries are never edited,
    so the envelope's mutation time is the creation time.
    """

    action: str = ""
    entity_type: str = ""
    entity_name: str = ""
    id: str = field(default_factory=new_id)
    timestamp: datetime = field(default_factory=utcnow)
    user_name: str = "Unknown"
    user_email: str = "Unknown"
    device_id: str = ""
    updated_at: datetime | None = None
    synced_at: datetime | None = None
    extensions: dict[str, Any] = field(default_factory=dict)

    LOCAL_FIELDS: ClassVar[dict[str, str]] = {
        "id": "id",
        "action": "action",
        "entity_type": "entityType",
        "entity_name": "entityName",
        "timestamp": "timestamp",
        "user_name": "userName",
        "user_email": "userEmail",
        "device_id": "deviceId",
        "updated_at": "updatedAt",
        "synced_at": "syncedAt",
    }

    def __post_init__(self) -> None:
        if self.updated_at is None:
            self.updated_at = self.timestamp


RECORD_TYPES: dict[Collection, type[Record]] = {
    Collection.PEOPLE: Person,
    Collection.ACTIVITIES: Activity,
    Collection.ATTENDANCE: AttendanceRecord,
    Collection.AUDIT_LOGS: AuditLogEntry,
}


def parse_date(value: str) -> date | None:
    """Parse the ISO date part of ``value``; None if empty or malformed."""
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None
