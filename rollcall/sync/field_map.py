"""Translation between local records and remote (snake_case) rows.

Each record type has an explicit table of attribute -> remote column.
Extension fields travel in both directions too: camelCase keys locally,
snake_case columns remotely, with keys that cannot round-trip sent as is.
The mapping stays total and invertible for data this version does not know.
"""

import re
from enum import Enum
from typing import Any

from ..errors import FieldMappingError
from ..models import (
    REQUIRED_TIMESTAMPS,
    Activity,
    AttendanceRecord,
    AuditLogEntry,
    Person,
    Record,
    format_timestamp,
    parse_timestamp,
)

ENVELOPE_COLUMNS = {
    "id": "id",
    "updated_at": "updated_at",
    "synced_at": "synced_at",
}

REMOTE_COLUMNS: dict[type[Record], dict[str, str]] = {
    Person: {
        **ENVELOPE_COLUMNS,
        "name": "name",
        "phone": "phone",
        "status": "status",
        "dob": "dob",
        "date_integration": "date_integration",
        "date_departure": "date_departure",
        "is_jrs": "is_j_rs",
        "image": "image",
        "is_archived": "is_archived",
        "is_deleted": "is_deleted",
        "deleted_at": "deleted_at",
    },
    Activity: {
        **ENVELOPE_COLUMNS,
        "name": "name",
        "date": "date",
        "type": "type",
        "notes": "notes",
        "is_deleted": "is_deleted",
        "deleted_at": "deleted_at",
    },
    AttendanceRecord: {
        **ENVELOPE_COLUMNS,
        "activity_id": "activity_id",
        "activity_name": "activity_name",
        "date": "date",
        "person_ids": "person_ids",
        "count": "count",
        "is_locked": "is_locked",
    },
    AuditLogEntry: {
        **ENVELOPE_COLUMNS,
        "action": "action",
        "entity_type": "entity_type",
        "entity_name": "entity_name",
        "timestamp": "timestamp",
        "user_name": "user_name",
        "user_email": "user_email",
        "device_id": "device_id",
    },
}


def _check_tables() -> None:
    for record_type, columns in REMOTE_COLUMNS.items():
        if set(columns) != set(record_type.LOCAL_FIELDS):
            missing = set(record_type.LOCAL_FIELDS) ^ set(columns)
            raise FieldMappingError(
                f"{record_type.__name__} mapping does not cover {sorted(missing)}"
            )
        if len(set(columns.values())) != len(columns):
            raise FieldMappingError(f"{record_type.__name__} maps two fields to one column")


_check_tables()

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _reserved_keys(record_type: type[Record]) -> set[str]:
    return set(REMOTE_COLUMNS[record_type].values()) | set(
        record_type.LOCAL_FIELDS.values()
    )


def snake_case(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def camel_case(column: str) -> str:
    head, *rest = column.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def extension_column(key: str) -> str:
    """Remote column for a local extension key.

    Keys that do not survive a snake_case/camelCase round trip are sent
    unchanged, so ``extension_key(extension_column(k)) == k`` for every key
    that is not itself snake_case. Pulled snake_case columns arrive camelCase.
    """
    column = snake_case(key)
    return column if camel_case(column) == key else key


def extension_key(column: str) -> str:
    """Local key for an unmapped remote column."""
    key = camel_case(column)
    return key if snake_case(key) == column else column


def to_remote(record: Record) -> dict[str, Any]:
    """Convert a record to a remote row.

    Raises:
        FieldMappingError: An extension key collides with a mapped column.
    """
    record_type = type(record)
    columns = REMOTE_COLUMNS[record_type]
    row: dict[str, Any] = {}
    for attr, column in columns.items():
        value = getattr(record, attr)
        if attr in record_type.TIMESTAMP_FIELDS:
            value = format_timestamp(value)
        elif isinstance(value, Enum):
            value = value.value
        elif isinstance(value, list):
            value = list(value)
        row[column] = value

    reserved = _reserved_keys(record_type)
    for key, value in record.extensions.items():
        column = extension_column(key)
        if key in reserved or column in reserved:
            raise FieldMappingError(
                f"Extension field '{key}' of {record.id} collides with a mapped field"
            )
        row[column] = value
    return row


def from_remote(record_type: type[Record], row: dict[str, Any]) -> Record:
    """Build a record of ``record_type`` from a remote row.

    Raises:
        FieldMappingError: The row has no id.
    """
    if not row.get("id"):
        raise FieldMappingError(f"Remote {record_type.__name__} row without id")

    column_to_attr = {column: attr for attr, column in REMOTE_COLUMNS[record_type].items()}
    kwargs: dict[str, Any] = {}
    extensions: dict[str, Any] = {}
    for column, value in row.items():
        attr = column_to_attr.get(column)
        if attr is None:
            extensions[extension_key(column)] = value
        elif attr in record_type.TIMESTAMP_FIELDS:
            parsed = parse_timestamp(value)
            # Null updated_at/timestamp is filled with EPOCH by _build
            if parsed is None and attr in REQUIRED_TIMESTAMPS:
                continue
            kwargs[attr] = parsed
        elif value is None and attr != "deleted_at":
            # Let the dataclass default fill columns the remote left null
            continue
        else:
            kwargs[attr] = value
    kwargs["extensions"] = extensions
    return record_type._build(kwargs)
