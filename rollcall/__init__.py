"""rollcall: offline-first people, activity and attendance records.

Local JSON collections with validation and an audit trail, reconciled
last-write-wins with a remote store shared by several devices.
"""

from .app import Rollcall
from .config import Config, load_config
from .models import (
    Activity,
    ActivityType,
    AttendanceRecord,
    AuditLogEntry,
    Collection,
    Person,
    PersonStatus,
)

__version__ = "0.1.0"

__all__ = [
    "Activity",
    "ActivityType",
    "AttendanceRecord",
    "AuditLogEntry",
    "Collection",
    "Config",
    "Person",
    "PersonStatus",
    "Rollcall",
    "load_config",
]
