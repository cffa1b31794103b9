"""Local persistence: storage backends, entity store and audit log."""

from .audit_log import AuditLog
from .backend import JsonDirectoryBackend, MemoryBackend, StorageBackend
from .entity_store import AuditMeta, EntityStore

__all__ = [
    "AuditLog",
    "AuditMeta",
    "EntityStore",
    "JsonDirectoryBackend",
    "MemoryBackend",
    "StorageBackend",
]
