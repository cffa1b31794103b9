"""Synchronization of the local collections with the shared remote store.

Pull, last-write-wins merge and push per collection, with explicit field
mapping between the local camelCase records and the snake_case remote rows.
"""

from .engine import CollectionOutcome, SyncEngine, SyncReport, SyncStatus, merge_records
from .remote import PostgrestRemote, RemoteStore
from .watermarks import WatermarkStore

__all__ = [
    "CollectionOutcome",
    "PostgrestRemote",
    "RemoteStore",
    "SyncEngine",
    "SyncReport",
    "SyncStatus",
    "WatermarkStore",
    "merge_records",
]
