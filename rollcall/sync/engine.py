"""Bidirectional reconciliation of local collections with the remote store.

Each collection (people, activities, attendance, audit log) goes through
its own cycle:

1. Pull remote rows pushed after the collection's watermark.
2. Merge them last-write-wins on ``updated_at`` (ties keep local).
3. Push every dirty record in one upsert; stamp ``synced_at`` only once
   the whole batch was accepted.
4. Re-read the collection, merge again and persist if anything changed,
   so local writes made while the remote was awaited are kept.

The watermark is the newest push time seen: the ``synced_at`` of pulled
rows and the time of this device's own push.

Cycles run as independent tasks and report their own outcome, so an
outage of one remote table does not hold back the others.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from ..errors import (
    NetworkError,
    RollcallError,
    SyncInProgressError,
)
from ..models import (
    Collection,
    RECORD_TYPES,
    Record,
    format_timestamp,
    parse_timestamp,
    utcnow,
)
from ..store.audit_log import AuditLog
from ..store.entity_store import EntityStore, validate_record
from .field_map import from_remote, to_remote
from .remote import RemoteStore
from .watermarks import WatermarkStore

logger = logging.getLogger(__name__)

SYNC_COLLECTIONS = (
    Collection.PEOPLE,
    Collection.ACTIVITIES,
    Collection.ATTENDANCE,
    Collection.AUDIT_LOGS,
)


class SyncStatus(Enum):
    """Outcome of one collection's cycle."""

    SUCCESS = "success"
    FAILED = "failed"
    OFFLINE = "offline"  # Remote unavailable or not configured
    CANCELLED = "cancelled"


@dataclass
class CollectionOutcome:
    collection: Collection
    status: SyncStatus
    pulled: int = 0  # Remote records inserted or replacing a local one
    pushed: int = 0
    rejected: int = 0  # Remote records dropped for failing validation
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == SyncStatus.SUCCESS


@dataclass
class SyncReport:
    """Joined result of all collection cycles."""

    started_at: datetime
    finished_at: datetime | None = None
    outcomes: list[CollectionOutcome] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(o.ok for o in self.outcomes)

    @property
    def succeeded(self) -> list[Collection]:
        return [o.collection for o in self.outcomes if o.ok]

    @property
    def failed(self) -> list[Collection]:
        return [o.collection for o in self.outcomes if not o.ok]

    def outcome(self, collection: Collection) -> CollectionOutcome:
        for o in self.outcomes:
            if o.collection == collection:
                return o
        raise KeyError(collection)

    def to_dict(self) -> dict:
        return {
            "started_at": format_timestamp(self.started_at),
            "finished_at": format_timestamp(self.finished_at),
            "ok": self.ok,
            "collections": {
                o.collection.value: {
                    "status": o.status.value,
                    "pulled": o.pulled,
                    "pushed": o.pushed,
                    "rejected": o.rejected,
                    "error": o.error,
                }
                for o in self.outcomes
            },
        }


class _Cancelled(Exception):
    pass


def merge_records(
    local: list[Record], remote: list[Record]
) -> tuple[list[Record], int]:
    """Merge remote records into local ones, last-write-wins.

    A remote record absent locally is appended. A remote record replaces the
    local one with the same id only if its ``updated_at`` is strictly newer.
    Records are replaced whole, never combined field by field.

    Returns:
        Tuple of (merged records, number inserted or replaced).
    """
    merged = list(local)
    index = {record.id: i for i, record in enumerate(merged)}
    changed = 0

    for incoming in remote:
        position = index.get(incoming.id)
        if position is None:
            index[incoming.id] = len(merged)
            merged.append(incoming)
            changed += 1
        elif incoming.updated_at > merged[position].updated_at:
            merged[position] = incoming
            changed += 1

    return merged, changed


class SyncEngine:
    """Reconciles the local store and audit log with a remote store.

    Holds no state between runs apart from the in-flight guard; watermarks
    live in the settings file. Engines built for the same data directory
    must share one lock, otherwise their cycles can overlap.
    """

    def __init__(
        self,
        store: EntityStore,
        audit_log: AuditLog,
        remote: RemoteStore | None,
        watermarks: WatermarkStore,
        lock: asyncio.Lock | None = None,
    ):
        """Initialize the engine.

        Args:
            store: Entity store for people, activities and attendance.
            audit_log: Audit log to replicate.
            remote: Remote store client, or None when not configured.
            watermarks: Per-collection pull watermarks.
            lock: Single-flight guard, shared by every engine working on
                the same data directory.
        """
        self._store = store
        self._audit_log = audit_log
        self._remote = remote
        self._watermarks = watermarks
        self._lock = lock if lock is not None else asyncio.Lock()
        self._last_report: SyncReport | None = None

    @property
    def in_progress(self) -> bool:
        return self._lock.locked()

    @property
    def last_report(self) -> SyncReport | None:
        return self._last_report

    async def sync(
        self,
        full: bool = False,
        cancel_event: asyncio.Event | None = None,
    ) -> SyncReport:
        """Run one sync cycle for every collection.

        Args:
            full: Ignore watermarks and pull every remote row.
            cancel_event: When set, cycles that have not persisted yet stop
                and leave their local collection untouched.

        Returns:
            SyncReport with one outcome per collection.

        Raises:
            SyncInProgressError: Another sync is still running.
        """
        if self._lock.locked():
            raise SyncInProgressError("A sync is already in progress")

        async with self._lock:
            report = SyncReport(started_at=utcnow())

            if self._remote is None:
                report.outcomes = [
                    CollectionOutcome(c, SyncStatus.OFFLINE, error="No remote configured")
                    for c in SYNC_COLLECTIONS
                ]
            else:
                tasks = [
                    asyncio.create_task(
                        self._sync_collection(collection, full, cancel_event),
                        name=f"sync-{collection.value}",
                    )
                    for collection in SYNC_COLLECTIONS
                ]
                report.outcomes = list(await asyncio.gather(*tasks))

            report.finished_at = utcnow()
            self._last_report = report

        for outcome in report.outcomes:
            logger.info(
                f"Sync {outcome.collection.value}: {outcome.status.value}, "
                f"pulled={outcome.pulled}, pushed={outcome.pushed}"
                + (f", error={outcome.error}" if outcome.error else "")
            )
        return report

    def _load(self, collection: Collection) -> list[Record]:
        if collection == Collection.AUDIT_LOGS:
            return list(self._audit_log.get_all())
        return self._store.load(collection)

    def _persist(self, collection: Collection, records: list[Record]) -> None:
        if collection == Collection.AUDIT_LOGS:
            # Newest first, the order the audit log keeps
            records = sorted(records, key=lambda e: e.timestamp, reverse=True)
            self._audit_log.replace(records)
        else:
            self._store.save(collection, records)

    def _accept_remote(self, collection: Collection, rows: list[dict]) -> tuple[list[Record], int]:
        """Decode and validate pulled rows; invalid rows are dropped."""
        record_type = RECORD_TYPES[collection]
        accepted: list[Record] = []
        rejected = 0
        for row in rows:
            try:
                record = from_remote(record_type, row)
                validate_record(collection, record)
            except (RollcallError, ValueError, TypeError) as e:
                rejected += 1
                logger.warning(
                    f"Ignoring remote {collection.value} row {row.get('id')}: {e}"
                )
                continue
            # A row on the server is by definition synced at its version
            if record.is_dirty:
                record.synced_at = record.updated_at
            accepted.append(record)
        return accepted, rejected

    async def _sync_collection(
        self,
        collection: Collection,
        full: bool,
        cancel_event: asyncio.Event | None,
    ) -> CollectionOutcome:
        table = collection.value
        outcome = CollectionOutcome(collection, SyncStatus.SUCCESS)

        def check_cancelled() -> None:
            if cancel_event is not None and cancel_event.is_set():
                raise _Cancelled()

        try:
            check_cancelled()

            # Pull
            since = None if full else self._watermarks.get(collection)
            rows = await self._remote.select_since(table, since)
            remote_records, outcome.rejected = self._accept_remote(collection, rows)
            check_cancelled()

            # Push whatever is still dirty once the pulled rows are merged in
            merged, _ = merge_records(self._load(collection), remote_records)
            dirty = [r for r in merged if r.is_dirty]
            pushed_at = None
            if dirty:
                pushed_at = utcnow()
                payload = []
                for record in dirty:
                    row = to_remote(record)
                    row["synced_at"] = format_timestamp(pushed_at)
                    payload.append(row)
                await self._remote.upsert(table, payload)
                check_cancelled()
                outcome.pushed = len(dirty)

            # Local writes may have landed while the remote was awaited:
            # merge into a fresh copy and stamp only unchanged pushed versions.
            current, outcome.pulled = merge_records(self._load(collection), remote_records)
            pushed_versions = {r.id: r.updated_at for r in dirty}
            stamped = 0
            for record in current:
                if record.is_dirty and pushed_versions.get(record.id) == record.updated_at:
                    record.synced_at = max(pushed_at, record.updated_at)
                    stamped += 1

            if outcome.pulled or stamped:
                self._persist(collection, current)

            seen = [parse_timestamp(row.get("synced_at")) for row in rows]
            seen = [ts for ts in seen if ts is not None]
            if pushed_at is not None:
                seen.append(pushed_at)
            if seen:
                self._watermarks.advance(collection, max(seen))

        except _Cancelled:
            logger.info(f"Sync of {table} cancelled before persisting")
            return CollectionOutcome(collection, SyncStatus.CANCELLED, error="Cancelled")
        except NetworkError as e:
            outcome = CollectionOutcome(collection, SyncStatus.OFFLINE, error=str(e))
        except RollcallError as e:
            outcome = CollectionOutcome(collection, SyncStatus.FAILED, error=str(e))
        except Exception as e:
            logger.error(f"Unexpected error syncing {table}: {e}", exc_info=True)
            outcome = CollectionOutcome(collection, SyncStatus.FAILED, error=str(e))

        return outcome

    async def check_connection(self) -> bool:
        if self._remote is None:
            return False
        return await self._remote.check_connection()

    def pending_counts(self) -> dict[str, int]:
        """Number of dirty records per collection."""
        counts = {}
        for collection in SYNC_COLLECTIONS:
            counts[collection.value] = sum(1 for r in self._load(collection) if r.is_dirty)
        return counts
