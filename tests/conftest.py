"""Shared fixtures: in-memory stores and a fake remote."""

import asyncio
from collections import defaultdict
from copy import deepcopy
from datetime import timedelta

import pytest

from rollcall.config import Config
from rollcall.app import Rollcall
from rollcall.identity import IdentityRegistry
from rollcall.models import parse_timestamp, utcnow
from rollcall.settings import Settings
from rollcall.store import AuditLog, EntityStore, MemoryBackend
from rollcall.sync.remote import RemoteStore


class FakeRemote(RemoteStore):
    """In-memory remote with PostgREST-like select/upsert semantics.

    ``select_since`` filters on the push time in ``synced_at``; rows without
    one always match.
    """

    def __init__(self):
        self.tables: dict[str, dict[str, dict]] = defaultdict(dict)
        self.selects: list[tuple] = []
        self.upserts: list[tuple] = []
        self.select_errors: dict[str, Exception] = {}
        self.upsert_errors: dict[str, Exception] = {}
        self.on_upsert = None
        self.gate: asyncio.Event | None = None

    def rows(self, table: str) -> list[dict]:
        return list(self.tables[table].values())

    def put(self, table: str, row: dict) -> None:
        self.tables[table][row["id"]] = deepcopy(row)

    async def select_since(self, table, since):
        self.selects.append((table, since))
        if self.gate is not None:
            await self.gate.wait()
        if table in self.select_errors:
            raise self.select_errors[table]
        rows = [
            deepcopy(r)
            for r in self.tables[table].values()
            if since is None
            or r.get("synced_at") is None
            or parse_timestamp(r["synced_at"]) > since
        ]
        return sorted(rows, key=lambda r: parse_timestamp(r["updated_at"]))

    async def upsert(self, table, rows):
        if table in self.upsert_errors:
            raise self.upsert_errors[table]
        self.upserts.append((table, deepcopy(rows)))
        for row in rows:
            merged = {**self.tables[table].get(row["id"], {}), **deepcopy(row)}
            self.tables[table][row["id"]] = merged
        if self.on_upsert is not None:
            self.on_upsert(table)


@pytest.fixture
def backend():
    return MemoryBackend()


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def identity(settings):
    return IdentityRegistry(settings)


@pytest.fixture
def audit_log(backend, identity):
    return AuditLog(backend, identity)


@pytest.fixture
def store(backend, audit_log):
    return EntityStore(backend, audit_log)


@pytest.fixture
def remote():
    return FakeRemote()


@pytest.fixture
def make_app():
    """Factory for independent in-memory installs (one per device)."""

    def _make() -> Rollcall:
        return Rollcall(Config(), backend=MemoryBackend(), settings=Settings())

    return _make


@pytest.fixture
def later():
    """Return a timestamp ``minutes`` after the start of the test."""
    start = utcnow()

    def _later(minutes: float):
        return start + timedelta(minutes=minutes)

    return _later
