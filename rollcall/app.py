"""Wiring of the core components from a ``Config``."""

import asyncio
import logging
from dataclasses import replace

from .config import Config, RemoteConfig
from .identity import IdentityRegistry
from .roster import Roster
from .settings import Settings
from .store import AuditLog, EntityStore, JsonDirectoryBackend, StorageBackend
from .sync import PostgrestRemote, RemoteStore, SyncEngine, WatermarkStore

logger = logging.getLogger(__name__)

REMOTE_URL_KEY = "remote_url"
REMOTE_KEY_KEY = "remote_key"


class Rollcall:
    """Holds one instance of every core component for a data directory."""

    def __init__(
        self,
        config: Config,
        backend: StorageBackend | None = None,
        settings: Settings | None = None,
    ):
        self.config = config
        self.settings = settings or Settings(config.storage.settings_path)
        self.backend = backend or JsonDirectoryBackend(config.storage.db_dir)
        self.identity = IdentityRegistry(self.settings)
        self.audit_log = AuditLog(
            self.backend, self.identity, max_entries=config.audit.max_entries
        )
        self.store = EntityStore(self.backend, self.audit_log)
        self.roster = Roster(self.store)
        self.watermarks = WatermarkStore(self.settings)
        # One sync at a time per data directory, whichever engine runs it
        self.sync_lock = asyncio.Lock()

    def remote_config(self) -> RemoteConfig:
        """Remote settings from config/env, else from the local settings file."""
        remote = self.config.remote
        if remote.configured:
            return remote
        return replace(
            remote,
            url=remote.url or self.settings.get(REMOTE_URL_KEY, ""),
            key=remote.key or self.settings.get(REMOTE_KEY_KEY, ""),
        )

    def save_remote(self, url: str, key: str) -> None:
        """Store remote credentials entered by the user."""
        self.settings.set(REMOTE_URL_KEY, url.strip())
        self.settings.set(REMOTE_KEY_KEY, key.strip())

    def create_remote(self) -> RemoteStore | None:
        remote = self.remote_config()
        if not remote.configured:
            logger.info("No remote configured, working offline")
            return None
        return PostgrestRemote(remote)

    def create_sync_engine(self, remote: RemoteStore | None = None) -> SyncEngine:
        if remote is None:
            remote = self.create_remote()
        return SyncEngine(
            self.store, self.audit_log, remote, self.watermarks, lock=self.sync_lock
        )

    def factory_reset(self) -> None:
        """Delete every collection and forget device, identity and remote."""
        self.store.factory_reset()
        self.settings.clear()
