"""Configuration loading for rollcall."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


@dataclass
class StorageConfig:
    data_dir: str = "~/.rollcall"

    @property
    def db_dir(self) -> Path:
        return Path(self.data_dir).expanduser() / "db"

    @property
    def settings_path(self) -> Path:
        return Path(self.data_dir).expanduser() / "settings.json"


@dataclass
class RemoteConfig:
    """Connection settings for the shared remote store."""

    url: str = ""
    key: str = ""
    timeout_seconds: float = 30.0
    max_retries: int = 3
    retry_backoff_seconds: float = 1.0

    @property
    def configured(self) -> bool:
        return bool(self.url and self.key)


@dataclass
class AuditConfig:
    max_entries: int = 1000


@dataclass
class Config:
    storage: StorageConfig = field(default_factory=StorageConfig)
    remote: RemoteConfig = field(default_factory=RemoteConfig)
    audit: AuditConfig = field(default_factory=AuditConfig)


def _get_env(key: str, default: Any = None) -> Any:
    """Get environment variable with ROLLCALL_ prefix."""
    return os.environ.get(f"ROLLCALL_{key}", default)


def _apply_env_overrides(config: Config) -> Config:
    """Apply environment variable overrides to config."""
    if data_dir := _get_env("DATA_DIR"):
        config.storage.data_dir = data_dir

    # Remote overrides
    if url := _get_env("REMOTE_URL"):
        config.remote.url = url
    if key := _get_env("REMOTE_KEY"):
        config.remote.key = key
    if timeout := _get_env("REMOTE_TIMEOUT"):
        config.remote.timeout_seconds = float(timeout)
    if retries := _get_env("REMOTE_MAX_RETRIES"):
        config.remote.max_retries = int(retries)

    if max_entries := _get_env("AUDIT_MAX_ENTRIES"):
        config.audit.max_entries = int(max_entries)

    return config


def load_config(config_path: str | Path | None = None) -> Config:
    """Load configuration from YAML file with environment variable overrides.

    Args:
        config_path: Path to YAML config file. If None, uses default config.

    Returns:
        Loaded Config object.
    """
    config = Config()

    if config_path:
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                data = yaml.safe_load(f) or {}

            if "storage" in data:
                config.storage = StorageConfig(
                    data_dir=data["storage"].get("data_dir", config.storage.data_dir)
                )

            if "remote" in data:
                remote_data = data["remote"]
                config.remote = RemoteConfig(
                    url=remote_data.get("url", config.remote.url),
                    key=remote_data.get("key", config.remote.key),
                    timeout_seconds=remote_data.get(
                        "timeout_seconds", config.remote.timeout_seconds
                    ),
                    max_retries=remote_data.get(
                        "max_retries", config.remote.max_retries
                    ),
                    retry_backoff_seconds=remote_data.get(
                        "retry_backoff_seconds", config.remote.retry_backoff_seconds
                    ),
                )

            if "audit" in data:
                config.audit = AuditConfig(
                    max_entries=data["audit"].get(
                        "max_entries", config.audit.max_entries
                    )
                )

    # Apply environment variable overrides
    config = _apply_env_overrides(config)

    return config
