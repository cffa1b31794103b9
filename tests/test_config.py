"""Tests for configuration loading and app wiring."""

import pytest

from rollcall.app import Rollcall
from rollcall.config import Config, load_config
from rollcall.models import Collection, Person
from rollcall.settings import Settings
from rollcall.store import MemoryBackend
from rollcall.sync import PostgrestRemote


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "DATA_DIR",
        "REMOTE_URL",
        "REMOTE_KEY",
        "REMOTE_TIMEOUT",
        "REMOTE_MAX_RETRIES",
        "AUDIT_MAX_ENTRIES",
    ):
        monkeypatch.delenv(f"ROLLCALL_{name}", raising=False)


class TestLoadConfig:
    """Tests for YAML loading and env overrides."""

    def test_defaults(self):
        config = load_config()

        assert config.storage.data_dir == "~/.rollcall"
        assert not config.remote.configured
        assert config.remote.max_retries == 3
        assert config.audit.max_entries == 1000

    def test_missing_file_gives_defaults(self, tmp_path):
        config = load_config(tmp_path / "nope.yaml")
        assert config.remote.timeout_seconds == 30.0

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "storage:\n"
            f"  data_dir: {tmp_path / 'data'}\n"
            "remote:\n"
            "  url: https://example.supabase.co\n"
            "  key: anon-key\n"
            "  max_retries: 5\n"
            "audit:\n"
            "  max_entries: 50\n"
        )

        config = load_config(path)

        assert config.storage.db_dir == tmp_path / "data" / "db"
        assert config.storage.settings_path == tmp_path / "data" / "settings.json"
        assert config.remote.configured
        assert config.remote.max_retries == 5
        assert config.remote.timeout_seconds == 30.0
        assert config.audit.max_entries == 50

    def test_empty_yaml_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_config(path).audit.max_entries == 1000

    def test_env_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("ROLLCALL_DATA_DIR", str(tmp_path))
        monkeypatch.setenv("ROLLCALL_REMOTE_URL", "https://env.example.org")
        monkeypatch.setenv("ROLLCALL_REMOTE_KEY", "env-key")
        monkeypatch.setenv("ROLLCALL_REMOTE_TIMEOUT", "5")
        monkeypatch.setenv("ROLLCALL_AUDIT_MAX_ENTRIES", "10")

        config = load_config()

        assert config.storage.data_dir == str(tmp_path)
        assert config.remote.url == "https://env.example.org"
        assert config.remote.key == "env-key"
        assert config.remote.timeout_seconds == 5.0
        assert config.audit.max_entries == 10


class TestRollcallApp:
    """Tests for component wiring."""

    def test_remote_not_configured(self):
        app = Rollcall(Config(), backend=MemoryBackend(), settings=Settings())

        assert app.create_remote() is None
        assert app.create_sync_engine()._remote is None

    def test_saved_remote_used_when_config_has_none(self):
        app = Rollcall(Config(), backend=MemoryBackend(), settings=Settings())
        app.save_remote(" https://example.supabase.co ", "anon-key")

        remote_config = app.remote_config()
        assert remote_config.url == "https://example.supabase.co"
        assert remote_config.configured
        assert isinstance(app.create_remote(), PostgrestRemote)

    def test_config_remote_wins_over_saved(self):
        config = Config()
        config.remote.url = "https://config.example.org"
        config.remote.key = "config-key"
        app = Rollcall(config, backend=MemoryBackend(), settings=Settings())
        app.save_remote("https://saved.example.org", "saved-key")

        assert app.remote_config().url == "https://config.example.org"

    def test_audit_limit_from_config(self):
        config = Config()
        config.audit.max_entries = 7
        app = Rollcall(config, backend=MemoryBackend(), settings=Settings())

        assert app.audit_log.max_entries == 7

    def test_data_dir_layout(self, tmp_path):
        config = Config()
        config.storage.data_dir = str(tmp_path)
        app = Rollcall(config)

        app.store.save(Collection.PEOPLE, [Person(name="Ann")])

        assert (tmp_path / "db" / "people.json").exists()

    def test_factory_reset_forgets_everything(self, tmp_path):
        config = Config()
        config.storage.data_dir = str(tmp_path)
        app = Rollcall(config)
        app.identity.set_identity("Ann", "ann@example.org")
        app.roster.create_person("Bob")

        app.factory_reset()

        fresh = Rollcall(config)
        assert fresh.roster.people() == []
        assert fresh.audit_log.get_all() == []
        assert fresh.identity.identity is None
        assert not (tmp_path / "settings.json").exists()
