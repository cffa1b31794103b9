"""Tests for the command line entry point."""

import json
import logging
import sys
from unittest.mock import patch

import pytest

from rollcall.__main__ import JSONFormatter, main, setup_logging


@pytest.fixture
def run(monkeypatch, tmp_path):
    """Run the CLI against a temporary data directory."""
    monkeypatch.setenv("ROLLCALL_DATA_DIR", str(tmp_path))
    monkeypatch.delenv("ROLLCALL_REMOTE_URL", raising=False)
    monkeypatch.delenv("ROLLCALL_REMOTE_KEY", raising=False)

    def _run(*args: str) -> int:
        monkeypatch.setattr(sys, "argv", ["rollcall", *args])
        return main()

    return _run


class TestCommands:
    def test_no_command_prints_help(self, run, capsys):
        assert run() == 1
        assert "usage" in capsys.readouterr().out

    def test_identity_set_and_show(self, run, capsys):
        assert run("identity", "set", "Ann", "ann@example.org") == 0
        capsys.readouterr()

        assert run("identity", "show") == 0
        out = capsys.readouterr().out
        assert "Name: Ann" in out
        assert "Device: MOB-" in out

    def test_status_json_offline(self, run, capsys):
        assert run("status", "--json") == 0

        data = json.loads(capsys.readouterr().out)
        assert data["remote"]["configured"] is False
        assert data["collections"]["people"] == {"records": 0, "unsynced": 0}

    def test_sync_without_remote_fails(self, run, capsys):
        assert run("sync") == 1
        assert "No remote configured" in capsys.readouterr().err

    def test_remote_set_is_saved(self, run, tmp_path):
        assert run("remote", "set", "https://example.supabase.co", "anon-key") == 0

        settings = json.loads((tmp_path / "settings.json").read_text())
        assert settings["remote_url"] == "https://example.supabase.co"

    def test_reset_requires_confirmation(self, run, capsys):
        assert run("reset") == 1
        assert run("reset", "--yes") == 0

    def test_notify_nothing(self, run, capsys):
        assert run("notify") == 0
        assert "Nothing to report." in capsys.readouterr().out


class TestJSONFormatter:
    def test_format(self):
        record = logging.LogRecord(
            "rollcall.sync", logging.INFO, __file__, 1, "hello %s", ("x",), None
        )

        data = json.loads(JSONFormatter().format(record))

        assert data["level"] == "INFO"
        assert data["component"] == "rollcall.sync"
        assert data["message"] == "hello x"

    def test_exception_included(self):
        try:
            raise ValueError("bad row")
        except ValueError:
            record = logging.LogRecord(
                "rollcall.store", logging.ERROR, __file__, 1, "failed", (), sys.exc_info()
            )

        data = json.loads(JSONFormatter().format(record))

        assert "ValueError: bad row" in data["exception"]


class TestSetupLogging:
    @pytest.mark.parametrize(
        "kwargs, level",
        [
            ({}, logging.WARNING),
            ({"verbose": True}, logging.DEBUG),
            ({"verbose": True, "log_level": "info"}, logging.INFO),
        ],
    )
    def test_level(self, kwargs, level):
        with patch.object(logging, "basicConfig") as basic_config:
            setup_logging(**kwargs)

        assert basic_config.call_args.kwargs["level"] == level

    def test_json_output(self):
        with patch.object(logging, "basicConfig") as basic_config:
            setup_logging(json_output=True)

        (handler,) = basic_config.call_args.kwargs["handlers"]
        assert isinstance(handler.formatter, JSONFormatter)
