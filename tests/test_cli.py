"""
Tests for CLI commands — version management, core control and global options.
"""

import gzip
import json
import logging
import threading
import time
from pathlib import Path
from types import SimpleNamespace

import pytest
from click.testing import CliRunner

from conftest import DL, posix_only
from corekeeper.core.services.event_bus import CORE_LOG, EventBus
from corekeeper.main import cli
from corekeeper.ui.cli import core as core_commands

CORE = b"#!/bin/sh\nexit 0\n"


@pytest.fixture
def published(registry):
    registry.set_latest(registry.add_release(
        "v1.19.0", {"mihomo-linux-amd64-v3-v1.19.0.gz": gzip.compress(CORE)},
    ))
    return registry


def _invoke(runtime, *args: str):  # type: ignore[no-untyped-def]
    return CliRunner().invoke(cli, list(args), obj={"runtime": runtime})


class TestCLIGlobal:
    """Tests for global CLI behavior."""

    def test_help(self):
        result = CliRunner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "mihomo core" in result.output
        assert "version" in result.output and "core" in result.output

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_bad_config_file(self, tmp_path: Path):
        bad = tmp_path / "corekeeper.yml"
        bad.write_text("repository: nope\n")
        result = CliRunner().invoke(cli, ["-c", str(bad), "version", "path"])
        assert result.exit_code == 2
        assert "Invalid corekeeper configuration" in result.output


class TestVersionCommands:
    def test_check(self, runtime, published):
        result = _invoke(runtime, "version", "check")
        assert result.exit_code == 0
        assert "Latest stable: v1.19.0" in result.output
        assert "No core installed yet" in result.output

    def test_check_json(self, runtime, published):
        result = _invoke(runtime, "version", "check", "--json")
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["version"] == "v1.19.0"
        assert data["checksum"] == f"{DL}/v1.19.0/checksums.txt"

    def test_check_failure(self, runtime):
        result = _invoke(runtime, "version", "check", "--json")
        assert result.exit_code == 1
        assert json.loads(result.stdout)["kind"] == "registry"

    def test_check_rejects_unknown_channel(self, runtime):
        result = _invoke(runtime, "version", "check", "--channel", "nightly")
        assert result.exit_code == 2

    def test_plan(self, runtime, published):
        result = _invoke(runtime, "version", "plan")
        assert result.exit_code == 0
        assert "mihomo-linux-amd64-v3-v1.19.0.gz" in result.output
        assert "checksums.txt" in result.output

    def test_install_then_list(self, runtime, published, cores_dir):
        result = _invoke(runtime, "version", "install")
        assert result.exit_code == 0, result.output
        assert "[  0%]" in result.output
        assert "[100%] Installed v1.19.0" in result.output
        assert "Installed v1.19.0" in result.output

        listed = _invoke(runtime, "version", "list")
        assert "v1.19.0 ← current" in listed.output

        path = json.loads(_invoke(runtime, "version", "path", "--json").stdout)
        assert path["default_core_path"] == str(cores_dir / "current" / "mihomo")

        check = _invoke(runtime, "version", "check")
        assert "Installed and current" in check.output

    def test_install_json(self, runtime, published):
        result = _invoke(runtime, "version", "install", "--json")
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data == {
            "channel": "stable",
            "version": "v1.19.0",
            "core_path": data["core_path"],
        }
        assert "%]" not in result.stdout

    def test_install_failure(self, runtime, published):
        published.text[f"{DL}/v1.19.0/checksums.txt"] = "0" * 64 + "  x\n"
        result = _invoke(runtime, "version", "install")
        assert result.exit_code == 1
        assert "❌" in result.output

    def test_list_empty(self, runtime):
        result = _invoke(runtime, "version", "list")
        assert result.exit_code == 0
        assert "No core versions installed" in result.output

    def test_path_not_installed(self, runtime, cores_dir):
        result = _invoke(runtime, "version", "path")
        assert f"Install dir: {cores_dir}" in result.output
        assert "(not installed)" in result.output


class TestCoreCommands:
    def test_status(self, runtime):
        result = _invoke(runtime, "core", "status")
        assert result.exit_code == 0
        assert "Core: stopped" in result.output

    def test_status_json(self, runtime):
        data = json.loads(_invoke(runtime, "core", "status", "--json").stdout)
        assert data["status"] == "stopped"
        assert data["current_version"] is None

    def test_run_without_core(self, runtime, core_config):
        result = _invoke(runtime, "core", "run", str(core_config))
        assert result.exit_code == 1
        assert "No core executable path" in result.output

    def test_run_without_config(self, runtime):
        result = _invoke(runtime, "core", "run", "--json")
        assert result.exit_code == 1
        assert json.loads(result.stdout)["kind"] in ("config_missing", "no_core_path_configured")

    @posix_only
    def test_run_until_exit(self, runtime, fake_core, exiting_config, monkeypatch):
        monkeypatch.setattr("corekeeper.ui.cli.core.POLL_INTERVAL", 0.05)
        with runtime.core.lock() as cm:
            cm.set_core_path(fake_core)

        result = _invoke(runtime, "core", "run", str(exiting_config), "--json")
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["action"] == "exited"
        assert data["status"] == "stopped"
        assert data["config"] == str(exiting_config)


class TestCoreOutputEcho:
    def test_resumes_after_falling_behind(self, monkeypatch, caplog):
        bus = EventBus(subscriber_queue_size=2)
        printed: list[str] = []
        busy = threading.Event()
        release = threading.Event()

        def slow_echo(message=None, err=False, **kwargs):
            busy.set()
            release.wait(5)
            printed.append(message)

        monkeypatch.setattr(core_commands.click, "echo", slow_echo)
        caplog.set_level(logging.WARNING)
        threading.Thread(
            target=core_commands._echo_core_output,
            args=(SimpleNamespace(bus=bus),),
            daemon=True,
        ).start()

        deadline = time.monotonic() + 5
        while bus.subscriber_count == 0 and time.monotonic() < deadline:
            time.sleep(0.01)
        bus.publish(CORE_LOG, data={"stream": "stdout", "line": "line 0"})
        assert busy.wait(5)
        for i in range(1, 5):
            bus.publish(CORE_LOG, data={"stream": "stdout", "line": f"line {i}"})
        assert bus.subscriber_count == 0

        release.set()
        deadline = time.monotonic() + 5
        while len(printed) < 5 and time.monotonic() < deadline:
            time.sleep(0.01)

        assert printed == [f"line {i}" for i in range(5)]
        assert any("echo fell behind" in r.getMessage() for r in caplog.records)
