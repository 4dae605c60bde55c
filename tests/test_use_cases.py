"""
Tests for use cases — result objects, error kinds and published events.
"""

from __future__ import annotations

import gzip
from pathlib import Path

import pytest

from conftest import DL, posix_only
from corekeeper.core.services.event_bus import CORE_STATUS, INSTALL_PROGRESS
from corekeeper.core.services.runtime import Runtime
from corekeeper.core.use_cases.core_control import (
    core_status,
    restart_core,
    start_core,
    stop_core,
)
from corekeeper.core.use_cases.core_update import (
    check_latest,
    install_info,
    install_latest,
    plan_download,
)

CORE = b"#!/bin/sh\nexit 0\n"


@pytest.fixture
def stable_release(registry):
    registry.set_latest(registry.add_release(
        "v1.19.0", {"mihomo-linux-amd64-v3-v1.19.0.gz": gzip.compress(CORE)},
    ))
    return registry


def _use_core(runtime: Runtime, path: Path) -> None:
    with runtime.core.lock() as cm:
        cm.set_core_path(path)


class TestCheckAndPlan:
    def test_check_latest(self, runtime, stable_release):
        result = check_latest(runtime, "stable")
        assert result.error is None
        assert result.info.version == "v1.19.0"
        assert result.to_dict()["version"] == "v1.19.0"

    def test_invalid_channel(self, runtime):
        result = check_latest(runtime, "nightly")
        assert result.error_kind == "invalid_channel"
        assert result.to_dict() == {"error": result.error, "kind": "invalid_channel"}

    def test_registry_failure(self, runtime):
        result = check_latest(runtime, "stable")
        assert result.error_kind == "registry"
        assert "HTTP 404" in result.error

    def test_plan(self, runtime, stable_release):
        result = plan_download(runtime, "stable")
        assert result.plan.asset_name == "mihomo-linux-amd64-v3-v1.19.0.gz"
        assert result.to_dict()["checksum_url"] == f"{DL}/v1.19.0/checksums.txt"

    def test_plan_failure(self, runtime):
        assert plan_download(runtime, "dev").error_kind == "registry"


class TestInstall:
    def test_install_publishes_progress(self, runtime, stable_release, cores_dir):
        steps = []
        result = install_latest(runtime, "stable", on_progress=lambda *s: steps.append(s))

        assert result.error is None
        assert result.version == "v1.19.0"
        assert result.core_path == cores_dir / "current" / "mihomo"

        events = runtime.bus.recent(INSTALL_PROGRESS)
        assert [e["data"]["stage"] for e in events] == [s[0] for s in steps]
        assert events[0]["data"]["stage"] == "start"
        assert events[-1]["data"] == {
            "stage": "done", "progress": 100, "message": "Installed v1.19.0",
        }
        assert all(e["key"] == "stable" for e in events)

    def test_install_points_core_at_new_binary(self, runtime, stable_release, cores_dir):
        install_latest(runtime, "stable")
        with runtime.core.lock() as cm:
            assert cm.core_path == cores_dir / "current" / "mihomo"
        status = runtime.bus.recent(CORE_STATUS)[-1]
        assert status["data"]["core_path"] == str(cores_dir / "current" / "mihomo")

    def test_install_failure_publishes_error(self, runtime, stable_release):
        stable_release.text[f"{DL}/v1.19.0/checksums.txt"] = f"{'f' * 64}  x\n"
        steps = []
        result = install_latest(runtime, "stable", on_progress=lambda *s: steps.append(s))

        assert result.error_kind == "checksum_mismatch"
        assert result.to_dict()["channel"] == "stable"
        last = runtime.bus.recent(INSTALL_PROGRESS)[-1]
        assert last["data"]["stage"] == "error"
        assert last["data"]["progress"] == 92
        assert last["error"] == result.error
        assert steps[-1][0] == "error"
        with runtime.core.lock() as cm:
            assert cm.core_path is None

    def test_install_invalid_channel(self, runtime):
        result = install_latest(runtime, "beta")
        assert result.error_kind == "invalid_channel"
        assert runtime.bus.recent(INSTALL_PROGRESS)[-1]["key"] == "beta"

    def test_install_info(self, runtime, stable_release, cores_dir):
        before = install_info(runtime).to_dict()
        assert before["install_dir"] == str(cores_dir)
        assert before["default_core_path"] is None
        assert before["installed_versions"] == []

        install_latest(runtime, "stable")
        after = install_info(runtime).to_dict()
        assert after["current_version"] == "v1.19.0"
        assert after["installed_versions"] == ["v1.19.0"]
        assert after["default_core_path"] == str(cores_dir / "current" / "mihomo")


class TestCoreControl:
    def test_status_without_core(self, runtime):
        result = core_status(runtime)
        assert result.ok
        assert result.to_dict()["status"] == "stopped"
        assert runtime.bus.recent(CORE_STATUS) == []

    def test_start_without_core_path(self, runtime, core_config):
        result = start_core(runtime, core_config)
        assert result.error_kind == "no_core_path_configured"
        assert result.to_dict()["kind"] == "no_core_path_configured"

    def test_start_without_any_config(self, runtime, fake_core):
        _use_core(runtime, fake_core)
        result = start_core(runtime)
        assert result.error_kind == "config_missing"

    def test_start_uses_configured_default(self, runtime, fake_core, core_config):
        _use_core(runtime, fake_core)
        runtime.settings.core_config = core_config
        result = start_core(runtime)
        try:
            assert result.ok
            assert result.config == core_config
        finally:
            stop_core(runtime)

    def test_restart_without_history(self, runtime):
        assert restart_core(runtime).error_kind == "no_config_to_restart"

    @posix_only
    def test_lifecycle(self, runtime, fake_core, core_config):
        _use_core(runtime, fake_core)

        started = start_core(runtime, core_config)
        assert started.ok, started.error
        assert started.status == "running"
        assert started.pid is not None

        restarted = restart_core(runtime)
        assert restarted.ok
        assert restarted.pid != started.pid

        stopped = stop_core(runtime)
        assert stopped.status == "stopped"
        assert stopped.pid is None

        actions = [e["data"]["status"] for e in runtime.bus.recent(CORE_STATUS)]
        assert actions == ["running", "running", "stopped"]
