"""
Core update use cases — check, plan and install core releases.

Every function takes the process ``Runtime``, holds the version
manager's lock for the whole call and returns a result object.  Typed
service errors are caught here and reported through ``error`` /
``error_kind``; they never propagate to the CLI or the web layer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from corekeeper.core.models.release import DownloadPlan, ReleaseChannel, VersionInfo
from corekeeper.core.services.core_install.errors import CoreKeeperError
from corekeeper.core.services.core_install.execution.download import ProgressCallback
from corekeeper.core.services.core_install.resolver.release_resolver import parse_channel
from corekeeper.core.services.core_process.manager import CoreStatus
from corekeeper.core.services.event_bus import CORE_STATUS, INSTALL_PROGRESS
from corekeeper.core.services.runtime import Runtime

logger = logging.getLogger(__name__)


@dataclass
class VersionCheckResult:
    """Newest release on a channel."""

    info: VersionInfo | None = None
    error: str | None = None
    error_kind: str | None = None

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error, "kind": self.error_kind}
        return self.info.to_dict() if self.info else {}


@dataclass
class PlanResult:
    """What an install would download."""

    plan: DownloadPlan | None = None
    error: str | None = None
    error_kind: str | None = None

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error, "kind": self.error_kind}
        return self.plan.to_dict() if self.plan else {}


@dataclass
class InstallResult:
    """Outcome of a download + install."""

    channel: str = ""
    version: str | None = None
    core_path: Path | None = None
    error: str | None = None
    error_kind: str | None = None

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error, "kind": self.error_kind, "channel": self.channel}
        return {
            "channel": self.channel,
            "version": self.version,
            "core_path": str(self.core_path) if self.core_path else None,
        }


@dataclass
class InstallInfoResult:
    """Where cores live and which one is selected."""

    install_dir: Path | None = None
    default_core_path: Path | None = None
    current_version: str | None = None
    installed_versions: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "install_dir": str(self.install_dir) if self.install_dir else None,
            "default_core_path": str(self.default_core_path) if self.default_core_path else None,
            "current_version": self.current_version,
            "installed_versions": list(self.installed_versions),
        }


def _failure(error: CoreKeeperError) -> tuple[str, str]:
    return str(error), error.kind


def check_latest(runtime: Runtime, channel: str | ReleaseChannel) -> VersionCheckResult:
    """Resolve the newest release on ``channel`` (no download)."""
    result = VersionCheckResult()
    try:
        ch = parse_channel(channel)
        with runtime.versions.lock() as vm:
            result.info = vm.fetch_latest(ch)
    except CoreKeeperError as e:
        result.error, result.error_kind = _failure(e)
        logger.warning("Version check failed: %s", e)
    return result


def plan_download(runtime: Runtime, channel: str | ReleaseChannel) -> PlanResult:
    """Resolve the artifact an install would fetch (no download)."""
    result = PlanResult()
    try:
        ch = parse_channel(channel)
        with runtime.versions.lock() as vm:
            result.plan = vm.plan_download(ch)
    except CoreKeeperError as e:
        result.error, result.error_kind = _failure(e)
        logger.warning("Download planning failed: %s", e)
    return result


def install_latest(
    runtime: Runtime,
    channel: str | ReleaseChannel,
    *,
    restart: bool = False,
    on_progress: ProgressCallback | None = None,
) -> InstallResult:
    """Download and install the newest release, then point the core at it.

    With ``restart`` a running core is restarted on the new binary.

    Progress is published as ``install:progress`` events keyed by channel;
    a failure is published with stage ``error``.  ``on_progress`` also
    receives every step (CLI rendering).
    """
    result = InstallResult(channel=str(channel))
    last = {"progress": 0}

    def report(stage: str, progress: int, message: str) -> None:
        last["progress"] = progress
        if on_progress is not None:
            on_progress(stage, progress, message)
        runtime.bus.publish(
            INSTALL_PROGRESS,
            key=result.channel,
            data={"stage": stage, "progress": progress, "message": message},
        )

    try:
        ch = parse_channel(channel)
        result.channel = str(ch)
        with runtime.versions.lock() as vm:
            path = vm.download_install_latest(ch, report)
            result.version = vm.current_version
            result.core_path = path
    except CoreKeeperError as e:
        result.error, result.error_kind = _failure(e)
        logger.error("Install from %s channel failed: %s", result.channel, e)
        runtime.bus.publish(
            INSTALL_PROGRESS,
            key=result.channel,
            data={"stage": "error", "progress": last["progress"], "message": str(e)},
            error=str(e),
        )
        if on_progress is not None:
            on_progress("error", last["progress"], str(e))
        return result

    with runtime.core.lock() as cm:
        cm.set_core_path(result.core_path)
        if restart and cm.get_status() is CoreStatus.RUNNING:
            try:
                cm.restart()
            except CoreKeeperError as e:
                result.error, result.error_kind = _failure(e)
                logger.error("Restart after install failed: %s", e)
        runtime.bus.publish(CORE_STATUS, key="core", data=cm.to_dict())

    logger.info("Core %s installed at %s", result.version, result.core_path)
    return result


def install_info(runtime: Runtime) -> InstallInfoResult:
    """Report the cores directory and the selected version."""
    with runtime.versions.lock() as vm:
        return InstallInfoResult(
            install_dir=vm.install_dir(),
            default_core_path=vm.default_core_path(),
            current_version=vm.current_version,
            installed_versions=vm.installed_versions(),
        )
