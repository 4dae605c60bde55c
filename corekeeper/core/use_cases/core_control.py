"""
Core control use cases — start, stop, restart and query the core.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from corekeeper.core.services.core_install.errors import ConfigMissing, CoreKeeperError
from corekeeper.core.services.core_process.manager import CoreManager, CoreStatus
from corekeeper.core.services.event_bus import CORE_STATUS
from corekeeper.core.services.runtime import Runtime

logger = logging.getLogger(__name__)


@dataclass
class CoreResult:
    """Core state after an operation."""

    action: str = "status"
    status: CoreStatus = CoreStatus.STOPPED
    pid: int | None = None
    core_path: Path | None = None
    config: Path | None = None
    error: str | None = None
    error_kind: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        result: dict = {
            "action": self.action,
            "status": str(self.status),
            "pid": self.pid,
            "core_path": str(self.core_path) if self.core_path else None,
            "config": str(self.config) if self.config else None,
        }
        if self.error:
            result["error"] = self.error
            result["kind"] = self.error_kind
        return result


def _snapshot(runtime: Runtime, cm: CoreManager, result: CoreResult) -> CoreResult:
    result.status = cm.get_status()
    result.pid = cm.pid
    result.core_path = cm.core_path
    result.config = cm.current_config
    if result.action != "status":
        runtime.bus.publish(CORE_STATUS, key="core", data=cm.to_dict())
    return result


def start_core(runtime: Runtime, config_path: Path | str | None = None) -> CoreResult:
    """Start the core with ``config_path`` (default: settings ``core_config``)."""
    result = CoreResult(action="start")
    with runtime.core.lock() as cm:
        try:
            if config_path is None:
                config_path = runtime.settings.core_config
            if config_path is None:
                raise ConfigMissing("No core config given and none configured (core_config)")
            cm.start(Path(config_path).expanduser())
        except CoreKeeperError as e:
            result.error, result.error_kind = str(e), e.kind
            logger.error("Start failed: %s", e)
        return _snapshot(runtime, cm, result)


def stop_core(runtime: Runtime) -> CoreResult:
    """Stop the core if this process started it."""
    result = CoreResult(action="stop")
    with runtime.core.lock() as cm:
        try:
            cm.stop()
        except CoreKeeperError as e:
            result.error, result.error_kind = str(e), e.kind
            logger.error("Stop failed: %s", e)
        return _snapshot(runtime, cm, result)


def restart_core(runtime: Runtime) -> CoreResult:
    """Restart with the last configuration path."""
    result = CoreResult(action="restart")
    with runtime.core.lock() as cm:
        try:
            cm.restart()
        except CoreKeeperError as e:
            result.error, result.error_kind = str(e), e.kind
            logger.error("Restart failed: %s", e)
        return _snapshot(runtime, cm, result)


def core_status(runtime: Runtime) -> CoreResult:
    with runtime.core.lock() as cm:
        return _snapshot(runtime, cm, CoreResult())
