"""
Core process supervision.

State machine:

    stopped ──start()──▶ running | error
    running ──stop()───▶ stopped
    running ──(child exits, seen by get_status)──▶ stopped
    any     ──restart()─▶ stop() (errors ignored) + start(last config)

The child is launched as ``<core> -f <config>`` with stdin closed and
both output streams forwarded line by line to the log sink.

``stop()`` waits for the child without a timeout: a core that ignores
the termination signal blocks the caller.  ``get_status()`` without a
child handle returns the last recorded status, even if the core was
started or killed by someone else.
"""

from __future__ import annotations

import logging
import subprocess
from enum import StrEnum
from pathlib import Path
from typing import Any, Callable

from corekeeper.core.services.core_install.errors import (
    ConfigMissing,
    CoreBinaryMissing,
    NoConfigToRestart,
    NoCorePathConfigured,
    SpawnError,
    StopError,
)
from corekeeper.core.services.core_process.log_forwarder import (
    STDERR,
    STDOUT,
    LogSink,
    forward_output,
    log_to_logger,
)

logger = logging.getLogger(__name__)


class CoreStatus(StrEnum):
    RUNNING = "running"
    STOPPED = "stopped"
    ERROR = "error"


class CoreManager:
    """Starts, stops and watches one core process.

    Not thread-safe on its own: share it through ``Shared``.

    Args:
        core_path: Executable to run (usually ``cores_dir/current/mihomo``).
        log_sink: Receives ``(stream, line)`` for every output line.
        popen: Injection point for tests (defaults to ``subprocess.Popen``).
    """

    def __init__(
        self,
        core_path: Path | None = None,
        *,
        log_sink: LogSink | None = None,
        popen: Callable[..., Any] = subprocess.Popen,
    ) -> None:
        self.core_path = core_path
        self.current_config: Path | None = None
        self.status = CoreStatus.STOPPED
        self.child: subprocess.Popen | None = None
        self._log_sink = log_sink or log_to_logger
        self._popen = popen

    def set_core_path(self, path: Path | None) -> None:
        self.core_path = path
        logger.info("Core path set to %s", path)

    @property
    def pid(self) -> int | None:
        return self.child.pid if self.child is not None else None

    # ── Lifecycle ───────────────────────────────────────────────

    def start(self, config_path: Path) -> None:
        """Launch the core with ``config_path``.

        Raises:
            NoCorePathConfigured, CoreBinaryMissing, ConfigMissing:
                Preconditions; nothing is spawned.
            SpawnError: The OS refused to start the process (status → error).
        """
        config_path = Path(config_path)
        # Remembered even when start fails, so restart() can retry it
        self.current_config = config_path

        if self.core_path is None:
            raise NoCorePathConfigured()
        if not self.core_path.exists():
            raise CoreBinaryMissing(f"Core executable not found: {self.core_path}")
        if not config_path.exists():
            raise ConfigMissing(f"Config file not found: {config_path}")

        if self.child is not None and self.child.poll() is None:
            logger.info("Stopping previous core (pid %s) before starting a new one", self.child.pid)
            try:
                self.stop()
            except StopError as e:
                logger.warning("Could not stop previous core: %s", e)

        cmd = [str(self.core_path), "-f", str(config_path)]
        logger.info("Starting core: %s", " ".join(cmd))
        try:
            child = self._popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            self.status = CoreStatus.ERROR
            raise SpawnError(f"Failed to start core: {e}") from e

        self.child = child
        self.status = CoreStatus.RUNNING
        forward_output(child.stdout, STDOUT, self._log_sink)
        forward_output(child.stderr, STDERR, self._log_sink)
        logger.info("Core running (pid %s)", child.pid)

    def stop(self) -> None:
        """Terminate the child (if any) and wait until it is reaped.

        Raises:
            StopError: The termination signal could not be sent; the
                handle is kept so the caller can retry.
        """
        child = self.child
        if child is not None:
            try:
                child.terminate()
            except OSError as e:
                raise StopError(f"Failed to stop core (pid {child.pid}): {e}") from e
            returncode = child.wait()
            logger.info("Core (pid %s) exited with %s", child.pid, returncode)
        self.child = None
        self.status = CoreStatus.STOPPED

    def get_status(self) -> CoreStatus:
        """Current status; polls the child without blocking."""
        child = self.child
        if child is None:
            return self.status
        try:
            returncode = child.poll()
        except OSError as e:
            logger.warning("Cannot query core (pid %s): %s", child.pid, e)
            self.status = CoreStatus.ERROR
            return self.status
        if returncode is None:
            self.status = CoreStatus.RUNNING
        else:
            logger.info("Core (pid %s) exited on its own with %s", child.pid, returncode)
            self.child = None
            self.status = CoreStatus.STOPPED
        return self.status

    def restart(self) -> None:
        """Stop (best-effort) and start again with the last config.

        Raises:
            NoConfigToRestart: ``start`` has never been called.
        """
        config = self.current_config
        if config is None:
            raise NoConfigToRestart()
        try:
            self.stop()
        except StopError as e:
            logger.warning("Ignoring stop failure during restart: %s", e)
        self.start(config)

    def to_dict(self) -> dict:
        return {
            "status": str(self.status),
            "pid": self.pid,
            "core_path": str(self.core_path) if self.core_path else None,
            "config": str(self.current_config) if self.current_config else None,
        }
