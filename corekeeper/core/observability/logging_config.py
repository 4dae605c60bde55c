"""
Logging setup shared by the CLI and the web server.

Modules log through ``logging.getLogger(__name__)``; ``setup_logging``
runs once per process and decides where records go:

    console (stderr)    level from ``resolve_level``
    log file            COREKEEPER_LOG_FILE, own level via COREKEEPER_LOG_FILE_LEVEL
    core output file    COREKEEPER_CORE_LOG_FILE, raw core stdout/stderr only

Level precedence: ``--debug`` / ``-v`` / ``-q``  >  COREKEEPER_LOG_LEVEL  >  WARNING.

Output of the supervised core is logged on ``corekeeper.core.output``
(stdout at INFO, stderr at WARNING), so it shows up on the console
only when the console level lets INFO or WARNING through.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Mapping

ENV_LOG_LEVEL = "COREKEEPER_LOG_LEVEL"
ENV_LOG_FILE = "COREKEEPER_LOG_FILE"
ENV_LOG_FILE_LEVEL = "COREKEEPER_LOG_FILE_LEVEL"
ENV_CORE_LOG_FILE = "COREKEEPER_CORE_LOG_FILE"

CORE_OUTPUT_LOGGER = "corekeeper.core.output"

# Console format per level threshold, most verbose first
_CONSOLE_FORMATS: tuple[tuple[int, str, str | None], ...] = (
    (logging.DEBUG, "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d  %(message)s", "%H:%M:%S"),
    (logging.INFO, "%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
)
_CONSOLE_DEFAULT = "%(message)s"

_FILE_FORMAT = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d  %(message)s"
_CORE_FILE_FORMAT = "%(asctime)s %(message)s"
_FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"

# werkzeug logs every request at INFO
_NOISY_LOGGERS = ("urllib3", "werkzeug")


def resolve_level(
    *,
    debug: bool = False,
    verbose: bool = False,
    quiet: bool = False,
    environ: Mapping[str, str] | None = None,
) -> str:
    """Console level name from CLI flags, falling back to the environment."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    env = os.environ if environ is None else environ
    return env.get(ENV_LOG_LEVEL) or "WARNING"


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_third_party: bool = True,
    core_log_file: str | None = None,
) -> None:
    """Install handlers on the root logger, replacing any existing ones.

    Args:
        level: Console level name; unknown names mean WARNING.
        log_file: Optional file receiving every record.
        log_file_level: Level for ``log_file`` (default: ``level``).
        quiet_third_party: Hold urllib3/werkzeug at WARNING unless
            the console is at DEBUG.
        core_log_file: Optional file receiving only the core's output lines.
    """
    console_level = _parse_level(level)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(_console_handler(console_level))
    lowest = console_level

    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else console_level
        handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setLevel(file_level)
        handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_FILE_DATEFMT))
        root.addHandler(handler)
        lowest = min(lowest, file_level)

    core_logger = logging.getLogger(CORE_OUTPUT_LOGGER)
    for handler in list(core_logger.handlers):
        core_logger.removeHandler(handler)
        handler.close()
    core_logger.setLevel(logging.NOTSET)
    if core_log_file:
        handler = logging.FileHandler(core_log_file, encoding="utf-8")
        handler.setFormatter(logging.Formatter(_CORE_FILE_FORMAT, datefmt=_FILE_DATEFMT))
        core_logger.addHandler(handler)
        # Every core line reaches the file, whatever the root level
        core_logger.setLevel(logging.INFO)

    root.setLevel(lowest)

    if quiet_third_party and console_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.raiseExceptions = False


def _console_handler(level: int) -> logging.Handler:
    fmt, datefmt = _CONSOLE_DEFAULT, None
    for threshold, candidate, candidate_datefmt in _CONSOLE_FORMATS:
        if level <= threshold:
            fmt, datefmt = candidate, candidate_datefmt
            break
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    return handler


def _parse_level(level: str | None) -> int:
    if not level:
        return logging.WARNING
    numeric = logging.getLevelName(level.strip().upper())
    return numeric if isinstance(numeric, int) else logging.WARNING
