"""
Core output forwarding.

One daemon thread per pipe reads the child's output line by line and
hands each line to a sink.  The threads are never joined: they end on
their own when the pipe closes (child exited) or a read fails.
A sink that raises is reported once; reading continues regardless.
"""

from __future__ import annotations

import logging
import threading
from typing import IO, Callable

from corekeeper.core.observability.logging_config import CORE_OUTPUT_LOGGER

STDOUT = "stdout"
STDERR = "stderr"

# sink(stream, line) — stream is "stdout" or "stderr"
LogSink = Callable[[str, str], None]

logger = logging.getLogger(__name__)
_output_logger = logging.getLogger(CORE_OUTPUT_LOGGER)


def log_to_logger(stream: str, line: str) -> None:
    """Default sink: stdout at INFO, stderr at WARNING."""
    level = logging.WARNING if stream == STDERR else logging.INFO
    _output_logger.log(level, "[%s] %s", stream, line)


def _pump(pipe: IO[bytes], stream: str, sink: LogSink) -> None:
    sink_failed = False
    try:
        for raw in iter(pipe.readline, b""):
            line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
            if not line:
                continue
            try:
                sink(stream, line)
            except Exception:
                # Keep reading: a pipe closed early kills the core on its next write
                if not sink_failed:
                    logger.exception("Core %s sink raised; later failures are not logged", stream)
                    sink_failed = True
    except (OSError, ValueError):
        # Pipe closed underneath us
        pass
    finally:
        try:
            pipe.close()
        except OSError:
            pass


def forward_output(
    pipe: IO[bytes] | None, stream: str, sink: LogSink,
) -> threading.Thread | None:
    """Start a daemon reader for ``pipe``; returns the thread (or None)."""
    if pipe is None:
        return None
    thread = threading.Thread(
        target=_pump,
        args=(pipe, stream, sink),
        name=f"core-{stream}",
        daemon=True,
    )
    thread.start()
    return thread
