"""
Tests for logging setup and core output forwarding.
"""

from __future__ import annotations

import io
import logging
import threading

import pytest

from corekeeper.core.observability.logging_config import (
    CORE_OUTPUT_LOGGER,
    ENV_LOG_LEVEL,
    resolve_level,
    setup_logging,
)
from corekeeper.core.services.core_process.log_forwarder import forward_output, log_to_logger


@pytest.fixture(autouse=True)
def _restore_root():
    root = logging.getLogger()
    core = logging.getLogger(CORE_OUTPUT_LOGGER)
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers + core.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    core.handlers.clear()
    core.setLevel(logging.NOTSET)


class TestResolveLevel:
    def test_flags_win(self):
        env = {ENV_LOG_LEVEL: "ERROR"}
        assert resolve_level(debug=True, verbose=True, environ=env) == "DEBUG"
        assert resolve_level(verbose=True, environ=env) == "INFO"
        assert resolve_level(quiet=True, environ={}) == "ERROR"

    def test_env_then_default(self):
        assert resolve_level(environ={ENV_LOG_LEVEL: "info"}) == "info"
        assert resolve_level(environ={ENV_LOG_LEVEL: ""}) == "WARNING"
        assert resolve_level(environ={}) == "WARNING"


class TestSetupLogging:
    def test_console_level(self):
        setup_logging("INFO")
        root = logging.getLogger()
        assert root.level == logging.INFO
        assert len(root.handlers) == 1

    def test_unknown_level_falls_back_to_warning(self):
        setup_logging("chatty")
        assert logging.getLogger().level == logging.WARNING

    def test_file_handler_can_be_more_verbose(self, tmp_path):
        log_file = tmp_path / "corekeeper.log"
        setup_logging("WARNING", log_file=str(log_file), log_file_level="DEBUG")
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 2

        logging.getLogger("corekeeper.test").debug("written to file only")
        for handler in root.handlers:
            handler.flush()
        assert "written to file only" in log_file.read_text()

    def test_quiets_werkzeug(self):
        setup_logging("INFO")
        assert logging.getLogger("werkzeug").level == logging.WARNING

    def test_core_log_file_gets_only_core_lines(self, tmp_path):
        core_file = tmp_path / "core.log"
        setup_logging("ERROR", core_log_file=str(core_file))

        log_to_logger("stdout", "listening on :7890")
        logging.getLogger("corekeeper.other").warning("not core output")
        for handler in logging.getLogger(CORE_OUTPUT_LOGGER).handlers:
            handler.flush()

        text = core_file.read_text()
        assert "[stdout] listening on :7890" in text
        assert "not core output" not in text

    def test_repeated_setup_does_not_stack_core_handlers(self, tmp_path):
        setup_logging(core_log_file=str(tmp_path / "a.log"))
        setup_logging(core_log_file=str(tmp_path / "b.log"))
        assert len(logging.getLogger(CORE_OUTPUT_LOGGER).handlers) == 1
        setup_logging()
        assert logging.getLogger(CORE_OUTPUT_LOGGER).handlers == []


class TestCoreOutput:
    def test_stderr_logged_as_warning(self, caplog):
        with caplog.at_level(logging.INFO, logger=CORE_OUTPUT_LOGGER):
            log_to_logger("stdout", "listening on :7890")
            log_to_logger("stderr", "dns failed")
        records = [(r.levelno, r.getMessage()) for r in caplog.records if r.name == CORE_OUTPUT_LOGGER]
        assert records == [
            (logging.INFO, "[stdout] listening on :7890"),
            (logging.WARNING, "[stderr] dns failed"),
        ]

    def test_forward_output_splits_lines(self):
        pipe = io.BytesIO(b"one\r\ntwo\n\nthree \xff\n")
        lines = []
        done = threading.Event()

        def sink(stream, line):
            lines.append((stream, line))
            if line.startswith("three"):
                done.set()

        thread = forward_output(pipe, "stdout", sink)
        thread.join(timeout=5)
        assert done.is_set()
        assert lines == [("stdout", "one"), ("stdout", "two"), ("stdout", "three \ufffd")]
        assert pipe.closed

    def test_forward_output_without_pipe(self):
        assert forward_output(None, "stderr", lambda *a: None) is None

    def test_forward_output_survives_raising_sink(self, caplog):
        pipe = io.BytesIO(b"one\ntwo\nthree\n")
        seen = []

        def sink(stream, line):
            seen.append(line)
            raise ValueError("bad sink")

        with caplog.at_level(logging.ERROR):
            thread = forward_output(pipe, "stderr", sink)
            thread.join(timeout=5)

        assert seen == ["one", "two", "three"]
        assert pipe.closed
        failures = [r for r in caplog.records if "sink raised" in r.getMessage()]
        assert len(failures) == 1
        assert failures[0].exc_info is not None
