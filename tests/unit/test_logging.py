import json
import logging

import pytest
import structlog

from metamode.logging import bind_context, clear_context, configure_logging


def test_configure_logging_installs_single_handler() -> None:
    configure_logging("debug", json_output=True)
    configure_logging("warning", json_output=True)
    root = logging.getLogger()
    assert len(root.handlers) == 1
    assert root.level == logging.WARNING


def test_unknown_level_falls_back_to_info() -> None:
    configure_logging("chatty", json_output=False)
    assert logging.getLogger().level == logging.INFO


def test_bound_context_is_cleared() -> None:
    bind_context(command="compile")
    assert structlog.contextvars.get_contextvars() == {"command": "compile"}
    clear_context()
    assert structlog.contextvars.get_contextvars() == {}


def test_records_go_to_stderr_with_bound_command(capsys: pytest.CaptureFixture[str]) -> None:
    configure_logging("info", json_output=True)
    bind_context(command="compile")
    logging.getLogger("metamode.compiler.store").info("wrote database")

    captured = capsys.readouterr()
    assert captured.out == ""
    record = json.loads(captured.err.strip().splitlines()[-1])
    assert record["event"] == "wrote database"
    assert record["command"] == "compile"
    assert record["logger"] == "metamode.compiler.store"
    assert record["level"] == "info"
