from __future__ import annotations

import logging
from pathlib import Path

import pytest
from rich.logging import RichHandler

from term_datasource.logging_setup import configure_logging


@pytest.fixture(autouse=True)
def fixture_restore_root_handlers():
    root = logging.getLogger()
    saved = list(root.handlers)
    level = root.level
    urllib3_level = logging.getLogger("urllib3").level
    yield
    logging.getLogger("urllib3").setLevel(urllib3_level)
    for handler in list(root.handlers):
        if handler not in saved:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


def test_file_logging_writes_to_configured_path(tmp_path: Path) -> None:
    config = {
        "logging": {
            "console": {"enabled": False},
            "file": {"enabled": True, "path": "logs/run.log", "level": "INFO"},
        }
    }

    configure_logging(config, base_dir=tmp_path)
    logging.getLogger("term_datasource.test").info("hello from the test")
    for handler in logging.getLogger().handlers:
        handler.flush()

    log_path = tmp_path / "logs" / "run.log"
    assert "hello from the test" in log_path.read_text(encoding="utf-8")


def test_rich_console_handler() -> None:
    configure_logging({"logging": {"console": {"rich_format": True}, "file": {"enabled": False}}})

    handlers = logging.getLogger().handlers
    assert len(handlers) == 1
    assert isinstance(handlers[0], RichHandler)


def test_plain_console_handler_level() -> None:
    configure_logging({"logging": {"console": {"level": "WARNING"}}})

    handlers = logging.getLogger().handlers
    assert len(handlers) == 1
    assert not isinstance(handlers[0], RichHandler)
    assert handlers[0].level == logging.WARNING


def test_http_transport_logging_is_quieted_by_default() -> None:
    configure_logging({"logging": {"console": {"enabled": False}}})

    assert logging.getLogger("urllib3").level == logging.WARNING


def test_quiet_loggers_can_be_configured() -> None:
    logging.getLogger("urllib3").setLevel(logging.NOTSET)

    configure_logging({"logging": {"console": {"enabled": False}, "quiet_loggers": []}})

    assert logging.getLogger("urllib3").level == logging.NOTSET


def test_rich_console_writes_to_stderr() -> None:
    configure_logging({"logging": {"console": {"rich_format": True}}})

    handler = logging.getLogger().handlers[0]
    assert isinstance(handler, RichHandler)
    assert handler.console.stderr is True
