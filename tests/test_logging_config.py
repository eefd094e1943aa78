"""
Brief: Tests for wildmask.config.logging_config.init_logging and formatters.

Inputs:
  - None

Outputs:
  - None
"""

import logging
import logging.handlers
from pathlib import Path

import pytest

from wildmask.config.config_schema import LoggingConfig
from wildmask.config.logging_config import BracketLevelFormatter, init_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    """
    Brief: Put the root logger back the way pytest configured it.
    """
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for h in list(root.handlers):
        root.removeHandler(h)
        if h not in handlers:
            h.close()
    for h in handlers:
        root.addHandler(h)
    root.setLevel(level)
    logging.captureWarnings(False)


def test_init_logging_defaults_to_stderr_at_info():
    """
    Brief: init_logging(None) installs a single stderr handler at INFO.

    Outputs:
      - None: Asserts handler type and root level
    """
    init_logging(None)
    root = logging.getLogger()
    assert root.level == logging.INFO
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0], logging.StreamHandler)
    assert isinstance(root.handlers[0].formatter, BracketLevelFormatter)


def test_verbose_forces_debug():
    init_logging(LoggingConfig(level="error"), verbose=True)
    assert logging.getLogger().level == logging.DEBUG


@pytest.mark.parametrize(
    "level,expected",
    [("debug", logging.DEBUG), ("warn", logging.WARNING), ("error", logging.ERROR)],
)
def test_level_names_map(level, expected):
    init_logging(LoggingConfig(level=level))
    assert logging.getLogger().level == expected


def test_init_logging_file_handler_rotates_and_writes(tmp_path):
    """
    Brief: A file destination gets a RotatingFileHandler with the configured limits.

    Inputs:
      - cfg: nested file path, maxSize and maxFiles

    Outputs:
      - None: Asserts directory created, limits applied, message written
    """
    log_path = tmp_path / "logs" / "daemon.log"
    init_logging(
        LoggingConfig(file=str(log_path), stderr=False, maxSize="2kb", maxFiles=2)
    )
    root = logging.getLogger()
    assert len(root.handlers) == 1
    handler = root.handlers[0]
    assert isinstance(handler, logging.handlers.RotatingFileHandler)
    assert handler.maxBytes == 2048
    assert handler.backupCount == 2

    logging.getLogger("wildmask.test").info("file message")
    handler.flush()
    content = Path(log_path).read_text()
    assert "file message" in content
    assert "[info] wildmask.test:" in content


def test_repeated_init_does_not_duplicate_handlers():
    init_logging(None)
    init_logging(None)
    assert len(logging.getLogger().handlers) == 1


def test_bracket_formatter_tags_and_utc_time():
    fmt = BracketLevelFormatter(fmt="%(asctime)s %(level_tag)s %(message)s")
    record = logging.LogRecord("x", logging.WARNING, __file__, 1, "careful", None, None)
    record.created = 0.0
    assert fmt.format(record) == "1970-01-01T00:00:00Z [warn] careful"

    record.levelno = 15
    assert "[lvl15]" in fmt.format(record)
