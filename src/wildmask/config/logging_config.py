from __future__ import annotations

import logging
import logging.handlers
import os
import sys
from datetime import datetime, timezone
from typing import Optional

from .config_parser import parse_size
from .config_schema import LoggingConfig

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class BracketLevelFormatter(logging.Formatter):
    """Custom formatter that adds bracketed lowercase level tags and UTC timestamps."""

    _TAGS = {
        logging.DEBUG: "[debug]",
        logging.INFO: "[info]",
        logging.WARNING: "[warn]",
        logging.ERROR: "[error]",
        logging.CRITICAL: "[crit]",
    }

    def formatTime(self, record, datefmt=None):
        """Format the record's creation time as UTC ISO-8601 with Z suffix."""
        return datetime.fromtimestamp(record.created, timezone.utc).strftime(
            "%Y-%m-%dT%H:%M:%SZ"
        )

    def format(self, record):
        """Add level_tag attribute and format the record."""
        record.level_tag = self._TAGS.get(record.levelno, f"[lvl{record.levelno}]")
        return super().format(record)


def init_logging(cfg: Optional[LoggingConfig], *, verbose: bool = False) -> None:
    """
    Initialize logging configuration based on the provided config.

    Args:
        cfg: LoggingConfig (None means defaults: info level, stderr only).
            - level: debug, info, warn, error
            - stderr: log to stderr
            - file: path to a log file, rotated by size
            - max_size / max_files: rotation threshold and backups kept
        verbose: Force debug level regardless of cfg.level.

    Example config:
        logging:
          level: info
          file: ~/.wildmask/logs/daemon.log
          maxSize: 10mb
          maxFiles: 5
    """
    cfg = cfg or LoggingConfig()

    level = logging.DEBUG if verbose else _LEVELS.get(cfg.level, logging.INFO)

    fmt = "%(asctime)s %(level_tag)s %(name)s: %(message)s"
    formatter = BracketLevelFormatter(fmt=fmt)

    root = logging.getLogger()
    root.setLevel(level)

    # Remove existing handlers to avoid duplicates
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()

    if cfg.stderr:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(formatter)
        root.addHandler(stderr_handler)

    file_path = cfg.file
    if isinstance(file_path, str) and file_path.strip():
        path = os.path.abspath(os.path.expanduser(file_path.strip()))
        os.makedirs(os.path.dirname(path), exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            path,
            mode="a",
            maxBytes=parse_size(cfg.max_size),
            backupCount=cfg.max_files,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    # Capture warnings to use the same logging configuration
    logging.captureWarnings(True)
