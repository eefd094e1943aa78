"""Configuration loading helpers for WildMask.

Brief:
  Reads the YAML config file, validates it against the pydantic schema and
  turns every failure into a single ConfigError with a readable message.

Inputs:
  - YAML config paths / parsed dicts

Outputs:
  - WildmaskConfig instances
"""

from __future__ import annotations

import os
import re
from typing import Any, Dict

import yaml
from pydantic import ValidationError

from .config_schema import WildmaskConfig

_SIZE_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(b|kb|mb|gb)?\s*$", re.IGNORECASE)
_SIZE_UNITS = {"b": 1, "kb": 1024, "mb": 1024**2, "gb": 1024**3}


class ConfigError(ValueError):
    """
    Brief: Configuration file is missing, unreadable, or invalid.

    Inputs:
    - message: human-readable description including the file path

    Outputs:
    - Exception instance
    """


def parse_size(text: str) -> int:
    """Brief: Convert a human size such as '10mb' to bytes.

    Inputs:
      - text: Number with optional b/kb/mb/gb suffix (case-insensitive).

    Outputs:
      - int: Size in bytes.

    Example:
      >>> parse_size("10mb")
      10485760
      >>> parse_size("512")
      512
    """
    m = _SIZE_PATTERN.match(str(text))
    if not m:
        raise ValueError(f"invalid size {text!r} (expected e.g. '10mb')")
    number, unit = m.groups()
    return int(float(number) * _SIZE_UNITS[(unit or "b").lower()])


def _format_validation_error(exc: ValidationError) -> str:
    lines = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ())) or "<root>"
        lines.append(f"  - {loc}: {err.get('msg')}")
    return "\n".join(lines)


def parse_config(data: Dict[str, Any], *, source: str = "<config>") -> WildmaskConfig:
    """Brief: Validate an already-parsed config mapping.

    Inputs:
      - data: Mapping produced by yaml.safe_load (None is treated as empty).
      - source: Name used in error messages.

    Outputs:
      - WildmaskConfig

    Raises:
      - ConfigError: When the mapping does not satisfy the schema.
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"{source}: top-level YAML value must be a mapping")
    try:
        return WildmaskConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(
            f"Invalid configuration in {source}:\n{_format_validation_error(exc)}"
        ) from exc


def load_config(config_path: str) -> WildmaskConfig:
    """Brief: Read and validate a YAML configuration file.

    Inputs:
      - config_path: Path to the YAML file ('~' is expanded).

    Outputs:
      - WildmaskConfig

    Raises:
      - ConfigError: Missing file, unreadable file, YAML syntax error or
        schema violation.
    """
    path = os.path.expanduser(config_path)
    if not os.path.exists(path):
        raise ConfigError(f"Config file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as exc:
        raise ConfigError(f"Failed to read config {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse config {path}: {exc}") from exc
    return parse_config(data, source=path)
