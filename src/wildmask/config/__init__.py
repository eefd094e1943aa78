"""Configuration schema, loading, logging setup and live reload."""

from .config_parser import ConfigError, load_config, parse_config, parse_size
from .config_schema import LoggingConfig, OptionsConfig, ResolverConfig, WildmaskConfig

__all__ = [
    "ConfigError",
    "LoggingConfig",
    "OptionsConfig",
    "ResolverConfig",
    "WildmaskConfig",
    "load_config",
    "parse_config",
    "parse_size",
]
