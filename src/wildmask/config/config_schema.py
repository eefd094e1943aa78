"""Typed schema for the WildMask ``config.yaml``.

The file is shared with the CLI/TUI collaborators, which write camelCase keys
(``upstreamDNS``, ``maxSize``...). Every model accepts those aliases as well as
the snake_case field names.
"""

from __future__ import annotations

import ipaddress
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from ..constants import DEFAULT_DNS_PORT, DEFAULT_TTL, DEFAULT_UPSTREAM_DNS
from ..models import Mapping

_DOMAIN_PATTERN = r"^[a-zA-Z0-9\-]+$"


class ResolverConfig(BaseModel):
    """Brief: How the daemon listens and where it forwards.

    Inputs:
      - method: dns-daemon | hosts | auto (only dns-daemon runs this server).
      - host: Listen address.
      - port: Listen port (unprivileged range).
      - fallback: Whether the OS resolver may fall back when the daemon is down.
      - upstream_dns (upstreamDNS): Upstream resolver IP literals (v4 or v6)
        in failover order.
      - timeout_ms (timeoutMs): Per-upstream forward timeout.

    Outputs:
      - ResolverConfig instance with normalized field types.
    """

    method: Literal["dns-daemon", "hosts", "auto"] = "dns-daemon"
    host: str = "0.0.0.0"
    port: int = Field(default=DEFAULT_DNS_PORT, ge=1024, le=65535)
    fallback: bool = True
    upstream_dns: List[str] = Field(
        default_factory=lambda: list(DEFAULT_UPSTREAM_DNS), alias="upstreamDNS"
    )
    timeout_ms: int = Field(default=5000, ge=100, le=60000, alias="timeoutMs")

    class Config:
        populate_by_name = True
        extra = "allow"

    @field_validator("upstream_dns")
    @classmethod
    def _check_upstream_dns(cls, value: List[str]) -> List[str]:
        # Upstreams are dialed by address; the forward path never resolves names.
        for entry in value:
            try:
                ipaddress.ip_address(entry)
            except ValueError as exc:
                raise ValueError(
                    f"upstream DNS server must be an IP address, got {entry!r}"
                ) from exc
        return value


class OptionsConfig(BaseModel):
    ttl: int = Field(default=DEFAULT_TTL, ge=1, le=86400)
    auto_start: bool = Field(default=False, alias="autoStart")
    check_updates: bool = Field(default=True, alias="checkUpdates")
    telemetry: bool = False
    stats_interval: int = Field(default=0, ge=0, alias="statsInterval")

    class Config:
        populate_by_name = True
        extra = "allow"


class LoggingConfig(BaseModel):
    """Brief: Logging destinations and verbosity.

    Inputs:
      - level: debug | info | warn | error.
      - file: Optional log file path ('~' is expanded).
      - stderr: Also log to stderr.
      - max_size (maxSize): Rotation threshold such as '10mb'.
      - max_files (maxFiles): Rotated files kept.

    Outputs:
      - LoggingConfig instance.
    """

    level: Literal["debug", "info", "warn", "error"] = "info"
    file: Optional[str] = None
    stderr: bool = True
    max_size: str = Field(default="10mb", alias="maxSize")
    max_files: int = Field(default=5, ge=1, le=100, alias="maxFiles")

    class Config:
        populate_by_name = True
        extra = "allow"


class WildmaskConfig(BaseModel):
    """Brief: Root configuration document.

    Inputs:
      - version: Config format version.
      - domain: Default domain answered locally (e.g. 'test').
      - domains: Additional domains kept for the resolver-registration
        collaborator; the daemon itself serves ``domain``.
      - resolver, mappings, options, logging: see the nested models.

    Outputs:
      - WildmaskConfig instance.

    Example:
      >>> cfg = WildmaskConfig.model_validate({"domain": "test"})
      >>> cfg.resolver.port, cfg.options.ttl
      (5353, 60)
    """

    version: str = "1.0"
    domain: str = Field(min_length=1, pattern=_DOMAIN_PATTERN)
    domains: Optional[List[str]] = None
    resolver: ResolverConfig = Field(default_factory=ResolverConfig)
    mappings: List[Mapping] = Field(default_factory=list)
    options: OptionsConfig = Field(default_factory=OptionsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    class Config:
        populate_by_name = True
        extra = "allow"
