from __future__ import annotations

import ipaddress
from dataclasses import asdict, dataclass
from typing import Dict, Literal, Optional

from pydantic import BaseModel, Field, field_validator


class HealthCheck(BaseModel):
    """Brief: Optional reachability probe settings attached to a mapping.

    Inputs:
      - enabled: Whether the probe runs at all.
      - path: HTTP path to request (http/https mappings only).
      - interval: Seconds between probes.
      - timeout: Seconds before a probe is considered failed.

    Outputs:
      - HealthCheck instance. The DNS daemon only carries this through; the
        probes themselves are run by an external collaborator.
    """

    enabled: bool = True
    path: Optional[str] = None
    interval: int = Field(default=30, ge=5, le=3600)
    timeout: int = Field(default=5, ge=1, le=60)

    class Config:
        frozen = True


class Mapping(BaseModel):
    """Brief: Rule binding a hostname pattern to a local network endpoint.

    Inputs:
      - id: Stable identifier assigned by the config owner.
      - host: Host label(s) below the domain; may contain '*' wildcards
        (e.g. 'api', '*.cdn').
      - domain: Optional per-mapping domain override.
      - target: IP literal or the string 'localhost'.
      - port: Service port on the target.
      - protocol: http | https | tcp.
      - enabled: Disabled mappings never take part in matching.
      - health: Optional HealthCheck settings.
      - description: Free-form note.

    Outputs:
      - Immutable Mapping instance.

    Example:
      >>> m = Mapping(id="1", host="api", target="localhost", port=3000)
      >>> m.address
      '127.0.0.1'
      >>> m.fqdn("test")
      'api.test'
    """

    id: str
    host: str = Field(min_length=1, pattern=r"^[a-zA-Z0-9\-\*\.]+$")
    domain: Optional[str] = None
    target: str
    port: int = Field(ge=1, le=65535)
    protocol: Literal["http", "https", "tcp"] = "http"
    enabled: bool = True
    health: Optional[HealthCheck] = None
    description: Optional[str] = None

    class Config:
        frozen = True
        extra = "ignore"

    @field_validator("target")
    @classmethod
    def _check_target(cls, value: str) -> str:
        if value == "localhost":
            return value
        try:
            ipaddress.ip_address(value)
        except ValueError as exc:
            raise ValueError(
                f"target must be an IP address or 'localhost', got {value!r}"
            ) from exc
        return value

    @property
    def is_wildcard(self) -> bool:
        return "*" in self.host

    @property
    def address(self) -> str:
        """Target address with 'localhost' normalized to 127.0.0.1."""
        return "127.0.0.1" if self.target == "localhost" else self.target

    def fqdn(self, default_domain: str) -> str:
        """Brief: Fully qualified name for this mapping.

        Inputs:
          - default_domain: Domain used when the mapping has no override.

        Outputs:
          - str: '<host>.<domain override or default_domain>' without trailing dot.
        """
        return f"{self.host}.{self.domain or default_domain}"


@dataclass
class DaemonStats:
    """Monotonic per-server counters. Owned and mutated only by DNSServer."""

    queries_total: int = 0
    queries_matched: int = 0
    queries_forwarded: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    errors: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)
