"""WildMask local DNS daemon package"""

from .cache import ResponseCache
from .forwarder import UpstreamForwarder
from .matcher import DomainMatcher
from .models import DaemonStats, HealthCheck, Mapping
from .server import (
    AlreadyRunningError,
    DNSServer,
    DNSServerError,
    ServerStartError,
    ServerState,
)

__all__ = [
    "AlreadyRunningError",
    "DNSServer",
    "DNSServerError",
    "DaemonStats",
    "DomainMatcher",
    "HealthCheck",
    "Mapping",
    "ResponseCache",
    "ServerStartError",
    "ServerState",
    "UpstreamForwarder",
]
