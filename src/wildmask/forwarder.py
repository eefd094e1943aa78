from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from .constants import DEFAULT_UPSTREAM_DNS, DEFAULT_UPSTREAM_TIMEOUT_MS
from .transports import udp as udp_transport
from .transports.udp import UDPError


class UpstreamForwarder:
    """
    Relays raw DNS queries to an ordered list of upstream resolvers.

    Inputs (constructor):
      - upstream_servers: Resolver IPs tried strictly in order
        (default 8.8.8.8, 1.1.1.1).
      - timeout_ms: Per-attempt receive timeout in milliseconds.
      - port: Upstream UDP port (53 for real resolvers).
      - logger: Optional logging.Logger (default "wildmask.forwarder").

    Each server gets exactly one attempt per forward() call. An error or a
    timeout moves on to the next server; the first datagram received wins.

    Example:
      >>> fwd = UpstreamForwarder(["9.9.9.9"], timeout_ms=2000)
      >>> # reply = fwd.forward(query_wire)  # bytes, or None if all failed
    """

    def __init__(
        self,
        upstream_servers: Optional[Iterable[str]] = None,
        timeout_ms: int = DEFAULT_UPSTREAM_TIMEOUT_MS,
        port: int = 53,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if upstream_servers is None:
            upstream_servers = DEFAULT_UPSTREAM_DNS
        self._upstream_servers: List[str] = list(upstream_servers)
        self.timeout_ms = int(timeout_ms)
        self.port = int(port)
        self.logger = logger or logging.getLogger("wildmask.forwarder")

    @property
    def upstream_servers(self) -> List[str]:
        return list(self._upstream_servers)

    def set_upstream_servers(self, servers: Iterable[str]) -> None:
        """Replace the server list used by subsequent forward() calls."""
        self._upstream_servers = list(servers)
        self.logger.info(
            "Upstream servers set to %s", ", ".join(self._upstream_servers)
        )

    def forward(self, raw_query: bytes) -> Optional[bytes]:
        """
        Forward a query with sequential failover.

        Inputs:
          - raw_query: Wire-format query, sent unmodified.

        Outputs:
          - bytes: Raw response from the first server that answered.
          - None: Every server errored or timed out. Never raises for
            transport failures.
        """
        servers = self._upstream_servers
        for server in servers:
            try:
                response = udp_transport.udp_query(
                    server, self.port, raw_query, timeout_ms=self.timeout_ms
                )
            except UDPError as e:
                self.logger.debug("Upstream %s failed: %s", server, e)
                continue
            self.logger.debug("Upstream %s answered (%d bytes)", server, len(response))
            return response

        self.logger.warning(
            "No upstream answered (tried %s)", ", ".join(servers) or "none"
        )
        return None
