from __future__ import annotations

import dataclasses
import enum
import logging
import socketserver
import threading
from typing import Iterable, List, Optional, Tuple

from dnslib import CLASS, QTYPE, RR, A, DNSHeader, DNSRecord
from dnslib.dns import DNSError

from .cache import ResponseCache
from .constants import DEFAULT_DNS_PORT, DEFAULT_TTL, DEFAULT_UPSTREAM_TIMEOUT_MS
from .forwarder import UpstreamForwarder
from .matcher import DomainMatcher
from .models import DaemonStats, Mapping


class ServerState(enum.Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


class DNSServerError(Exception):
    """
    Brief: Base class for DNS server lifecycle errors.

    Inputs:
    - message: description

    Outputs:
    - Exception instance
    """


class AlreadyRunningError(DNSServerError):
    """Raised by start() when the server already owns a bound socket."""


class ServerStartError(DNSServerError):
    """Raised by start() when the UDP socket cannot be bound."""


def _set_response_id(wire: bytes, req_id: int) -> bytes:
    """Rewrite the DNS transaction id (first two bytes) of a wire message.

    Inputs:
      - wire: DNS message bytes.
      - req_id: Transaction id to place in the header.

    Outputs:
      - bytes: Message with the id replaced; shorter inputs are returned as-is.
    """
    if len(wire) < 2:
        return bytes(wire)
    return int(req_id & 0xFFFF).to_bytes(2, "big") + bytes(wire[2:])


class DNSUDPHandler(socketserver.BaseRequestHandler):
    """
    Handles one UDP datagram on its own thread.

    The owning DNSServer instance is reached through self.server.dns_server so
    that several servers (e.g. in tests) never share handler state.
    """

    def handle(self) -> None:
        data, sock = self.request
        self.server.dns_server.handle_datagram(data, sock, self.client_address)


class _ThreadingUDPServer(socketserver.ThreadingUDPServer):
    daemon_threads = True

    def __init__(self, server_address: Tuple[str, int], dns_server: "DNSServer"):
        self.dns_server = dns_server
        super().__init__(server_address, DNSUDPHandler)


class DNSServer:
    """Local-domain DNS daemon: mapped names are answered, the rest forwarded.

    Inputs (constructor):
        domain: Default domain handled locally (e.g. 'test').
        mappings: Ordered Mapping list; only enabled entries are matched.
        port: UDP port to listen on (0 picks an ephemeral port).
        ttl: TTL in seconds for synthesized answers and their cache entries.
        upstream_dns: Upstream resolver IPs in failover order.
        host: Listen address.
        timeout_ms: Per-upstream forward timeout in milliseconds.
        logger: Optional logging.Logger receiving server, matcher and forwarder
            records; each defaults to its own wildmask.* module logger.

    Per datagram: decode, take the first question, forward non-A queries,
    answer A queries from cache, then from mappings, then from upstream.
    Datagrams are handled concurrently, one thread each.

    Example use:
        >>> from wildmask import DNSServer, Mapping
        >>> api = Mapping(id="1", host="api", target="127.0.0.1", port=3000)
        >>> server = DNSServer("test", [api], port=0, host="127.0.0.1")
        >>> server.start()
        >>> server.is_running()
        True
        >>> server.stop()
    """

    def __init__(
        self,
        domain: str,
        mappings: Iterable[Mapping] = (),
        *,
        port: int = DEFAULT_DNS_PORT,
        ttl: int = DEFAULT_TTL,
        upstream_dns: Optional[Iterable[str]] = None,
        host: str = "0.0.0.0",
        timeout_ms: int = DEFAULT_UPSTREAM_TIMEOUT_MS,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.host = host
        self.port = int(port)
        self.ttl = int(ttl)
        self.logger = logger or logging.getLogger("wildmask.server")
        self.matcher = DomainMatcher(mappings, domain, logger=logger)
        self.cache = ResponseCache()
        self.forwarder = UpstreamForwarder(
            upstream_dns, timeout_ms=timeout_ms, logger=logger
        )

        self._stats = DaemonStats()
        self._stats_lock = threading.Lock()
        self._lifecycle_lock = threading.Lock()
        self._state = ServerState.STOPPED
        self._udp: Optional[_ThreadingUDPServer] = None
        self._thread: Optional[threading.Thread] = None

    # Lifecycle

    @property
    def state(self) -> ServerState:
        return self._state

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port) while running, configured address otherwise."""
        udp = self._udp
        if udp is not None:
            return udp.server_address[0], udp.server_address[1]
        return self.host, self.port

    def is_running(self) -> bool:
        return self._state is ServerState.RUNNING

    def start(self) -> None:
        """Bind the UDP socket and start the accept loop on a background thread.

        Inputs:
          - None
        Outputs:
          - None; returns once the socket is bound.

        Raises:
          - AlreadyRunningError: the server is not stopped.
          - ServerStartError: binding failed; the server stays stopped.
        """
        with self._lifecycle_lock:
            if self._state is not ServerState.STOPPED:
                raise AlreadyRunningError(
                    f"DNS server is already {self._state.value} on "
                    f"{self.address[0]}:{self.address[1]}"
                )
            self._state = ServerState.STARTING
            try:
                udp = _ThreadingUDPServer((self.host, self.port), self)
            except OSError as e:
                self._state = ServerState.STOPPED
                self.logger.error(
                    "Failed to bind DNS server to %s:%d: %s", self.host, self.port, e
                )
                if isinstance(e, PermissionError):
                    self.logger.error(
                        "Try a port >1024 or run with elevated privileges"
                    )
                raise ServerStartError(
                    f"cannot bind {self.host}:{self.port}: {e}"
                ) from e

            self._udp = udp
            self._thread = threading.Thread(
                target=udp.serve_forever, name="wildmask-dns-udp", daemon=True
            )
            self._state = ServerState.RUNNING
            self._thread.start()

        host, port = self.address
        self.logger.info("DNS server listening on %s:%d", host, port)

    def stop(self) -> None:
        """Stop the accept loop and close the socket. Safe to call repeatedly."""
        with self._lifecycle_lock:
            if self._state is not ServerState.RUNNING:
                return
            self._state = ServerState.STOPPING
            udp, thread = self._udp, self._thread
            try:
                udp.shutdown()
            finally:
                udp.server_close()
                if thread is not None:
                    thread.join(timeout=5.0)
                self._udp = None
                self._thread = None
                self._state = ServerState.STOPPED
        self.logger.info("DNS server stopped")

    def __enter__(self) -> "DNSServer":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    # Collaborator operations

    def update_mappings(self, mappings: Iterable[Mapping]) -> None:
        mappings = list(mappings)
        self.matcher.update_mappings(mappings)
        self.logger.info("Mappings updated (%d total)", len(mappings))

    def update_upstream_servers(self, servers: Iterable[str]) -> None:
        self.forwarder.set_upstream_servers(servers)

    def get_stats(self) -> DaemonStats:
        """Snapshot of the server counters merged with cache hit/miss counts."""
        cache_stats = self.cache.stats()
        with self._stats_lock:
            return dataclasses.replace(
                self._stats,
                cache_hits=int(cache_stats["hits"]),
                cache_misses=int(cache_stats["misses"]),
            )

    def clear_cache(self) -> None:
        self.cache.clear()
        self.logger.info("Cache cleared")

    # Datagram handling

    def _bump(self, counter: str) -> None:
        with self._stats_lock:
            setattr(self._stats, counter, getattr(self._stats, counter) + 1)

    def handle_datagram(self, data: bytes, sock, client_address) -> None:
        """Process one inbound datagram; never raises.

        Inputs:
          - data: Raw datagram.
          - sock: Socket replies are sent on.
          - client_address: (ip, port) of the requester.

        Outputs:
          - None. At most one reply is sent.
        """
        if not self.is_running():
            return
        try:
            self._handle_query(data, sock, client_address)
        except Exception as e:
            self.logger.error(
                "Error handling query from %s: %s", client_address[0], e, exc_info=True
            )
            self._bump("errors")

    def _handle_query(self, data: bytes, sock, client_address) -> None:
        try:
            request = DNSRecord.parse(data)
        except DNSError as e:
            self.logger.warning(
                "Dropping malformed query from %s: %s", client_address[0], e
            )
            self._bump("errors")
            return

        if not request.questions:
            return

        # Only the first question of a multi-question packet is answered.
        question = request.questions[0]
        qname = str(question.qname)
        qtype = QTYPE.get(question.qtype, str(question.qtype))
        self._bump("queries_total")
        self.logger.debug("Query %s %s from %s", qname, qtype, client_address[0])

        if question.qtype != QTYPE.A:
            self._bump("queries_forwarded")
            response = self.forwarder.forward(data)
            if response is not None:
                self._send(sock, response, client_address)
            return

        cached = self.cache.get(qname, "A")
        if cached is not None:
            self.logger.debug("Cache hit: %s", qname)
            # Stored bytes carry the id of the query that filled the entry.
            self._send(sock, _set_response_id(cached, request.header.id), client_address)
            return

        mapping = self.matcher.match(qname)
        if mapping is not None:
            self.logger.debug(
                "Matched %s -> %s:%d", qname, mapping.address, mapping.port
            )
            self._bump("queries_matched")
            wire = self._build_answer(request, qname, mapping).pack()
            self.cache.set(qname, "A", wire, self.ttl)
            self._send(sock, wire, client_address)
            return

        self._bump("queries_forwarded")
        response = self.forwarder.forward(data)
        if response is None:
            return
        self._send(sock, response, client_address)
        self._cache_upstream_response(response)

    def _build_answer(
        self, request: DNSRecord, qname: str, mapping: Mapping
    ) -> DNSRecord:
        """Authoritative single-A reply echoing the request id and questions."""
        header = DNSHeader(id=request.header.id, qr=1, aa=1, rd=request.header.rd)
        reply = DNSRecord(header, questions=list(request.questions))
        reply.add_answer(
            RR(
                rname=qname,
                rtype=QTYPE.A,
                rclass=CLASS.IN,
                ttl=self.ttl,
                rdata=A(mapping.address),
            )
        )
        return reply

    def _cache_upstream_response(self, response: bytes) -> None:
        """Cache an upstream reply under its own first question.

        The TTL is the smallest answer TTL (a zero TTL counts as the server
        ttl), or the server ttl when there are no answers.
        """
        try:
            parsed = DNSRecord.parse(response)
        except DNSError as e:
            self.logger.debug("Not caching unparseable upstream response: %s", e)
            return
        if not parsed.questions:
            return
        question = parsed.questions[0]
        ttls: List[int] = [rr.ttl or self.ttl for rr in parsed.rr]
        ttl = min(ttls) if ttls else self.ttl
        qname = str(question.qname)
        qtype = QTYPE.get(question.qtype, str(question.qtype))
        self.cache.set(qname, qtype, response, ttl)
        self.logger.debug("Cached upstream answer %s %s for %ds", qname, qtype, ttl)

    def _send(self, sock, wire: bytes, client_address) -> None:
        if not self.is_running():
            self.logger.debug(
                "Server stopped; dropping reply to %s", client_address[0]
            )
            return
        sock.sendto(wire, client_address)
