import socket

# Large enough for EDNS(0) payloads advertised by common stub resolvers.
MAX_UDP_RESPONSE = 4096


class UDPError(Exception):
    """
    Brief: DNS-over-UDP transport error (socket failure or timeout).

    Inputs:
    - message: description

    Outputs:
    - Exception instance
    """

    pass


def udp_query(
    host: str,
    port: int,
    query: bytes,
    *,
    timeout_ms: int = 5000,
) -> bytes:
    """
    Brief: Perform a single UDP DNS exchange on a fresh socket.

    Inputs:
    - host: upstream resolver IP (IPv4 or IPv6 literal)
    - port: upstream UDP port
    - query: wire-format DNS query bytes, sent unmodified
    - timeout_ms: receive timeout in milliseconds

    Outputs:
    - bytes: first datagram received back, unmodified

    Raises:
    - UDPError: on any socket error, including the receive timeout

    Example:
        >>> try:
        ...     udp_query('127.0.0.1', 9, b'\x00\x01', timeout_ms=10)
        ... except UDPError:
        ...     pass
    """
    try:
        family = socket.AF_INET6 if ":" in host else socket.AF_INET
        with socket.socket(family, socket.SOCK_DGRAM) as s:
            s.settimeout(timeout_ms / 1000.0)
            s.sendto(query, (host, int(port)))
            data, _ = s.recvfrom(MAX_UDP_RESPONSE)
            return data
    except OSError as e:
        raise UDPError(f"UDP error talking to {host}:{port}: {e}") from e
