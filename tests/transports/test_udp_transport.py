"""
Brief: Unit tests for the UDP upstream transport using local UDP stubs.

Inputs:
  - None

Outputs:
  - None
"""

import socket

import pytest

import wildmask.transports.udp as udp_mod
from wildmask.transports.udp import UDPError, udp_query


def test_udp_query_roundtrip(fake_upstream):
    up = fake_upstream(lambda q: q[::-1])
    q = b"\x12\x34hello"
    resp = udp_query("127.0.0.1", up.port, q, timeout_ms=1000)
    assert resp == q[::-1]
    assert up.queries == [q]


def test_udp_query_timeout_raises(fake_upstream):
    up = fake_upstream(lambda q: None)
    with pytest.raises(UDPError):
        udp_query("127.0.0.1", up.port, b"\x12\x34", timeout_ms=50)


def test_udp_query_socket_error_raises(monkeypatch):
    """
    Brief: OSError from the socket layer is wrapped as UDPError.
    """

    def _boom(self, *a, **kw):
        raise OSError("network is unreachable")

    monkeypatch.setattr(socket.socket, "sendto", _boom)
    with pytest.raises(UDPError) as exc_info:
        udp_query("192.0.2.1", 53, b"\x00\x01", timeout_ms=10)
    assert "unreachable" in str(exc_info.value)


class _RecordingSocket:
    """Brief: socket.socket stand-in that records the address family used."""

    families = []

    def __init__(self, family, kind):
        self.families.append(family)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def settimeout(self, timeout):
        pass

    def sendto(self, data, addr):
        self.addr = addr

    def recvfrom(self, size):
        return b"reply", self.addr


@pytest.mark.parametrize(
    "host,family",
    [("192.0.2.1", socket.AF_INET), ("2001:db8::1", socket.AF_INET6)],
)
def test_udp_query_picks_family_from_address(monkeypatch, host, family):
    _RecordingSocket.families = []
    monkeypatch.setattr(udp_mod.socket, "socket", _RecordingSocket)
    assert udp_query(host, 53, b"\x00\x01") == b"reply"
    assert _RecordingSocket.families == [family]
