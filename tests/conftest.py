"""
Brief: Global pytest configuration and shared fixtures.

Inputs:
  - None

Outputs:
  - None
"""

import os
import signal
import socket
import sys
import threading

import pytest

# Ensure 'src' is on sys.path so 'wildmask' package is importable in tests
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
SRC_DIR = os.path.join(ROOT, "src")
if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)

from wildmask.models import Mapping  # noqa: E402


def _alarm_handler(signum, frame):
    """
    Brief: Signal handler that raises TimeoutError when alarm triggers.

    Inputs:
      - signum: signal number (int)
      - frame: current frame (ignored)

    Outputs:
      - None: Raises TimeoutError to fail the test
    """
    raise TimeoutError("Test exceeded 10 seconds")


# Install handler if supported on this platform
if hasattr(signal, "SIGALRM"):
    signal.signal(signal.SIGALRM, _alarm_handler)


@pytest.fixture(autouse=True)
def enforce_test_timeout():
    """
    Brief: Enforce a hard 10-second timeout for each test.

    Inputs:
      - None

    Outputs:
      - None: Cancels alarm after test
    """
    if hasattr(signal, "SIGALRM"):
        signal.alarm(10)
        try:
            yield
        finally:
            signal.alarm(0)
    else:
        # Fallback: no-op on platforms without SIGALRM
        yield


def make_mapping(host, target="127.0.0.1", port=3000, enabled=True, **kw):
    """Brief: Build a Mapping with sensible defaults for tests."""
    return Mapping(
        id=kw.pop("id", host),
        host=host,
        target=target,
        port=port,
        enabled=enabled,
        **kw,
    )


@pytest.fixture
def mappings():
    """
    Brief: Mapping set mirroring a typical developer config.

    Outputs:
      - list[Mapping]: exact 'api', wildcard '*.cdn', disabled 'disabled'.
    """
    return [
        make_mapping("api", port=3000, id="1"),
        make_mapping("*.cdn", port=8080, id="2"),
        make_mapping("disabled", port=9000, enabled=False, id="3"),
    ]


class FakeUpstream:
    """
    Brief: Minimal UDP upstream on 127.0.0.1 driven by a responder callable.

    Inputs:
      - responder: callable(query_bytes) -> reply bytes or None (stay silent)

    Outputs:
      - .port: bound ephemeral port; .queries: list of received datagrams
    """

    def __init__(self, responder):
        self.responder = responder
        self.queries = []
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self.sock.bind(("127.0.0.1", 0))
        self.sock.settimeout(0.1)
        self.port = self.sock.getsockname()[1]
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._loop, daemon=True)
        self._thread.start()

    def _loop(self):
        while not self._stop.is_set():
            try:
                data, addr = self.sock.recvfrom(4096)
            except socket.timeout:
                continue
            except OSError:
                return
            self.queries.append(data)
            reply = self.responder(data)
            if reply is not None:
                self.sock.sendto(reply, addr)

    def close(self):
        self._stop.set()
        self._thread.join(timeout=1.0)
        self.sock.close()


@pytest.fixture
def fake_upstream():
    """
    Brief: Factory fixture producing FakeUpstream instances closed at teardown.
    """
    created = []

    def _make(responder):
        up = FakeUpstream(responder)
        created.append(up)
        return up

    yield _make
    for up in created:
        up.close()


def udp_exchange(address, payload, timeout=2.0):
    """Brief: Send one datagram to address and return the reply (or None on timeout)."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        sock.settimeout(timeout)
        sock.sendto(payload, address)
        try:
            data, _ = sock.recvfrom(4096)
        except socket.timeout:
            return None
        return data
    finally:
        sock.close()
