"""
Brief: Tests for wildmask.daemon_manager.DaemonManager PID bookkeeping.

Inputs:
  - None

Outputs:
  - None
"""

import os
import signal

import pytest

import wildmask.daemon_manager as daemon_mod
from wildmask.daemon_manager import DaemonManager, DaemonStatus

# Far above any realistic pid_max, so os.kill(pid, 0) reports ESRCH.
DEAD_PID = 999_999_999


@pytest.fixture
def manager(tmp_path):
    return DaemonManager(str(tmp_path / "run" / "daemon.pid"))


def test_no_pid_file_means_not_running(manager):
    assert manager.get_status() == DaemonStatus(running=False)


def test_write_pid_creates_directories_and_reports_running(manager):
    manager.write_pid()
    assert os.path.exists(manager.pid_file)
    assert manager.get_status() == DaemonStatus(running=True, pid=os.getpid())


def test_stale_pid_file_removed(manager):
    manager.write_pid(DEAD_PID)
    assert manager.get_status().running is False
    assert not os.path.exists(manager.pid_file)


def test_garbage_pid_file_treated_as_not_running(manager):
    os.makedirs(os.path.dirname(manager.pid_file))
    with open(manager.pid_file, "w") as f:
        f.write("not-a-pid")
    assert manager.get_status().running is False


def test_remove_pid_is_idempotent(manager):
    manager.remove_pid()
    manager.write_pid()
    manager.remove_pid()
    manager.remove_pid()
    assert not os.path.exists(manager.pid_file)


def test_stop_when_not_running(manager):
    assert manager.stop() is False


def test_stop_signals_and_waits(manager, monkeypatch):
    """
    Brief: stop() sends SIGTERM then polls until the process disappears.

    Outputs:
      - None: Asserts SIGTERM delivered, PID file removed, True returned.
    """
    manager.write_pid(4242)
    sent = []
    alive = iter([True, True, True, False])
    monkeypatch.setattr(daemon_mod, "_pid_alive", lambda pid: next(alive))
    monkeypatch.setattr(daemon_mod.os, "kill", lambda pid, sig: sent.append((pid, sig)))
    monkeypatch.setattr(daemon_mod.time, "sleep", lambda s: None)

    assert manager.stop() is True
    assert sent == [(4242, signal.SIGTERM)]
    assert not os.path.exists(manager.pid_file)


def test_stop_times_out(manager, monkeypatch):
    manager.write_pid(4242)
    monkeypatch.setattr(daemon_mod, "_pid_alive", lambda pid: True)
    monkeypatch.setattr(daemon_mod.os, "kill", lambda pid, sig: None)
    assert manager.stop(timeout=0.2) is False
    assert os.path.exists(manager.pid_file)


def test_pid_alive_for_self_and_dead():
    assert daemon_mod._pid_alive(os.getpid()) is True
    assert daemon_mod._pid_alive(DEAD_PID) is False
