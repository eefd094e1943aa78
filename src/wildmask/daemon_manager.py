from __future__ import annotations

import errno
import logging
import os
import signal
import time
from dataclasses import dataclass
from typing import Optional

from .constants import DAEMON_PID_FILE

logger = logging.getLogger("wildmask.daemon")


@dataclass(frozen=True)
class DaemonStatus:
    running: bool
    pid: Optional[int] = None


def _pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except OSError as e:
        # EPERM means the process exists but belongs to someone else.
        return e.errno == errno.EPERM
    return True


class DaemonManager:
    """
    PID-file bookkeeping for a daemon running in another process.

    Inputs (constructor):
      - pid_file: Path of the PID file (default ~/.wildmask/daemon.pid).

    Example:
      >>> mgr = DaemonManager("/tmp/wildmask.pid")
      >>> mgr.get_status().running
      False
    """

    def __init__(self, pid_file: str = DAEMON_PID_FILE) -> None:
        self.pid_file = os.path.expanduser(pid_file)

    def _read_pid(self) -> Optional[int]:
        try:
            with open(self.pid_file, "r", encoding="utf-8") as f:
                return int(f.read().strip())
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.warning("Unreadable PID file %s: %s", self.pid_file, e)
            return None

    def get_status(self) -> DaemonStatus:
        """Brief: Report whether the recorded daemon process is alive.

        Inputs:
          - None

        Outputs:
          - DaemonStatus; a PID file naming a dead process is removed.
        """
        pid = self._read_pid()
        if pid is None:
            return DaemonStatus(running=False)
        if _pid_alive(pid):
            return DaemonStatus(running=True, pid=pid)
        logger.info("Removing stale PID file %s (pid %d)", self.pid_file, pid)
        self.remove_pid()
        return DaemonStatus(running=False)

    def write_pid(self, pid: Optional[int] = None) -> None:
        os.makedirs(os.path.dirname(os.path.abspath(self.pid_file)), exist_ok=True)
        with open(self.pid_file, "w", encoding="utf-8") as f:
            f.write(str(pid if pid is not None else os.getpid()))

    def remove_pid(self) -> None:
        try:
            os.unlink(self.pid_file)
        except FileNotFoundError:
            pass

    def stop(self, timeout: float = 5.0) -> bool:
        """Brief: Send SIGTERM to the recorded daemon and wait for it to exit.

        Inputs:
          - timeout: Seconds to wait for the process to disappear.

        Outputs:
          - bool: True when the daemon was running and has exited.
        """
        status = self.get_status()
        if not status.running or status.pid is None:
            return False
        try:
            os.kill(status.pid, signal.SIGTERM)
        except ProcessLookupError:
            self.remove_pid()
            return True
        except PermissionError as e:
            logger.error("Cannot signal daemon pid %d: %s", status.pid, e)
            return False

        deadline = time.monotonic() + timeout
        while _pid_alive(status.pid):
            if time.monotonic() >= deadline:
                logger.error(
                    "Timeout waiting for daemon pid %d to stop", status.pid
                )
                return False
            time.sleep(0.1)
        self.remove_pid()
        return True
