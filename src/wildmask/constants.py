"""Filesystem locations and daemon defaults shared by the CLI and config layer."""

import os

CONFIG_DIR = os.path.join(os.path.expanduser("~"), ".wildmask")
CONFIG_FILE = os.path.join(CONFIG_DIR, "config.yaml")
DAEMON_PID_FILE = os.path.join(CONFIG_DIR, "daemon.pid")

DEFAULT_DNS_PORT = 5353
DEFAULT_UPSTREAM_DNS = ("8.8.8.8", "1.1.1.1")
DEFAULT_TTL = 60
DEFAULT_UPSTREAM_TIMEOUT_MS = 5000
