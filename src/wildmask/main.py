from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from typing import List, Optional

from .config.config_parser import ConfigError, load_config
from .config.config_schema import WildmaskConfig
from .config.logging_config import init_logging
from .config.watcher import ConfigWatcher
from .constants import CONFIG_FILE, DAEMON_PID_FILE
from .daemon_manager import DaemonManager
from .server import DNSServer, ServerStartError
from .stats import StatsReporter, format_stats_json


def build_server(cfg: WildmaskConfig, port: Optional[int] = None) -> DNSServer:
    """
    Construct a DNSServer from a validated configuration.

    Inputs:
      - cfg: WildmaskConfig
      - port: Optional listen port overriding cfg.resolver.port

    Outputs:
      - DNSServer (not started)
    """
    return DNSServer(
        cfg.domain,
        cfg.mappings,
        port=cfg.resolver.port if port is None else port,
        ttl=cfg.options.ttl,
        upstream_dns=cfg.resolver.upstream_dns,
        host=cfg.resolver.host,
        timeout_ms=cfg.resolver.timeout_ms,
    )


def _install_signal_handlers(
    shutdown_event: threading.Event,
    server: DNSServer,
    watcher: ConfigWatcher,
    log: logging.Logger,
) -> None:
    def _request_shutdown(signum, _frame):
        log.info("Received %s, shutting down", signal.Signals(signum).name)
        shutdown_event.set()

    def _clear_cache(_signum, _frame):
        server.clear_cache()

    def _reload(_signum, _frame):
        # Reload off the signal frame; it touches locks the main thread may hold.
        threading.Thread(target=watcher.reload, daemon=True).start()

    handlers = [
        ("SIGTERM", _request_shutdown),
        ("SIGINT", _request_shutdown),
        ("SIGHUP", _request_shutdown),
        ("SIGUSR1", _clear_cache),
        ("SIGUSR2", _reload),
    ]
    for name, handler in handlers:
        try:
            signal.signal(getattr(signal, name), handler)
        except (AttributeError, ValueError, OSError):
            log.debug("Could not install %s handler here", name)


def run(
    cfg: WildmaskConfig,
    config_path: str,
    manager: DaemonManager,
    *,
    port: Optional[int] = None,
    shutdown_event: Optional[threading.Event] = None,
) -> int:
    """
    Run the DNS daemon in the foreground until a shutdown is requested.

    Inputs:
      - cfg: Validated configuration.
      - config_path: File watched for live mapping/upstream changes.
      - manager: DaemonManager owning the PID file.
      - port: Optional listen port override.
      - shutdown_event: Event that ends the run loop when set; created
        internally (and set by SIGTERM/SIGINT/SIGHUP) when omitted.

    Outputs:
      - int: process exit code (0 on clean shutdown).

    Signals: SIGUSR1 clears the response cache, SIGUSR2 reloads the config.
    """
    log = logging.getLogger("wildmask.main")
    shutdown_event = shutdown_event or threading.Event()

    status = manager.get_status()
    if status.running:
        log.error("Daemon is already running (PID: %s)", status.pid)
        return 1

    server = build_server(cfg, port)
    try:
        server.start()
    except ServerStartError as e:
        log.error("Failed to start daemon: %s", e)
        return 1

    manager.write_pid()
    log.info("Domain: *.%s", cfg.domain)
    active = server.matcher.get_all_mappings()
    log.info("Active mappings: %d", len(active))
    for mapping in active:
        log.info(
            "  %s -> %s:%d (%s)",
            mapping.fqdn(cfg.domain),
            mapping.address,
            mapping.port,
            mapping.protocol,
        )

    def _apply_config(new_cfg: WildmaskConfig) -> None:
        if new_cfg.domain != cfg.domain:
            log.warning(
                "Domain changed from %s to %s; restart the daemon to apply it",
                cfg.domain,
                new_cfg.domain,
            )
        server.update_mappings(new_cfg.mappings)
        server.update_upstream_servers(new_cfg.resolver.upstream_dns)

    watcher = ConfigWatcher(config_path, _apply_config)
    reporter: Optional[StatsReporter] = None
    try:
        try:
            watcher.start()
        except OSError as e:
            log.warning("Config watching disabled: %s", e)

        if cfg.options.stats_interval > 0:
            reporter = StatsReporter(server, cfg.options.stats_interval)
            reporter.start()

        _install_signal_handlers(shutdown_event, server, watcher, log)
        log.info("Startup completed")

        while not shutdown_event.wait(1.0):
            if not server.is_running():
                log.error("DNS server stopped unexpectedly")
                return 1
    except KeyboardInterrupt:
        log.info("Received interrupt, shutting down")
    finally:
        watcher.stop()
        if reporter is not None:
            reporter.stop()
        server.stop()
        manager.remove_pid()
        log.info("Final stats: %s", format_stats_json(server))
    return 0


def main(argv: List[str] | None = None) -> int:
    """
    Main entry point for the wildmask-dns command.

    Args:
        argv: Command-line arguments.

    Returns:
        An exit code.

    Example use:
        CLI:
            wildmask-dns --config ~/.wildmask/config.yaml run
            wildmask-dns status
            wildmask-dns stop
    """
    parser = argparse.ArgumentParser(description="WildMask local-domain DNS daemon")
    parser.add_argument("--config", default=CONFIG_FILE, help="Path to YAML config")
    parser.add_argument("--pid-file", default=DAEMON_PID_FILE, help="PID file path")
    parser.add_argument(
        "--port", type=int, default=None, help="Override resolver.port from config"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )
    parser.add_argument(
        "command",
        nargs="?",
        choices=("run", "status", "stop"),
        default="run",
        help="run the daemon (default), show its status, or stop it",
    )
    args = parser.parse_args(argv)
    manager = DaemonManager(args.pid_file)

    if args.command == "status":
        status = manager.get_status()
        if status.running:
            print(f"running (PID: {status.pid})")
            return 0
        print("not running")
        return 3

    if args.command == "stop":
        if manager.stop():
            print("daemon stopped")
            return 0
        print("daemon is not running")
        return 1

    try:
        cfg = load_config(args.config)
    except ConfigError as exc:
        print(str(exc), file=sys.stderr)
        return 1

    init_logging(cfg.logging, verbose=args.verbose)
    logging.getLogger("wildmask.main").info("Loaded config from %s", args.config)
    return run(cfg, args.config, manager, port=args.port)


if __name__ == "__main__":
    raise SystemExit(main())  # pragma: no cover
