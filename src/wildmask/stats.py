from __future__ import annotations

import json
import logging
import threading
from typing import TYPE_CHECKING, Any, Dict

if TYPE_CHECKING:  # pragma: no cover
    from .server import DNSServer


def format_stats_json(server: "DNSServer") -> str:
    """
    Render daemon counters and cache figures as a single JSON line.

    Inputs:
        server: DNSServer to read from

    Outputs:
        str: compact JSON with sorted keys, e.g.
        {"cache": {...}, "running": true, "stats": {...}}
    """
    cache_stats = server.cache.stats()
    payload: Dict[str, Any] = {
        "running": server.is_running(),
        "stats": server.get_stats().to_dict(),
        "cache": {
            "size": cache_stats["size"],
            "hit_rate": round(float(cache_stats["hit_rate"]), 4),
        },
    }
    return json.dumps(payload, sort_keys=True, separators=(",", ":"))


class StatsReporter(threading.Thread):
    """
    Background daemon thread for periodic statistics logging.

    Inputs (constructor):
        server: DNSServer whose counters are reported
        interval_seconds: Seconds between log emissions (minimum 1)
        log_level: Logging level name ("debug", "info", "warning", "error")
        logger_name: Logger name to use (default "wildmask.stats")

    Outputs:
        StatsReporter thread instance (call start() to begin)

    Expired cache entries are swept on every tick before reporting.

    Example:
        >>> reporter = StatsReporter(server, interval_seconds=30)
        >>> reporter.start()
        >>> # logs every 30 seconds until stop() is called
    """

    def __init__(
        self,
        server: "DNSServer",
        interval_seconds: int = 60,
        log_level: str = "info",
        logger_name: str = "wildmask.stats",
    ) -> None:
        super().__init__(daemon=True, name="StatsReporter")
        self.server = server
        self.interval_seconds = max(1, int(interval_seconds))
        self.logger = logging.getLogger(logger_name)
        level = logging.getLevelName(str(log_level).upper())
        self.log_level = level if isinstance(level, int) else logging.INFO
        self._stop_event = threading.Event()

    def run(self) -> None:
        while not self._stop_event.wait(self.interval_seconds):
            self.report_once()

    def report_once(self) -> None:
        """Sweep expired cache entries and log one stats line."""
        try:
            removed = self.server.cache.cleanup()
            if removed:
                self.logger.debug("Removed %d expired cache entries", removed)
            self.logger.log(self.log_level, format_stats_json(self.server))
        except Exception as e:  # pragma: no cover
            self.logger.error("StatsReporter error: %s", e, exc_info=True)

    def stop(self, timeout: float = 5.0) -> None:
        """
        Signal reporter to stop and wait for thread to exit.

        Inputs:
            timeout: Maximum seconds to wait for thread join (default 5.0)

        Outputs:
            None
        """
        self._stop_event.set()
        if self.is_alive():
            self.join(timeout=timeout)
