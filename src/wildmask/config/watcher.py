from __future__ import annotations

import logging
import os
import threading
from typing import Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .config_parser import ConfigError, load_config
from .config_schema import WildmaskConfig

logger = logging.getLogger("wildmask.config.watcher")


class _ConfigFileEventHandler(FileSystemEventHandler):
    """Forwards events that touch the watched file to its ConfigWatcher."""

    def __init__(self, watcher: "ConfigWatcher") -> None:
        super().__init__()
        self._watcher = watcher

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        candidates = [event.src_path, getattr(event, "dest_path", None)]
        for raw in candidates:
            if raw and os.path.abspath(os.fsdecode(raw)) == self._watcher.path:
                self._watcher.schedule_reload()
                return


class ConfigWatcher:
    """
    Reloads the config file when it changes on disk.

    Inputs (constructor):
      - path: Config file to watch.
      - on_change: Called with the freshly validated WildmaskConfig.
      - debounce_seconds: Quiet period that coalesces bursts of events
        (editors often write a file several times in a row).

    The parent directory is watched rather than the file itself so that
    editors that save by rename are picked up. A reload that fails validation
    is logged and on_change is not called, so the running daemon keeps its
    current mappings.

    Example:
      >>> watcher = ConfigWatcher("~/.wildmask/config.yaml",
      ...                         lambda cfg: server.update_mappings(cfg.mappings))
      >>> watcher.start()
      >>> watcher.stop()
    """

    def __init__(
        self,
        path: str,
        on_change: Callable[[WildmaskConfig], None],
        debounce_seconds: float = 0.5,
    ) -> None:
        self.path = os.path.abspath(os.path.expanduser(path))
        self.on_change = on_change
        self.debounce_seconds = max(0.0, float(debounce_seconds))
        self._observer: Optional[Observer] = None
        self._timer: Optional[threading.Timer] = None
        self._timer_lock = threading.Lock()

    def start(self) -> None:
        if self._observer is not None:
            return
        observer = Observer()
        observer.daemon = True
        observer.schedule(
            _ConfigFileEventHandler(self), os.path.dirname(self.path), recursive=False
        )
        observer.start()
        self._observer = observer
        logger.info("Watching %s for changes", self.path)

    def stop(self) -> None:
        with self._timer_lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        observer, self._observer = self._observer, None
        if observer is not None:
            observer.stop()
            observer.join(timeout=5.0)

    def schedule_reload(self) -> None:
        """Arm (or re-arm) the debounce timer for a reload."""
        with self._timer_lock:
            if self._timer is not None:
                self._timer.cancel()
            timer = threading.Timer(self.debounce_seconds, self.reload)
            timer.daemon = True
            self._timer = timer
            timer.start()

    def reload(self) -> bool:
        """Brief: Load the file now and hand it to on_change.

        Inputs:
          - None

        Outputs:
          - bool: True when a valid config was delivered.
        """
        try:
            cfg = load_config(self.path)
        except ConfigError as e:
            logger.error("Ignoring config change: %s", e)
            return False
        try:
            self.on_change(cfg)
        except Exception:
            logger.exception("Config change handler failed for %s", self.path)
            return False
        logger.info("Reloaded configuration from %s", self.path)
        return True
