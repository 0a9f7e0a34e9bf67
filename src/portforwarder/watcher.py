"""Configuration file watcher.

Watches the directory holding the configuration file, so that editors which
replace the file instead of writing it in place are noticed too. Bursts of
events are collapsed into one callback.
"""

import os
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .common.logging import get_logger

logger = get_logger(__name__)

# Seconds to wait for more events before reloading
DEBOUNCE_INTERVAL = 0.5


class ConfigFileEventHandler(FileSystemEventHandler):
    """Forwards events that touch the configuration file."""

    def __init__(self, watcher: "ConfigWatcher") -> None:
        super().__init__()
        self.watcher = watcher

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return

        paths = [event.src_path, getattr(event, "dest_path", "")]
        if any(self.watcher.matches(path) for path in paths if path):
            self.watcher.notify()


class ConfigWatcher:
    """Calls ``callback`` after the configuration file changed."""

    def __init__(
        self,
        path: str | Path,
        callback: Callable[[], Any],
        debounce: float = DEBOUNCE_INTERVAL,
    ) -> None:
        self.path = Path(path).resolve()
        self.callback = callback
        self.debounce = debounce
        self.observer: Any = None
        self._timer: threading.Timer | None = None
        self._lock = threading.Lock()

    def matches(self, path: str | bytes) -> bool:
        """True if an event path refers to the watched file."""
        return Path(os.fsdecode(path)).resolve() == self.path

    def notify(self) -> None:
        """Schedule a callback, postponing any pending one."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.debounce, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def _fire(self) -> None:
        with self._lock:
            self._timer = None
        logger.info("Configuration file changed", path=str(self.path))
        try:
            self.callback()
        except Exception:
            logger.exception("Error while reloading configuration")

    def start(self) -> None:
        if self.observer is not None:
            return

        self.observer = Observer()
        self.observer.schedule(
            ConfigFileEventHandler(self), str(self.path.parent), recursive=False
        )
        self.observer.daemon = True
        self.observer.start()
        logger.info("Watching configuration file", path=str(self.path))

    def stop(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

        if self.observer is not None:
            self.observer.stop()
            self.observer.join(timeout=5)
            self.observer = None
            logger.info("Stopped watching configuration file")
