"""Background thread that calls a function at a fixed interval."""

from __future__ import annotations

import threading
from typing import Callable, Optional

from .logger import get_logger

logger = get_logger(__name__)


class PeriodicTask:
    """Run ``func`` every ``interval`` seconds on a daemon thread until stopped."""

    def __init__(self, name: str, interval: float, func: Callable[[], None]) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.name = name
        self.interval = interval
        self._func = func
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            logger.debug("Periodic task %s already running", self.name)
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name=f"infomirror-{self.name}", daemon=True)
        self._thread.start()
        logger.debug("Periodic task %s started (%.3fs interval)", self.name, self.interval)

    def stop(self, timeout: float = 2.0) -> None:
        self._stop_event.set()
        thread = self._thread
        if thread and thread is not threading.current_thread():
            thread.join(timeout=timeout)
        self._thread = None

    def _loop(self) -> None:
        while not self._stop_event.wait(timeout=self.interval):
            try:
                self._func()
            except Exception:
                logger.exception("Periodic task %s failed", self.name)
