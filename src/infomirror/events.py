"""Minimal callback registry used by the hardware and runtime components."""

from __future__ import annotations

from collections import defaultdict
from threading import RLock
from typing import Any, Callable, DefaultDict, List

from .logger import get_logger

logger = get_logger(__name__)

Listener = Callable[..., Any]


class EventEmitter:
    """Register callbacks by event name and invoke them synchronously."""

    def __init__(self) -> None:
        self._listeners: DefaultDict[str, List[Listener]] = defaultdict(list)
        self._listeners_lock = RLock()

    def on(self, event: str, callback: Listener) -> Listener:
        with self._listeners_lock:
            self._listeners[event].append(callback)
        return callback

    def off(self, event: str, callback: Listener) -> None:
        with self._listeners_lock:
            listeners = self._listeners.get(event)
            if listeners and callback in listeners:
                listeners.remove(callback)

    def listener_count(self, event: str) -> int:
        with self._listeners_lock:
            return len(self._listeners.get(event, ()))

    def remove_all_listeners(self) -> None:
        with self._listeners_lock:
            self._listeners.clear()

    def emit(self, event: str, *args: Any) -> bool:
        """Call every listener for ``event``; return True if any were registered.

        A failing listener is logged and does not prevent the remaining
        listeners from running.
        """

        with self._listeners_lock:
            listeners = list(self._listeners.get(event, ()))
        for callback in listeners:
            try:
                callback(*args)
            except Exception:  # pragma: no cover - listener bug
                logger.exception("Listener for '%s' on %s failed", event, type(self).__name__)
        return bool(listeners)
