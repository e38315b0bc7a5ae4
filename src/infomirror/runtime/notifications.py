"""Notification fan-out between the service and the dashboard."""

from __future__ import annotations

import itertools
import threading
from collections import deque
from datetime import datetime, timezone
from typing import Any, Callable, Deque, Dict, List, Optional

from ..logger import get_logger

logger = get_logger(__name__)

Subscriber = Callable[[Dict[str, Any]], None]


class NotificationBus:
    """Keep a bounded history of notifications and push them to subscribers."""

    def __init__(self, history: int = 200) -> None:
        self._history: Deque[Dict[str, Any]] = deque(maxlen=history)
        self._subscribers: List[Subscriber] = []
        self._sequence = itertools.count(1)
        self._lock = threading.Lock()

    def subscribe(self, subscriber: Subscriber) -> Subscriber:
        with self._lock:
            self._subscribers.append(subscriber)
        return subscriber

    def unsubscribe(self, subscriber: Subscriber) -> None:
        with self._lock:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

    def publish(self, name: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        with self._lock:
            notification = {
                "sequence": next(self._sequence),
                "name": name,
                "payload": dict(payload or {}),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
            self._history.append(notification)
            subscribers = list(self._subscribers)
        logger.debug("Notification %s: %s", name, notification["payload"])
        for subscriber in subscribers:
            try:
                subscriber(notification)
            except Exception:  # pragma: no cover - subscriber bug
                logger.exception("Notification subscriber failed for %s", name)
        return notification

    def recent(self, since: Optional[int] = None, name: Optional[str] = None) -> List[Dict[str, Any]]:
        with self._lock:
            items = list(self._history)
        if since is not None:
            items = [item for item in items if item["sequence"] > since]
        if name is not None:
            items = [item for item in items if item["name"] == name]
        return items
