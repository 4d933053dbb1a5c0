"""Minimal observer channel for store-changed and heartbeat events."""

import logging
import threading
from typing import Any, Callable, List

logger = logging.getLogger(__name__)


class Channel:
    """Synchronous publish/subscribe.

    Listeners run on the publisher's thread in subscription order. A
    listener that raises is logged and does not affect the others or the
    publisher.
    """

    def __init__(self, name: str = "channel"):
        self.name = name
        self._listeners: List[Callable[[Any], None]] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Callable[[Any], None]) -> Callable[[], None]:
        """Register ``callback``; returns a function that unsubscribes it."""
        with self._lock:
            self._listeners.append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return unsubscribe

    def publish(self, payload: Any = None):
        with self._lock:
            listeners = list(self._listeners)
        for callback in listeners:
            try:
                callback(payload)
            except Exception:
                logger.exception("Listener on %s failed", self.name)

    def __len__(self) -> int:
        return len(self._listeners)
