"""Monitor heartbeat: last completed tick, persisted and broadcast."""

import logging
from datetime import datetime, timedelta
from typing import Optional

import pytz

from strikegold.storage import StorageBackend
from strikegold.trading.events import Channel

logger = logging.getLogger(__name__)

HEARTBEAT_KEY = "order_monitor_last_tick"
STALE_AFTER_SECONDS = 180


class Heartbeat:
    """Timestamp proof-of-life for the order monitor."""

    def __init__(self, backend: StorageBackend, stale_after_seconds: int = STALE_AFTER_SECONDS):
        self._backend = backend
        self.stale_after = timedelta(seconds=stale_after_seconds)
        self.changes = Channel("heartbeat")

    def beat(self, ts: datetime):
        """Persist ``ts`` then notify listeners with it."""
        self._backend.write(HEARTBEAT_KEY, ts.isoformat())
        self.changes.publish(ts)

    def last(self) -> Optional[datetime]:
        if not self._backend.exists(HEARTBEAT_KEY):
            return None
        raw = self._backend.read(HEARTBEAT_KEY).strip()
        try:
            return datetime.fromisoformat(raw)
        except ValueError:
            logger.warning("Unreadable heartbeat value %r", raw)
            return None

    def is_stale(self, now: Optional[datetime] = None) -> bool:
        """True if no heartbeat exists or the last one is older than the threshold."""
        last = self.last()
        if last is None:
            return True
        now = now or datetime.now(pytz.utc)
        if last.tzinfo is None:
            last = pytz.utc.localize(last)
        if now.tzinfo is None:
            now = pytz.utc.localize(now)
        return now - last > self.stale_after
