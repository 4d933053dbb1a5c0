"""Daily JSON log for order monitor activity."""

import json
import time
from datetime import date, datetime
from typing import Callable, Optional

import pytz

from strikegold.storage import LocalStorage, StorageBackend
from strikegold.trading.decision import MARKET_TZ, market_day
from strikegold.trading.models import Decision, SavedOrder


class DailyLog:
    """Single-file daily JSON log.

    Accumulates entries in memory and only writes to the storage backend
    when flush() is called, once per tick. This keeps GCS under its
    1 write/sec/object limit.

    Days roll over in the market timezone, the same calendar that ends day
    orders.
    """

    def __init__(
        self,
        log_dir: str = "logs",
        backend: StorageBackend = None,
        tz=MARKET_TZ,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.log_dir = log_dir
        self._backend = backend or LocalStorage()
        self.tz = tz
        self._clock = clock or (lambda: datetime.now(pytz.utc))
        self._data = None
        self._current_date = None
        self._dirty = False

    def _today(self) -> date:
        return market_day(self._clock(), self.tz)

    @property
    def today_path(self) -> str:
        return self._path_for(self._today())

    def _path_for(self, day: date) -> str:
        return f"{self.log_dir}/{day.isoformat()}.json"

    def _ensure_loaded(self):
        """Load or initialize today's log."""
        today = self._today()
        if self._current_date == today and self._data is not None:
            return

        path = self._path_for(today)
        if self._backend.exists(path):
            self._data = json.loads(self._backend.read(path))
        else:
            self._data = {
                "date": today.isoformat(),
                "config_snapshot": {},
                "ticks": [],
                "transitions": [],
                "placements": [],
            }
        self._current_date = today

    def _save(self):
        """Write current data to storage with retry on rate-limit errors."""
        max_retries = 3
        for attempt in range(max_retries):
            try:
                path = self._path_for(self._current_date)
                self._backend.write(path, json.dumps(self._data, indent=2))
                self._dirty = False
                return
            except Exception as e:
                if "429" in str(e) and attempt < max_retries - 1:
                    time.sleep(2 ** attempt)
                else:
                    raise

    def flush(self):
        """Flush accumulated log data to storage. Call at tick boundaries."""
        if self._dirty and self._data is not None:
            self._save()

    def log_config(self, config):
        """Snapshot config at start of run."""
        self._ensure_loaded()
        self._data["config_snapshot"] = {
            "poll_interval_seconds": config.poll_interval_seconds,
            "stale_after_seconds": config.stale_after_seconds,
            "strike_tolerance": config.strike_tolerance,
            "market_timezone": config.market_timezone,
            "expiry_cutoff": config.expiry_cutoff.isoformat(),
            "quote_provider": config.quote_provider,
            "paper_trading": config.paper_trading,
            "storage_backend": config.storage_backend,
        }
        self._dirty = True

    def log_tick(self, tick: int, summary: dict):
        """Append a tick summary."""
        self._ensure_loaded()
        self._data["ticks"].append({
            "tick": tick,
            "timestamp": summary.get("timestamp", self._clock().isoformat()),
            "working": summary.get("working", 0),
            "filled": summary.get("filled", 0),
            "canceled": summary.get("canceled", 0),
            "deferred": summary.get("deferred", 0),
            "errors": summary.get("errors", []),
        })
        self._dirty = True

    def log_transition(self, order: SavedOrder, decision: Decision,
                       timestamp: Optional[datetime] = None):
        """Record a fill or cancel applied by the monitor."""
        self._ensure_loaded()
        self._data["transitions"].append({
            "timestamp": (timestamp or self._clock()).isoformat(),
            "order_id": order.id,
            "symbol": order.symbol,
            "contract": _describe(order),
            "side": order.side.value,
            "quantity": order.quantity,
            "limit": order.limit,
            "outcome": decision.kind.value,
            "fill_price": decision.fill_price,
            "reason": decision.cancel_reason.value if decision.cancel_reason else None,
            "details": decision.details,
        })
        self._dirty = True

    def log_placement(self, order: SavedOrder, message: str):
        """Record a paper order placement and its immediate outcome."""
        self._ensure_loaded()
        self._data["placements"].append({
            "timestamp": order.placed_at.isoformat(),
            "order_id": order.id,
            "contract": _describe(order),
            "side": order.side.value,
            "quantity": order.quantity,
            "limit": order.limit,
            "status": order.status.value,
            "fill_price": order.fill_price,
            "message": message,
        })
        self._dirty = True


def _describe(order: SavedOrder) -> str:
    exp = order.expiration.isoformat() if order.expiration else "?"
    return f"{order.symbol} {exp} {order.strike:g}{order.right.value[0].upper()}"
