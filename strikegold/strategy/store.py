"""Saved strategies: leg sets kept for later re-analysis."""

import json
import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional

import pytz

from strikegold.analysis.legs import OptionLeg
from strikegold.storage import LocalStorage, StorageBackend

logger = logging.getLogger(__name__)


class StrategyKind(Enum):
    SINGLE_CALL = "single_call"
    SINGLE_PUT = "single_put"
    BULL_CALL_SPREAD = "bull_call_spread"


@dataclass
class SavedStrategy:
    kind: StrategyKind
    symbol: str
    legs: List[OptionLeg]
    expiration: Optional[date] = None
    market_price_at_save: Optional[float] = None
    note: Optional[str] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=lambda: datetime.now(pytz.utc))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "created_at": self.created_at.isoformat(),
            "kind": self.kind.value,
            "symbol": self.symbol,
            "expiration": self.expiration.isoformat() if self.expiration else None,
            "legs": [leg.to_dict() for leg in self.legs],
            "market_price_at_save": self.market_price_at_save,
            "note": self.note,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SavedStrategy":
        return cls(
            id=data["id"],
            created_at=datetime.fromisoformat(data["created_at"]),
            kind=StrategyKind(data["kind"]),
            symbol=data["symbol"],
            expiration=(
                date.fromisoformat(data["expiration"]) if data.get("expiration") else None
            ),
            legs=[OptionLeg.from_dict(leg) for leg in data.get("legs", [])],
            market_price_at_save=data.get("market_price_at_save"),
            note=data.get("note"),
        )


class StrategyStore:
    """All saved strategies in one JSON document, in save order."""

    def __init__(self, path: str = "strategies.json", backend: StorageBackend = None):
        self.path = path
        self._backend = backend or LocalStorage()
        self._lock = threading.Lock()
        self.strategies: Dict[str, SavedStrategy] = {}
        self._load()

    # ── Write operations ────────────────────────────────────────

    def append(self, strategy: SavedStrategy):
        with self._lock:
            self.strategies[strategy.id] = strategy
            self._save()
        logger.info("Saved %s strategy %s on %s", strategy.kind.value, strategy.id, strategy.symbol)

    def remove(self, strategy_id: str):
        with self._lock:
            if self.strategies.pop(strategy_id, None) is not None:
                self._save()

    # ── Read operations ─────────────────────────────────────────

    def load(self) -> List[SavedStrategy]:
        return list(self.strategies.values())

    def get(self, strategy_id: str) -> Optional[SavedStrategy]:
        return self.strategies.get(strategy_id)

    def for_symbol(self, symbol: str) -> List[SavedStrategy]:
        symbol = symbol.strip().upper()
        return [s for s in self.strategies.values() if s.symbol.upper() == symbol]

    # ── Persistence ─────────────────────────────────────────────

    def _save(self):
        payload = [s.to_dict() for s in self.strategies.values()]
        self._backend.write(self.path, json.dumps(payload, indent=2))

    def _load(self):
        if not self._backend.exists(self.path):
            return
        try:
            records = json.loads(self._backend.read(self.path))
        except json.JSONDecodeError as e:
            logger.warning("Ignoring unreadable strategy file %s: %s", self.path, e)
            return
        for record in records:
            try:
                strategy = SavedStrategy.from_dict(record)
            except (KeyError, ValueError, TypeError) as e:
                logger.warning("Skipping corrupt strategy record: %s", e)
                continue
            self.strategies[strategy.id] = strategy
