"""User-entered market data, persisted through the storage backend.

Lets the rest of the system run without any network data source: prices
and option quotes are typed in (or seeded by scripts) and served back
through the regular ``QuoteProvider`` interface.
"""

import json
import logging
import threading
from datetime import date
from typing import Dict, List, Optional

from strikegold.data.models import (
    STRIKE_TOLERANCE,
    OptionChainData,
    OptionContract,
    OptionType,
    QuoteError,
    QuoteErrorKind,
)
from strikegold.data.quotes import normalize_symbol
from strikegold.storage import StorageBackend

logger = logging.getLogger(__name__)


class ManualMarketDataStore:
    """Underlying prices and per-expiration chains keyed by symbol.

    Layout: ``{"underlyings": {SYM: price},
    "chains": {SYM: {"YYYY-MM-DD": {"calls": [...], "puts": [...]}}}}``
    """

    KEY = "manual_market_data.json"

    def __init__(self, backend: StorageBackend):
        self._backend = backend
        self._lock = threading.Lock()
        self.underlyings: Dict[str, float] = {}
        self.chains: Dict[str, Dict[str, Dict[str, List[dict]]]] = {}
        self._load()

    # ── Underlyings ─────────────────────────────────────────────

    def set_underlying(self, symbol: str, price: float):
        with self._lock:
            self.underlyings[normalize_symbol(symbol)] = float(price)
            self._save()

    def get_underlying(self, symbol: str) -> Optional[float]:
        with self._lock:
            return self.underlyings.get(normalize_symbol(symbol))

    # ── Chains ──────────────────────────────────────────────────

    def set_chain(
        self,
        symbol: str,
        expiration: date,
        contracts: List[OptionContract],
    ):
        """Replace the whole chain for one expiration."""
        stored = {"calls": [], "puts": []}
        for c in sorted(contracts, key=lambda c: c.strike):
            stored["calls" if c.kind is OptionType.CALL else "puts"].append(_to_record(c))
        with self._lock:
            self.chains.setdefault(normalize_symbol(symbol), {})[expiration.isoformat()] = stored
            self._save()

    def upsert_contract(self, symbol: str, expiration: date, contract: OptionContract):
        """Insert or replace a single contract, matched by right and strike."""
        side = "calls" if contract.kind is OptionType.CALL else "puts"
        with self._lock:
            by_date = self.chains.setdefault(normalize_symbol(symbol), {})
            chain = by_date.setdefault(expiration.isoformat(), {"calls": [], "puts": []})
            rows = [
                r for r in chain[side]
                if abs(r["strike"] - contract.strike) >= STRIKE_TOLERANCE
            ]
            rows.append(_to_record(contract))
            chain[side] = sorted(rows, key=lambda r: r["strike"])
            self._save()

    # Readers copy out under the lock; the monitor calls them from a worker thread.

    def get_chain(self, symbol: str, expiration: date) -> Optional[List[OptionContract]]:
        with self._lock:
            stored = self.chains.get(normalize_symbol(symbol), {}).get(expiration.isoformat())
            if stored is None:
                return None
            calls = list(stored.get("calls", []))
            puts = list(stored.get("puts", []))
        return (
            [_from_record(r, OptionType.CALL) for r in calls]
            + [_from_record(r, OptionType.PUT) for r in puts]
        )

    def get_expirations(self, symbol: str) -> List[date]:
        with self._lock:
            keys = list(self.chains.get(normalize_symbol(symbol), {}))
        return sorted(date.fromisoformat(k) for k in keys)

    def clear_all(self):
        with self._lock:
            self.underlyings = {}
            self.chains = {}
            self._save()

    # ── Persistence ─────────────────────────────────────────────

    def _save(self):
        payload = {"underlyings": self.underlyings, "chains": self.chains}
        self._backend.write(self.KEY, json.dumps(payload, indent=2))

    def _load(self):
        if not self._backend.exists(self.KEY):
            return
        try:
            payload = json.loads(self._backend.read(self.KEY))
        except json.JSONDecodeError as e:
            logger.warning("Ignoring unreadable manual market data: %s", e)
            return
        self.underlyings = payload.get("underlyings", {})
        self.chains = payload.get("chains", {})


def _to_record(contract: OptionContract) -> dict:
    return {
        "strike": contract.strike,
        "bid": contract.bid,
        "ask": contract.ask,
        "last": contract.last,
    }


def _from_record(record: dict, kind: OptionType) -> OptionContract:
    return OptionContract(
        kind=kind,
        strike=float(record["strike"]),
        bid=record.get("bid"),
        ask=record.get("ask"),
        last=record.get("last"),
    )


class ManualQuoteProvider:
    """Serves the manual store through the quote provider interface."""

    def __init__(self, store: ManualMarketDataStore):
        self.store = store

    def fetch_delayed_price(self, symbol: str) -> float:
        price = self.store.get_underlying(symbol)
        if price is None:
            raise QuoteError(QuoteErrorKind.NOT_FOUND, f"No manual price for {symbol}")
        return price

    def fetch_option_chain(
        self, symbol: str, expiration: Optional[date] = None
    ) -> OptionChainData:
        expirations = self.store.get_expirations(symbol)
        target = expiration or (expirations[0] if expirations else None)
        if target is None:
            return OptionChainData()

        contracts = self.store.get_chain(symbol, target)
        if contracts is None:
            # Requested expiration not entered: empty chain, never a different expiry.
            return OptionChainData(expirations=expirations)
        return OptionChainData.from_contracts(contracts, expirations=expirations)
