"""Persisted paper orders with per-id atomic updates."""

import copy
import json
import logging
import threading
from typing import Callable, Dict, List, Optional

from strikegold.storage import LocalStorage, StorageBackend
from strikegold.trading.events import Channel
from strikegold.trading.models import CancelReason, SavedOrder

logger = logging.getLogger(__name__)

Mutation = Callable[[SavedOrder], Optional[SavedOrder]]


class OrderStore:
    """Saved orders, one document per order under ``orders/<id>.json``.

    Mutations on the same id are serialized with a per-id lock; different
    ids never contend. Every mutation publishes a payload-free event on
    ``changes`` so listeners can reload.
    """

    PREFIX = "orders"

    def __init__(self, backend: StorageBackend = None):
        self._backend = backend or LocalStorage()
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self.changes = Channel("orders")

    def _key(self, order_id: str) -> str:
        if not order_id or "/" in order_id:
            raise ValueError(f"Invalid order id: {order_id!r}")
        return f"{self.PREFIX}/{order_id}.json"

    def _lock_for(self, order_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(order_id)
            if lock is None:
                lock = self._locks[order_id] = threading.Lock()
            return lock

    def _read(self, order_id: str) -> Optional[SavedOrder]:
        key = self._key(order_id)
        if not self._backend.exists(key):
            return None
        return SavedOrder.from_dict(json.loads(self._backend.read(key)))

    def _write(self, order: SavedOrder):
        self._backend.write(self._key(order.id), json.dumps(order.to_dict(), indent=2))

    # ── Read operations ─────────────────────────────────────────

    def load(self) -> List[SavedOrder]:
        """All orders, oldest first. Unreadable documents are logged and skipped."""
        orders = []
        for key in self._backend.list_prefix(self.PREFIX):
            if not key.endswith(".json"):
                continue
            try:
                raw = self._backend.read(key)
            except KeyError:
                # Removed between listing and reading
                continue
            try:
                orders.append(SavedOrder.from_dict(json.loads(raw)))
            except (KeyError, ValueError, TypeError) as e:
                logger.warning("Skipping corrupt order record %s: %s", key, e)
        orders.sort(key=lambda o: o.placed_at.timestamp())
        return orders

    def get(self, order_id: str) -> Optional[SavedOrder]:
        return self._read(order_id)

    def working(self) -> List[SavedOrder]:
        return [o for o in self.load() if o.is_working]

    # ── Write operations ────────────────────────────────────────

    def append(self, order: SavedOrder):
        """Insert or replace an order."""
        order.validate()
        with self._lock_for(order.id):
            self._write(order)
        logger.info("Saved order %s (%s %s %s)", order.id, order.side.value,
                    order.symbol, order.status.value)
        self.changes.publish()

    def update(self, order_id: str, mutation: Mutation) -> Optional[SavedOrder]:
        """Atomically read, mutate and persist one order.

        ``mutation`` receives a copy and may modify it in place or return a
        replacement. Nothing is written if the result is unchanged. A result
        that fails ``validate()`` raises ``ValueError`` and leaves the stored
        record untouched. Returns the stored order, or None if the id is unknown.
        """
        with self._lock_for(order_id):
            current = self._read(order_id)
            if current is None:
                return None
            draft = copy.deepcopy(current)
            result = mutation(draft)
            updated = result if result is not None else draft
            if updated.id != order_id:
                raise ValueError(f"Mutation changed order id {order_id!r} -> {updated.id!r}")
            if updated.to_dict() == current.to_dict():
                return current
            updated.validate()
            self._write(updated)
        self.changes.publish()
        return updated

    def cancel(self, order_id: str, note: Optional[str] = None) -> Optional[SavedOrder]:
        """User cancel. Only a working order changes; others come back as stored."""

        def _cancel(order: SavedOrder):
            if order.is_working:
                order.mark_canceled(note or CancelReason.USER.value)

        return self.update(order_id, _cancel)

    def remove(self, order_id: str):
        with self._lock_for(order_id):
            self._backend.delete(self._key(order_id))
        with self._locks_guard:
            self._locks.pop(order_id, None)
        self.changes.publish()

    def clear(self):
        """Delete every order. Each delete waits for an in-flight update on that id."""
        base = self.PREFIX + "/"
        for key in self._backend.list_prefix(self.PREFIX):
            if key.startswith(base) and key.endswith(".json"):
                with self._lock_for(key[len(base):-len(".json")]):
                    self._backend.delete(key)
            else:
                self._backend.delete(key)
        with self._locks_guard:
            self._locks.clear()
        self.changes.publish()
