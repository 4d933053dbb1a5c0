"""Order monitor: re-evaluates working paper orders every tick."""

import asyncio
import logging
from datetime import date, datetime
from typing import Callable, Optional

import pytz

from strikegold.config import MonitorConfig
from strikegold.data.models import OptionType, QuoteError
from strikegold.data.quotes import DefaultProvider, QuoteProvider
from strikegold.storage import MemoryStorage
from strikegold.trading.daily_log import DailyLog
from strikegold.trading.decision import decide
from strikegold.trading.events import Channel
from strikegold.trading.heartbeat import Heartbeat
from strikegold.trading.models import (
    Decision,
    DecisionKind,
    MarketReferences,
    SavedOrder,
)
from strikegold.trading.orders import OrderStore

logger = logging.getLogger(__name__)


async def _arun(fn, *args, **kwargs):
    """Run a sync function in a thread pool (non-blocking)."""
    return await asyncio.to_thread(fn, *args, **kwargs)


def _utc_now() -> datetime:
    return datetime.now(pytz.utc)


class OrderMonitor:
    """
    Background service that moves working orders to filled or canceled.

    Each tick:
    1. Load working orders
    2. Fetch the option chain for each one (sequentially)
    3. Decide fill / cancel / keep / defer and apply it through the store
    4. Write and broadcast the heartbeat, whatever happened above

    ``tick()`` drives one sweep explicitly; ``start()``/``run()`` repeat it
    every ``poll_interval_seconds`` until ``stop()``.
    """

    def __init__(
        self,
        store: OrderStore,
        provider: Optional[QuoteProvider] = None,
        config: Optional[MonitorConfig] = None,
        heartbeat: Optional[Heartbeat] = None,
        clock: Optional[Callable[[], datetime]] = None,
        daily_log: Optional[DailyLog] = None,
    ):
        self.store = store
        self.provider = provider or DefaultProvider()
        self.config = config or MonitorConfig()
        self.heartbeat = heartbeat or Heartbeat(MemoryStorage(), self.config.stale_after_seconds)
        self.clock = clock or _utc_now
        self.daily_log = daily_log

        self.tz = self.config.tz
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._loop_active = False
        self._tick_count = 0

    @property
    def heartbeats(self) -> Channel:
        return self.heartbeat.changes

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def tick_count(self) -> int:
        return self._tick_count

    # ── Lifecycle ───────────────────────────────────────────────

    def start(self) -> asyncio.Task:
        """Schedule the loop on the running event loop. No-op if already running.

        A loop that was asked to stop but is still alive (sleeping or mid-tick)
        is resumed instead of getting a second one beside it.
        """
        if self._task is not None and not self._task.done():
            self._running = True
            return self._task
        if self._loop_active:
            raise RuntimeError("Order monitor loop is already active via run()")
        self._running = True
        self._task = asyncio.get_running_loop().create_task(self._loop())
        return self._task

    def stop(self):
        """Stop after the current tick. The flag is checked before each tick."""
        if self._running:
            logger.info("Order monitor stopping after %d ticks", self._tick_count)
        self._running = False

    async def join(self):
        """Wait for a started loop to exit."""
        if self._task is not None:
            await self._task

    async def run(self, max_ticks: Optional[int] = None):
        """Run the loop in the current task until stopped or ``max_ticks`` is reached."""
        if self._loop_active or (self._task is not None and not self._task.done()):
            raise RuntimeError("Order monitor loop is already active")
        self._running = True
        await self._loop(max_ticks)

    async def _loop(self, max_ticks: Optional[int] = None):
        poll_interval = self.config.poll_interval_seconds
        logger.info("Order monitor started (poll=%ss, max_ticks=%s)", poll_interval, max_ticks)
        ticks = 0
        self._loop_active = True
        try:
            while self._running:
                try:
                    await self.tick()
                except Exception:
                    logger.exception("Tick %d failed", self._tick_count)
                ticks += 1
                if max_ticks and ticks >= max_ticks:
                    break
                await asyncio.sleep(poll_interval)
        finally:
            self._running = False
            self._loop_active = False
        logger.info("Order monitor exited after %d ticks", ticks)

    # ── Tick ────────────────────────────────────────────────────

    async def tick(self) -> dict:
        """One full sweep over working orders followed by the heartbeat."""
        self._tick_count += 1
        now = self.clock()
        summary = {
            "timestamp": now.isoformat(),
            "working": 0,
            "filled": 0,
            "canceled": 0,
            "deferred": 0,
            "errors": [],
        }

        try:
            orders = self.store.working()
        except Exception as e:
            logger.exception("Could not load orders")
            summary["errors"].append(f"load: {e}")
            orders = []

        for order in orders:
            try:
                decision = await self._evaluate(order, now)
                outcome = self._apply(order, decision, now)
            except Exception as e:
                logger.exception("Order %s: evaluation failed", order.id)
                summary["errors"].append(f"{order.id}: {e}")
                continue
            summary[outcome] += 1

        self._beat(summary)

        if self.daily_log is not None:
            try:
                self.daily_log.log_tick(self._tick_count, summary)
                self.daily_log.flush()
            except Exception:
                logger.exception("Daily log flush failed")

        logger.debug(
            "Tick %d: %d filled, %d canceled, %d working, %d deferred",
            self._tick_count, summary["filled"], summary["canceled"],
            summary["working"], summary["deferred"],
        )
        return summary

    async def _evaluate(self, order: SavedOrder, now: datetime) -> Decision:
        if order.expiration is None:
            return decide(order, None, now, self.tz,
                          self.config.strike_tolerance, self.config.expiry_cutoff)

        try:
            chain = await _arun(self.provider.fetch_option_chain, order.symbol, order.expiration)
        except QuoteError as e:
            logger.warning("Order %s: quote fetch failed (%s): %s", order.id, e.kind.value, e)
            chain = e

        return decide(order, chain, now, self.tz,
                      self.config.strike_tolerance, self.config.expiry_cutoff)

    def _apply(self, order: SavedOrder, decision: Decision, now: datetime) -> str:
        """Apply a decision through the store; returns the summary bucket."""
        if decision.kind is DecisionKind.DEFERRED:
            logger.debug("Order %s deferred: %s (%s)", order.id,
                         decision.defer_reason.value, decision.details)
            return "deferred"
        if decision.kind is DecisionKind.WORKING:
            return "working"

        applied = []

        def _transition(current: SavedOrder):
            # A user cancel may have landed since the tick loaded this order.
            if not current.is_working:
                return
            if decision.kind is DecisionKind.FILLED:
                current.mark_filled(decision.fill_price)
            else:
                current.mark_canceled(decision.cancel_reason.value)
            applied.append(current)

        self.store.update(order.id, _transition)
        if not applied:
            logger.info("Order %s changed concurrently; %s not applied", order.id,
                        decision.kind.value)
            return "working"

        updated = applied[0]
        if decision.kind is DecisionKind.FILLED:
            logger.info("Order %s filled: %s %d %s %g%s @ %.2f", order.id,
                        updated.side.value, updated.quantity, updated.symbol,
                        updated.strike, updated.right.value[0].upper(), decision.fill_price)
        else:
            logger.info("Order %s canceled: %s", order.id, decision.cancel_reason.value)
        if self.daily_log is not None:
            try:
                self.daily_log.log_transition(updated, decision, now)
            except Exception:
                # The store already holds the transition; only the log entry is lost.
                logger.exception("Order %s: daily log entry failed", order.id)
        return decision.kind.value

    def _beat(self, summary: dict):
        ts = self.clock()
        try:
            self.heartbeat.beat(ts)
        except Exception as e:
            logger.exception("Heartbeat write failed")
            summary["errors"].append(f"heartbeat: {e}")

    # ── Queries ─────────────────────────────────────────────────

    def get_last_heartbeat(self) -> Optional[datetime]:
        return self.heartbeat.last()

    def is_stale(self, now: Optional[datetime] = None) -> bool:
        return self.heartbeat.is_stale(now or self.clock())

    def set_quote_provider(self, provider: Optional[QuoteProvider]):
        """Swap the data source; takes effect on the next fetch."""
        self.provider = provider or DefaultProvider()
        logger.info("Quote provider set to %s", type(self.provider).__name__)

    async def fetch_market_references(
        self,
        symbol: str,
        expiration: Optional[date],
        is_call: bool,
        strike: float,
    ) -> MarketReferences:
        """Bid/ask/mid for one contract, on demand. QuoteError propagates."""
        chain = await _arun(self.provider.fetch_option_chain, symbol, expiration)
        kind = OptionType.CALL if is_call else OptionType.PUT
        contract = chain.find_contract(kind, strike, self.config.strike_tolerance)
        if contract is None:
            return MarketReferences()
        return MarketReferences(bid=contract.bid, ask=contract.ask, mid=contract.mid)
