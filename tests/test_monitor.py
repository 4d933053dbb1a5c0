"""Integration tests for OrderMonitor.

Tests cover:
- Fill / cancel / keep / defer outcomes applied through the store
- Per-order error isolation and the unconditional heartbeat
- Concurrent user cancel vs monitor fill
- start/stop lifecycle and provider hot-swap
- On-demand market references
"""

import asyncio
import json
from datetime import date, timedelta
from unittest.mock import MagicMock

import pytest

from strikegold.data.models import QuoteError, QuoteErrorKind
from strikegold.data.quotes import DefaultProvider
from strikegold.storage import MemoryStorage
from strikegold.trading.daily_log import DailyLog
from strikegold.trading.heartbeat import HEARTBEAT_KEY, Heartbeat
from strikegold.trading.models import MarketReferences, OrderStatus
from strikegold.trading.monitor import OrderMonitor

from tests.conftest import (
    EXPIRATION,
    NOW,
    make_chain,
    make_contract,
    make_order,
    make_provider,
)


def _make_monitor(store, provider, config, backend=None, clock=None, **kwargs):
    backend = backend or MemoryStorage()
    return OrderMonitor(
        store=store,
        provider=provider,
        config=config,
        heartbeat=Heartbeat(backend),
        clock=clock or (lambda: NOW),
        **kwargs,
    )


class TestTickOutcomes:
    async def test_crossing_buy_is_filled(self, store, config):
        store.append(make_order(limit=1.20))
        monitor = _make_monitor(store, make_provider(), config)

        summary = await monitor.tick()

        order = store.get("order-1")
        assert order.status is OrderStatus.FILLED
        assert order.fill_price == pytest.approx(1.20)
        assert order.fill_quantity == 2
        assert summary["filled"] == 1

    async def test_below_mid_buy_remains_working(self, store, config):
        store.append(make_order(limit=0.90))
        monitor = _make_monitor(store, make_provider(), config)

        summary = await monitor.tick()

        assert store.get("order-1").status is OrderStatus.WORKING
        assert summary["working"] == 1

    async def test_expired_order_canceled(self, store, config):
        expired = date(2026, 3, 13)
        store.append(make_order(limit=0.10, expiration=expired))
        provider = make_provider(make_chain(expirations=[expired]))
        monitor = _make_monitor(store, provider, config)

        await monitor.tick()

        order = store.get("order-1")
        assert order.status is OrderStatus.CANCELED
        assert order.note == "expired_unfilled"

    async def test_prior_day_day_order_canceled_without_prices(self, store, config):
        store.append(make_order(placed_at=NOW - timedelta(days=1)))
        provider = make_provider(make_chain(make_contract(bid=None, ask=None, last=None)))
        monitor = _make_monitor(store, provider, config)

        await monitor.tick()

        order = store.get("order-1")
        assert order.status is OrderStatus.CANCELED
        assert order.note == "day_order_ended"

    async def test_missing_expiration_skips_fetch(self, store, config):
        store.append(make_order(expiration=None))
        provider = make_provider()
        monitor = _make_monitor(store, provider, config)

        summary = await monitor.tick()

        provider.fetch_option_chain.assert_not_called()
        assert summary["deferred"] == 1
        assert store.get("order-1").status is OrderStatus.WORKING

    async def test_fetch_uses_order_symbol_and_expiration(self, store, config):
        store.append(make_order())
        provider = make_provider()
        await _make_monitor(store, provider, config).tick()
        provider.fetch_option_chain.assert_called_once_with("AAPL", EXPIRATION)

    async def test_terminal_orders_not_fetched(self, store, config):
        order = make_order()
        order.mark_canceled("user_canceled")
        store.append(order)
        provider = make_provider()

        await _make_monitor(store, provider, config).tick()

        provider.fetch_option_chain.assert_not_called()


class TestIsolation:
    async def test_provider_error_defers_and_next_order_still_fills(self, store, config):
        store.append(make_order(id="a", placed_at=NOW - timedelta(minutes=2), symbol="BAD"))
        store.append(make_order(id="b", placed_at=NOW - timedelta(minutes=1)))
        provider = make_provider()
        provider.fetch_option_chain.side_effect = [
            QuoteError(QuoteErrorKind.NETWORK, "timeout"),
            make_chain(),
        ]
        monitor = _make_monitor(store, provider, config)

        summary = await monitor.tick()

        assert store.get("a").status is OrderStatus.WORKING
        assert store.get("b").status is OrderStatus.FILLED
        assert summary["deferred"] == 1
        assert monitor.get_last_heartbeat() == NOW

    async def test_unexpected_exception_is_isolated(self, store, config):
        store.append(make_order(id="a", placed_at=NOW - timedelta(minutes=2)))
        store.append(make_order(id="b", placed_at=NOW - timedelta(minutes=1)))
        provider = make_provider()
        provider.fetch_option_chain.side_effect = [RuntimeError("boom"), make_chain()]
        monitor = _make_monitor(store, provider, config)

        summary = await monitor.tick()

        assert store.get("a").status is OrderStatus.WORKING
        assert store.get("b").status is OrderStatus.FILLED
        assert len(summary["errors"]) == 1
        assert monitor.get_last_heartbeat() == NOW

    async def test_heartbeat_written_with_no_orders(self, store, config):
        backend = MemoryStorage()
        monitor = _make_monitor(store, make_provider(), config, backend=backend)

        await monitor.tick()

        assert backend.read(HEARTBEAT_KEY) == NOW.isoformat()

    async def test_heartbeat_broadcast_once_per_tick(self, store, config):
        store.append(make_order(id="a"))
        store.append(make_order(id="b", limit=0.5))
        monitor = _make_monitor(store, make_provider(), config)
        beats = []
        monitor.heartbeats.subscribe(beats.append)

        await monitor.tick()
        await monitor.tick()

        assert beats == [NOW, NOW]

    async def test_store_load_failure_still_beats(self, config):
        store = MagicMock()
        store.working.side_effect = OSError("disk gone")
        monitor = _make_monitor(store, make_provider(), config)

        summary = await monitor.tick()

        assert summary["errors"]
        assert monitor.get_last_heartbeat() == NOW


class TestConcurrentCancel:
    async def test_user_cancel_not_overwritten_by_fill(self, store, config):
        store.append(make_order())
        provider = make_provider()

        def cancel_then_quote(symbol, expiration):
            # User cancels while the quote request is in flight.
            store.cancel("order-1")
            return make_chain()

        provider.fetch_option_chain.side_effect = cancel_then_quote
        monitor = _make_monitor(store, provider, config)

        summary = await monitor.tick()

        order = store.get("order-1")
        assert order.status is OrderStatus.CANCELED
        assert order.fill_price is None
        assert summary["filled"] == 0


class TestStaleness:
    async def test_stale_without_heartbeat(self, store, config):
        monitor = _make_monitor(store, make_provider(), config)
        assert monitor.get_last_heartbeat() is None
        assert monitor.is_stale()

    async def test_fresh_then_stale_after_threshold(self, store, config):
        monitor = _make_monitor(store, make_provider(), config)
        await monitor.tick()
        assert not monitor.is_stale(NOW + timedelta(seconds=180))
        assert monitor.is_stale(NOW + timedelta(seconds=181))


class TestLifecycle:
    async def test_run_bounded_by_max_ticks(self, store, config):
        monitor = _make_monitor(store, make_provider(), config)
        await monitor.run(max_ticks=3)
        assert monitor.tick_count == 3
        assert not monitor.is_running

    async def test_start_is_idempotent_and_stop_ends_loop(self, store, config):
        monitor = _make_monitor(store, make_provider(), config)

        first = monitor.start()
        second = monitor.start()
        assert first is second
        assert monitor.is_running

        await asyncio.sleep(0.01)
        monitor.stop()
        await asyncio.wait_for(monitor.join(), timeout=1)

        assert not monitor.is_running
        assert monitor.tick_count >= 1

    async def test_stop_before_first_tick(self, store, config):
        monitor = _make_monitor(store, make_provider(), config)
        monitor.start()
        monitor.stop()
        await asyncio.wait_for(monitor.join(), timeout=1)
        assert monitor.tick_count == 0

    async def test_restart_while_sleeping_resumes_same_loop(self, store, config):
        config.poll_interval_seconds = 0.05
        monitor = _make_monitor(store, make_provider(), config)

        first = monitor.start()
        await asyncio.sleep(0.01)
        monitor.stop()
        second = monitor.start()

        assert second is first
        await asyncio.sleep(0.1)
        assert not first.done()
        assert monitor.is_running

        monitor.stop()
        await asyncio.wait_for(monitor.join(), timeout=1)
        assert first.done()
        assert not monitor.is_running

    async def test_run_refused_while_started_loop_alive(self, store, config):
        monitor = _make_monitor(store, make_provider(), config)
        monitor.start()

        with pytest.raises(RuntimeError):
            await monitor.run(max_ticks=1)

        monitor.stop()
        await asyncio.wait_for(monitor.join(), timeout=1)

    async def test_set_quote_provider_swaps_source(self, store, config):
        store.append(make_order())
        old, new = make_provider(), make_provider()
        monitor = _make_monitor(store, old, config)

        monitor.set_quote_provider(new)
        await monitor.tick()

        old.fetch_option_chain.assert_not_called()
        new.fetch_option_chain.assert_called_once()

    async def test_set_quote_provider_none_installs_default(self, store, config):
        store.append(make_order())
        monitor = _make_monitor(store, make_provider(), config)

        monitor.set_quote_provider(None)
        summary = await monitor.tick()

        assert isinstance(monitor.provider, DefaultProvider)
        assert summary["deferred"] == 1


class TestMarketReferences:
    async def test_returns_quote_for_matching_contract(self, store, config):
        monitor = _make_monitor(store, make_provider(), config)
        refs = await monitor.fetch_market_references("AAPL", EXPIRATION, True, 220.0)
        assert refs == MarketReferences(bid=1.00, ask=1.20, mid=pytest.approx(1.10))

    async def test_no_match_returns_empty(self, store, config):
        monitor = _make_monitor(store, make_provider(), config)
        refs = await monitor.fetch_market_references("AAPL", EXPIRATION, False, 220.0)
        assert refs == MarketReferences()

    async def test_provider_error_propagates(self, store, config):
        error = QuoteError(QuoteErrorKind.UNAUTHORIZED, "bad key")
        monitor = _make_monitor(store, make_provider(error=error), config)
        with pytest.raises(QuoteError) as exc:
            await monitor.fetch_market_references("AAPL", EXPIRATION, True, 220.0)
        assert exc.value.kind is QuoteErrorKind.UNAUTHORIZED


class TestDailyLogIntegration:
    async def test_transitions_and_ticks_logged(self, store, config):
        log_backend = MemoryStorage()
        daily_log = DailyLog(log_dir="logs", backend=log_backend)
        store.append(make_order())
        monitor = _make_monitor(store, make_provider(), config, daily_log=daily_log)

        await monitor.tick()

        data = json.loads(log_backend.read(daily_log.today_path))
        assert len(data["ticks"]) == 1
        assert data["transitions"][0]["outcome"] == "filled"
        assert data["transitions"][0]["fill_price"] == pytest.approx(1.20)

    async def test_failing_transition_entry_keeps_fill_counted(self, store, config):
        daily_log = MagicMock(spec=DailyLog)
        daily_log.log_transition.side_effect = OSError("disk full")
        store.append(make_order())
        monitor = _make_monitor(store, make_provider(), config, daily_log=daily_log)

        summary = await monitor.tick()

        assert summary["filled"] == 1
        assert summary["errors"] == []
        assert store.get("order-1").status is OrderStatus.FILLED
        daily_log.flush.assert_called_once()
