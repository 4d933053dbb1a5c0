"""Shared fixtures and factory functions for StrikeGold tests."""

from datetime import date, datetime, timedelta
from unittest.mock import MagicMock

import pytest
import pytz

from strikegold.config import MonitorConfig
from strikegold.data.models import OptionChainData, OptionContract, OptionType
from strikegold.storage import MemoryStorage
from strikegold.trading.models import OrderSide, OrderStatus, SavedOrder, TimeInForce
from strikegold.trading.orders import OrderStore

EASTERN = pytz.timezone("US/Eastern")

# Wednesday mid-session, well before the 16:00 cutoff.
NOW = EASTERN.localize(datetime(2026, 3, 18, 11, 30))
EXPIRATION = date(2026, 3, 20)


# ─── Configuration Fixtures ─────────────────────────────────────────


@pytest.fixture
def config():
    """Config with no poll delay and no network provider."""
    return MonitorConfig(
        poll_interval_seconds=0,
        quote_provider="none",
        storage_backend="memory",
        daily_log_enabled=False,
    )


@pytest.fixture
def backend():
    return MemoryStorage()


@pytest.fixture
def store(backend):
    return OrderStore(backend)


# ─── Factory Functions ──────────────────────────────────────────────


def make_order(**overrides) -> SavedOrder:
    """Factory for a working buy-to-open call order placed at NOW."""
    defaults = dict(
        id="order-1",
        placed_at=NOW - timedelta(hours=1),
        symbol="AAPL",
        expiration=EXPIRATION,
        right=OptionType.CALL,
        strike=220.0,
        side=OrderSide.BUY,
        quantity=2,
        limit=1.20,
        tif=TimeInForce.DAY,
        status=OrderStatus.WORKING,
    )
    defaults.update(overrides)
    return SavedOrder(**defaults)


def make_contract(**overrides) -> OptionContract:
    """Factory for a quoted contract (bid 1.00 / ask 1.20)."""
    defaults = dict(
        kind=OptionType.CALL,
        strike=220.0,
        bid=1.00,
        ask=1.20,
        last=1.10,
    )
    defaults.update(overrides)
    return OptionContract(**defaults)


def make_chain(*contracts, expirations=None) -> OptionChainData:
    """Chain holding ``contracts`` (default: one call at 220)."""
    if not contracts:
        contracts = (make_contract(),)
    return OptionChainData.from_contracts(list(contracts), expirations or [EXPIRATION])


def make_provider(chain=None, price=230.0, error=None) -> MagicMock:
    """Mock QuoteProvider returning ``chain`` or raising ``error``."""
    provider = MagicMock()
    provider.fetch_delayed_price.return_value = price
    if error is not None:
        provider.fetch_option_chain.side_effect = error
    else:
        provider.fetch_option_chain.return_value = chain if chain is not None else make_chain()
    return provider
