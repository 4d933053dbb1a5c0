"""Quote provider interface and provider factory."""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional, Protocol, runtime_checkable, TYPE_CHECKING

from strikegold.data.models import OptionChainData, QuoteError, QuoteErrorKind

if TYPE_CHECKING:
    from strikegold.config import MonitorConfig
    from strikegold.storage import StorageBackend

logger = logging.getLogger(__name__)


@runtime_checkable
class QuoteProvider(Protocol):
    """Delayed price and option chain snapshots.

    Implementations are synchronous and may block on network I/O; the
    monitor runs them in a worker thread. Failures raise ``QuoteError``.
    """

    def fetch_delayed_price(self, symbol: str) -> float: ...

    def fetch_option_chain(
        self, symbol: str, expiration: Optional[date] = None
    ) -> OptionChainData: ...


class DefaultProvider:
    """Fallback used when no data source is configured.

    Prices are unavailable; chains come back empty so callers degrade
    gracefully instead of failing.
    """

    def fetch_delayed_price(self, symbol: str) -> float:
        raise QuoteError(QuoteErrorKind.NOT_FOUND, f"No price source configured for {symbol}")

    def fetch_option_chain(
        self, symbol: str, expiration: Optional[date] = None
    ) -> OptionChainData:
        return OptionChainData(expirations=[expiration] if expiration else [])


def normalize_symbol(symbol: str) -> str:
    """Trim and upper-case a ticker; empty symbols are rejected."""
    cleaned = (symbol or "").strip().upper()
    if not cleaned:
        raise QuoteError(QuoteErrorKind.NOT_FOUND, "Empty symbol")
    return cleaned


def build_quote_provider(
    config: MonitorConfig,
    backend: Optional[StorageBackend] = None,
) -> QuoteProvider:
    """Factory: build the configured quote provider."""
    name = config.quote_provider
    if name == "yahoo":
        from strikegold.data.yahoo import YahooQuoteProvider
        return YahooQuoteProvider()
    if name == "alpaca":
        from strikegold.clients import AlpacaClientManager
        from strikegold.data.alpaca import AlpacaQuoteProvider
        return AlpacaQuoteProvider(AlpacaClientManager(paper=config.paper_trading))
    if name == "manual":
        from strikegold.data.manual import ManualMarketDataStore, ManualQuoteProvider
        if backend is None:
            raise ValueError("A storage backend is required for the manual quote provider")
        return ManualQuoteProvider(ManualMarketDataStore(backend))
    if name == "none":
        return DefaultProvider()
    raise ValueError(f"Unknown quote_provider: {name!r}")
