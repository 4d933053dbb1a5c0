"""Delayed quotes and option chains via Yahoo Finance."""

import logging
from datetime import date
from typing import List, Optional

import pandas as pd
import yfinance as yf

from strikegold.data.models import (
    OptionChainData,
    OptionContract,
    OptionType,
    QuoteError,
    QuoteErrorKind,
)
from strikegold.data.quotes import normalize_symbol

logger = logging.getLogger(__name__)


def _price(value) -> Optional[float]:
    """Positive float or None; Yahoo reports missing quotes as 0 or NaN."""
    if value is None or pd.isna(value):
        return None
    value = float(value)
    return value if value > 0 else None


def contracts_from_frame(frame: pd.DataFrame, kind: OptionType) -> List[OptionContract]:
    """Convert a yfinance calls/puts frame into contracts."""
    if frame is None or frame.empty:
        return []
    contracts = []
    for row in frame.itertuples(index=False):
        strike = getattr(row, "strike", None)
        if strike is None or pd.isna(strike):
            continue
        contracts.append(
            OptionContract(
                kind=kind,
                strike=float(strike),
                bid=_price(getattr(row, "bid", None)),
                ask=_price(getattr(row, "ask", None)),
                last=_price(getattr(row, "lastPrice", None)),
            )
        )
    return contracts


class YahooQuoteProvider:
    """
    Default no-key provider backed by yfinance.
    Quotes are delayed; chains are fetched per expiration.
    """

    def _ticker(self, symbol: str) -> yf.Ticker:
        return yf.Ticker(symbol)

    def fetch_delayed_price(self, symbol: str) -> float:
        symbol = normalize_symbol(symbol)
        try:
            history = self._ticker(symbol).history(period="5d")
        except Exception as e:
            raise QuoteError(QuoteErrorKind.NETWORK, f"Yahoo price fetch failed for {symbol}: {e}") from e

        if history is None or history.empty:
            raise QuoteError(QuoteErrorKind.NOT_FOUND, f"No Yahoo price data for {symbol}")
        return float(history["Close"].iloc[-1])

    def fetch_option_chain(
        self, symbol: str, expiration: Optional[date] = None
    ) -> OptionChainData:
        symbol = normalize_symbol(symbol)
        try:
            ticker = self._ticker(symbol)
            available = [date.fromisoformat(s) for s in ticker.options]
        except Exception as e:
            raise QuoteError(QuoteErrorKind.NETWORK, f"Yahoo expirations fetch failed for {symbol}: {e}") from e

        if not available:
            raise QuoteError(QuoteErrorKind.NOT_FOUND, f"No listed options for {symbol}")

        target = expiration or available[0]
        if target not in available:
            raise QuoteError(
                QuoteErrorKind.NOT_FOUND,
                f"Expiration {target.isoformat()} not listed for {symbol}",
            )

        try:
            chain = ticker.option_chain(target.isoformat())
        except Exception as e:
            raise QuoteError(QuoteErrorKind.NETWORK, f"Yahoo chain fetch failed for {symbol}: {e}") from e

        contracts = contracts_from_frame(chain.calls, OptionType.CALL)
        contracts += contracts_from_frame(chain.puts, OptionType.PUT)
        logger.debug("Yahoo chain %s %s: %d contracts", symbol, target, len(contracts))
        return OptionChainData.from_contracts(contracts, expirations=available)
